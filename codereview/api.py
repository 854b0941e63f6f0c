import logging
import uuid
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from codereview.dependencies import get_inference_service, get_session_registry, get_settings
from codereview.errors import InferenceError, StorageError
from codereview.inference import InferenceService
from codereview.prompts import SYSTEM_PROMPT, format_follow_up_prompt, format_initial_prompt
from codereview.session import SessionRegistry, now_ms

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Initialize Limiter
limiter = Limiter(key_func=get_remote_address)

app = FastAPI(
    title="Code Review Sessions API",
    description="Reviews code snippets with an LLM and keeps a per-session review history for follow-ups.",
    version="1.0.0",
)

# Register Limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


class ReviewRequest(BaseModel):
    code: Optional[str] = Field(None, description="The code snippet to be reviewed.")
    language: Optional[str] = Field(None, description="Language label, used for the code fence.")
    context: Optional[str] = Field(None, description="Optional hint about the code's purpose.")
    session_id: Optional[str] = Field(
        None, alias="sessionId", description="Existing session to follow up on; generated when absent."
    )


class ClearSessionRequest(BaseModel):
    session_id: Optional[str] = Field(None, alias="sessionId")


def error_response(status_code: int, error: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, **extra})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return error_response(400, "Invalid request body", details=jsonable_encoder(exc.errors()))


@app.exception_handler(Exception)
@app.exception_handler(StorageError)
@app.exception_handler(InferenceError)
async def service_exception_handler(request: Request, exc: Exception):
    logging.error(f"{request.method} {request.url.path} failed with {type(exc).__name__}: {exc}")
    return error_response(500, "Internal Server Error", message=str(exc))


@app.post("/api/review", tags=["Reviews"])
@limiter.limit(settings.RATE_LIMIT)
async def submit_review(
    request: Request,
    request_data: ReviewRequest,
    registry: SessionRegistry = Depends(get_session_registry),
    inference: InferenceService = Depends(get_inference_service),
):
    """Review a snippet, as a follow-up when the session already has reviews."""
    if not request_data.code or not request_data.language:
        return error_response(400, "Missing required fields: code and language")

    session_key = request_data.session_id or str(uuid.uuid4())
    session = registry.get(session_key)

    async with registry.lock(session_key):
        reviews = await session.get_reviews()
        is_follow_up = len(reviews) > 0

        if is_follow_up:
            user_prompt = format_follow_up_prompt(reviews[-1].review, request_data.code, request_data.language)
        else:
            user_prompt = format_initial_prompt(request_data.code, request_data.language, request_data.context)

        review = await inference.generate(SYSTEM_PROMPT, user_prompt)

        entry = await session.add_review(
            request_data.code, request_data.language, review, request_data.context
        )

    return {
        "sessionId": session_key,
        "review": review,
        "reviewId": entry.id,
        "isFollowUp": is_follow_up,
        "timestamp": entry.timestamp,
    }


@app.get("/api/session/reviews", tags=["Sessions"])
async def list_reviews(
    session_id: Optional[str] = Query(None, alias="sessionId"),
    registry: SessionRegistry = Depends(get_session_registry),
):
    if not session_id:
        return error_response(400, "Missing sessionId parameter")

    async with registry.lock(session_id):
        reviews = await registry.get(session_id).get_reviews()

    return {"reviews": [entry.model_dump() for entry in reviews]}


@app.get("/api/session/reviews/{review_id}", tags=["Sessions"])
async def get_review(
    review_id: str,
    session_id: Optional[str] = Query(None, alias="sessionId"),
    registry: SessionRegistry = Depends(get_session_registry),
):
    if not session_id:
        return error_response(400, "Missing sessionId parameter")

    async with registry.lock(session_id):
        entry = await registry.get(session_id).get_review(review_id)

    if entry is None:
        return error_response(404, "Review not found")

    return entry.model_dump()


@app.get("/api/session/latest", tags=["Sessions"])
async def get_latest_review(
    session_id: Optional[str] = Query(None, alias="sessionId"),
    registry: SessionRegistry = Depends(get_session_registry),
):
    if not session_id:
        return error_response(400, "Missing sessionId parameter")

    async with registry.lock(session_id):
        entry = await registry.get(session_id).get_latest_review()

    if entry is None:
        return error_response(404, "Session has no reviews")

    return entry.model_dump()


@app.get("/api/session/metadata", tags=["Sessions"])
async def get_session_metadata(
    session_id: Optional[str] = Query(None, alias="sessionId"),
    registry: SessionRegistry = Depends(get_session_registry),
):
    if not session_id:
        return error_response(400, "Missing sessionId parameter")

    async with registry.lock(session_id):
        metadata = await registry.get(session_id).get_metadata()

    return metadata.model_dump(by_alias=True)


@app.post("/api/session/clear", tags=["Sessions"])
async def clear_session(
    request_data: ClearSessionRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    if not request_data.session_id:
        return error_response(400, "Missing sessionId")

    async with registry.lock(request_data.session_id):
        await registry.get(request_data.session_id).clear_reviews()

    return {"success": True}


@app.get("/api/health", tags=["Health"])
async def health():
    return {"status": "ok", "timestamp": now_ms()}
