"""
Per-session review history.

A ReviewSession owns the persisted state for exactly one session key: an
ordered list of review entries plus created / last-accessed timestamps.
State is created lazily on first access; there is no explicit create call.
"""

import asyncio
import logging
import time
import uuid
import weakref
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from codereview.database import StateStorage
from codereview.errors import StorageError


def now_ms() -> int:
    """Wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


class ReviewEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: int = Field(default_factory=now_ms)
    code: str
    language: str
    review: str
    context: Optional[str] = None


class SessionState(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reviews: List[ReviewEntry] = Field(default_factory=list)
    created_at: int = Field(default_factory=now_ms, alias="createdAt")
    last_accessed_at: int = Field(default_factory=now_ms, alias="lastAccessedAt")


class SessionMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    review_count: int = Field(alias="reviewCount")
    created_at: int = Field(alias="createdAt")
    last_accessed_at: int = Field(alias="lastAccessedAt")


class ReviewSession:
    """Ordered, append-only log of reviews for one session key."""

    def __init__(self, session_key: str, storage: StateStorage):
        self.session_key = session_key
        self._storage = storage
        self._state = SessionState()

    async def initialize(self):
        """Load persisted state if present, otherwise keep the fresh defaults."""
        stored = await self._storage.get(self.session_key)
        if stored:
            try:
                self._state = SessionState.model_validate(stored)
            except ValidationError as e:
                logging.error(f"Invalid session state for {self.session_key}: {e}")
                raise StorageError(f"Invalid session state: {e}") from e
            self._state.last_accessed_at = now_ms()

    async def _persist(self):
        await self._storage.put(self.session_key, self._state.model_dump(by_alias=True))

    async def add_review(
        self,
        code: str,
        language: str,
        review: str,
        context: Optional[str] = None,
    ) -> ReviewEntry:
        """
        Append a new review to the end of the session.

        Content is not validated here. A storage failure propagates and the
        entry must not be treated as saved.

        Returns:
            The stored entry, with its generated id and timestamp.
        """
        await self.initialize()

        entry = ReviewEntry(code=code, language=language, review=review, context=context)
        self._state.reviews.append(entry)
        self._state.last_accessed_at = now_ms()

        await self._persist()

        logging.info(f"Session {self.session_key}: stored review {entry.id} ({len(self._state.reviews)} total)")
        return entry

    async def get_reviews(self) -> List[ReviewEntry]:
        """Return the full history, oldest first. Refreshes and persists last-access time."""
        await self.initialize()
        self._state.last_accessed_at = now_ms()
        await self._persist()
        return list(self._state.reviews)

    async def get_review(self, review_id: str) -> Optional[ReviewEntry]:
        await self.initialize()
        for entry in self._state.reviews:
            if entry.id == review_id:
                return entry
        return None

    async def get_latest_review(self) -> Optional[ReviewEntry]:
        await self.initialize()
        if not self._state.reviews:
            return None
        return self._state.reviews[-1]

    async def get_metadata(self) -> SessionMetadata:
        await self.initialize()
        return SessionMetadata(
            review_count=len(self._state.reviews),
            created_at=self._state.created_at,
            last_accessed_at=self._state.last_accessed_at,
        )

    async def clear_reviews(self):
        """Drop every review. Creation time survives; clearing twice is harmless."""
        await self.initialize()
        self._state.reviews = []
        self._state.last_accessed_at = now_ms()
        await self._persist()
        logging.info(f"Session {self.session_key}: cleared")


class SessionRegistry:
    """
    Hands out sessions by key and serializes work on each key.

    Callers that read a session and later append to it must hold
    ``lock(session_key)`` across both steps, otherwise concurrent requests
    on the same key can lose updates.
    """

    def __init__(self, storage: StateStorage):
        self._storage = storage
        # Entries vanish once no request holds or waits on the lock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def get(self, session_key: str) -> ReviewSession:
        return ReviewSession(session_key, self._storage)

    def lock(self, session_key: str) -> asyncio.Lock:
        lock = self._locks.get(session_key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_key] = lock
        return lock
