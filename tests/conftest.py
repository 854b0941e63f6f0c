import pytest
from fastapi.testclient import TestClient

from codereview.api import app, limiter
from codereview.database import MemoryStorage
from codereview.dependencies import get_inference_service, get_session_registry
from codereview.errors import InferenceError, StorageError
from codereview.inference import InferenceService
from codereview.session import SessionRegistry

# Disable rate limiting for all tests
limiter.enabled = False


class FakeInference(InferenceService):
    """Records every call and answers from a script."""

    def __init__(self, replies=None, error=None):
        super().__init__("fake-model")
        self.replies = list(replies or [])
        self.error = error
        self.calls = []

    async def _call_api(self, messages):
        self.calls.append(messages)
        if self.error:
            raise self.error
        if self.replies:
            return self.replies.pop(0)
        return f"review #{len(self.calls)}"

    @property
    def user_prompts(self):
        return [messages[1]["content"] for messages in self.calls]


class FailingStorage(MemoryStorage):
    """Loads normally but refuses to save."""

    async def put(self, key, value):
        raise StorageError("disk full")


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def registry(storage):
    return SessionRegistry(storage)


@pytest.fixture
def fake_inference():
    return FakeInference()


@pytest.fixture
def client(registry, fake_inference):
    app.dependency_overrides[get_session_registry] = lambda: registry
    app.dependency_overrides[get_inference_service] = lambda: fake_inference
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def base_payload():
    return {
        "code": "function add(a,b){return a+b}",
        "language": "javascript",
    }


@pytest.fixture
def failing_inference():
    return FakeInference(error=InferenceError("model unavailable"))
