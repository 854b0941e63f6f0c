from functools import lru_cache

from codereview.config import Settings
from codereview.database import MemoryStorage, SQLiteStorage, StateStorage
from codereview.inference import InferenceService, create_inference_service
from codereview.session import SessionRegistry


@lru_cache
def get_settings() -> Settings:
    return Settings()


@lru_cache
def get_storage() -> StateStorage:
    settings = get_settings()
    if settings.STORAGE_BACKEND == "memory":
        return MemoryStorage()
    return SQLiteStorage(settings.DB_PATH)


@lru_cache
def get_session_registry() -> SessionRegistry:
    return SessionRegistry(get_storage())


@lru_cache
def get_inference_service() -> InferenceService:
    return create_inference_service(get_settings())
