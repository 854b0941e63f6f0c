from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

from codereview.constants import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, MODEL_NAME, LLAMA_SERVER_URL, OLLAMA_URL

class Settings(BaseSettings):
    INFERENCE_PROVIDER: str = "srvllama"
    MODEL_NAME: str = MODEL_NAME
    SERVER_SIDE_API_KEY: str = ""
    INFERENCE_BASE_URL: str = ""
    LLAMA_SERVER_URL: str = LLAMA_SERVER_URL
    OLLAMA_URL: str = OLLAMA_URL
    MAX_TOKENS: int = DEFAULT_MAX_TOKENS
    TEMPERATURE: float = DEFAULT_TEMPERATURE

    STORAGE_BACKEND: str = "sqlite"
    DB_PATH: str = ".review_sessions.db"

    RATE_LIMIT: str = "30/minute"
    CORS_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env")
