from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from multichat.config.defaults import (
    DEFAULT_CHAT_TITLE,
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    GOOGLE_BASE_URL,
    GOOGLE_TITLE_MODEL,
    HUGGINGFACE_BASE_URL,
    HUGGINGFACE_INFERENCE_URL,
    HUGGINGFACE_MAX_TOKENS,
    HUGGINGFACE_TITLE_MODEL,
    NVIDIA_BASE_URL,
    NVIDIA_GENAI_URL,
    NVIDIA_MAX_TOKENS,
    NVIDIA_TITLE_MODEL,
)


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    app_name: str = "multichat-backend"
    database_url: str = "sqlite:///./multichat.db"
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    google_api_key: str = ""
    google_base_url: str = GOOGLE_BASE_URL
    google_title_model: str = GOOGLE_TITLE_MODEL

    huggingface_api_token: str = ""
    huggingface_base_url: str = HUGGINGFACE_BASE_URL
    huggingface_inference_url: str = HUGGINGFACE_INFERENCE_URL
    huggingface_title_model: str = HUGGINGFACE_TITLE_MODEL
    huggingface_max_tokens: int = HUGGINGFACE_MAX_TOKENS

    nvidia_api_key: str = ""
    nvidia_base_url: str = NVIDIA_BASE_URL
    nvidia_genai_url: str = NVIDIA_GENAI_URL
    nvidia_title_model: str = NVIDIA_TITLE_MODEL
    nvidia_max_tokens: int = NVIDIA_MAX_TOKENS

    request_timeout: float = 60.0
    default_temperature: float = DEFAULT_TEMPERATURE
    default_chat_title: str = DEFAULT_CHAT_TITLE
    default_model: str = DEFAULT_MODEL


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return AppSettings()
