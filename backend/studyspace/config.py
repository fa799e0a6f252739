"""Settings for the study workspace API, read from the environment or `.env`."""

from functools import lru_cache
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Study Workspace"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///./studyspace.db"
    # Create tables on startup (Alembic remains the source of truth for upgrades)
    database_auto_create: bool = True

    @computed_field
    @property
    def database_url_sync(self) -> str:
        """Get sync database URL (for Alembic)."""
        return self.database_url.replace("sqlite+aiosqlite://", "sqlite://", 1)

    # Auth / JWT
    jwt_secret_key: str  # Required - no default, must be set in .env
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7  # 7 days

    # Admin account whose sources are published read-only at /api/public/sources.
    # Seeded on startup only when admin_password is set.
    admin_username: str = "admin"
    admin_email: str = "admin@example.com"
    admin_password: str | None = None

    # CORS
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Cookies
    # Set to true when frontend and backend are on different domains
    cookie_cross_domain: bool = False

    # OpenRouter (OpenAI-compatible) API
    # Server-wide fallback; users normally send their own key per request
    openrouter_api_key: str | None = None
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_app_url: str = "http://localhost:3000"
    openrouter_app_title: str = "Study Workspace"

    # LLM Configuration
    chat_model: str = "meta-llama/llama-3-8b-instruct:free"
    material_model: str = "google/gemini-2.0-flash-001"
    image_model: str = "black-forest-labs/flux-schnell"
    image_fallback_models: list[str] = [
        "stabilityai/stable-diffusion-3.5-large",
        "openai/dall-e-2",
    ]
    slide_image_model: str = "openai/dall-e-3"
    generate_slide_images: bool = False
    chat_temperature: float = 0.4
    summary_temperature: float = 0.3
    llm_max_attempts: int = 1  # 1 = fail fast, no retry
    llm_request_timeout: float = 120.0

    # Context limits (characters)
    max_context_chars: int = 240_000
    max_source_chars: int = 80_000
    max_summary_chars: int = 120_000
    infographic_context_chars: int = 2_000

    # Source upload
    max_upload_bytes: int = 50 * 1024 * 1024  # 50MB


@lru_cache
def get_settings() -> Settings:
    return Settings()


def sanitize_error(error: Exception, *, generic_message: str = "An internal error occurred.") -> str:
    """Message safe to show a client: the real error in development, generic_message elsewhere."""
    settings = get_settings()
    if settings.environment == "development":
        return str(error)
    return generic_message
