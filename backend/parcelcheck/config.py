from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # App
    environment: str = "development"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Database (session snapshots)
    database_url: str = "sqlite+aiosqlite:///./parcelcheck.db"

    # Anthropic (sticker vision oracle)
    anthropic_api_key: str = ""
    claude_model: str = "claude-sonnet-4-20250514"
    claude_max_tokens: int = 4096

    # Manifest parsing: allowed first letters of apartment codes, empty = any letter
    apartment_prefixes: str = ""

    # Review queue
    review_confidence_threshold: float = 0.9

    # Session snapshots kept in the database, 0 = keep all
    session_history_limit: int = 50

    # Photo uploads
    upload_dir: str = "./uploads"
    max_upload_size_mb: int = 20
    max_image_dimension: int = 2048
    allowed_image_types: set[str] = {"png", "jpg", "jpeg", "webp"}

    # Sentry (optional)
    sentry_dsn: str = ""


settings = Settings()
