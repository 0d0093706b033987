from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "CardBinder"
    debug: bool = False
    log_level: str = "INFO"

    database_url: str = "postgresql+asyncpg://localhost:5432/cardbinder"

    # Scope used by the HTTP layer when a request does not name one
    default_scope: str = "default"

    # Deadline applied to every collection service call
    store_timeout_seconds: float = 5.0

    # Re-read the stored collection after a batch merge instead of
    # returning the in-memory merge result
    refresh_after_merge: bool = True


settings = Settings()
