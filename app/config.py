from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql+asyncpg://localhost:5432/weighttracker"
    api_key: str | None = None
    log_level: str = "INFO"

    # Create entries/goals tables at startup (dev only; use migrations elsewhere)
    create_schema_on_startup: bool = False

    # Entry input bounds, in the user's preferred unit
    min_weight: float = 0.1
    max_weight: float = 1000.0

    # Listing
    entries_page_size: int = 100
    max_entries_page_size: int = 1000

    # Goal revalidation
    revalidation_entry_limit: int = 1000  # Full read of a user's history, capped
    revalidate_in_background: bool = False  # Detach revalidation from the request

    # Summary stats read at most this many entries
    stats_entry_limit: int = 10000

    # Profile defaults for users who never saved preferences
    default_unit: str = "lbs"
    default_timezone: str = "UTC"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
