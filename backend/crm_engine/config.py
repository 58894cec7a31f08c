"""
Centralized application configuration.
"""
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "CRM Import/Export Engine"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./crm.db"

    # JWT Authentication (identity provider)
    jwt_secret_key: str = "your-super-secret-key-change-in-production-min-32-chars"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # CSV import
    csv_delimiter: str = ","
    import_preview_rows: int = 5
    max_upload_bytes: int = 10 * 1024 * 1024  # 10 MB
    duplicate_lookup_chunk_size: int = 500  # Values per IN (...) query

    # Import logs
    import_logs_page_size: int = 10

    # Bulk actions
    elevated_role: str = "admin"
    bulk_continue_on_error: bool = False  # False = abort on first store error

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get the cached application settings."""
    return Settings()
