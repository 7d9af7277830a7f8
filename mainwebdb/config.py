"""Application configuration using pydantic-settings."""

from pathlib import Path
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via:
    1. Environment variables (e.g., DATA_DIR=/my/path)
    2. .env file in the project root

    The store path is derived from DATA_DIR by default but can be overridden.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # API settings
    api_title: str = "MainWebDB API"
    api_version: str = "0.1.0"
    debug: bool = True  # Default to True for development

    # Authentication (guards snapshot export/import/reset)
    admin_api_key: str | None = None

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Storage - the whole document graph lives in one DuckDB key/value file
    data_dir: Path = Path("./data")
    store_path: Path | None = None
    document_key: str = "mainwebdb"
    session_key: str = "gfxdb_session"
    session_tokens_key: str = "gfxdb_session_tokens"
    max_sessions_per_user: int = 5

    # API keys
    api_key_prefix: str = "gfx_"
    api_key_bytes: int = 24

    # Password hashing (bcrypt cost factor)
    password_hash_rounds: int = 12

    # Row writes are permissive unless strict validation is switched on
    strict_row_validation: bool = False

    # Query gateway
    query_endpoint: str = "/db-api"
    query_log_limit: int = 200

    @model_validator(mode="after")
    def set_default_paths(self) -> "Settings":
        """Set default paths based on data_dir if not explicitly provided."""
        if self.store_path is None:
            self.store_path = self.data_dir / "mainwebdb.duckdb"
        return self

    @property
    def storage_paths(self) -> dict[str, Path]:
        """Return all storage paths for health check validation."""
        return {
            "data_dir": self.data_dir,
        }


# Global settings instance
settings = Settings()
