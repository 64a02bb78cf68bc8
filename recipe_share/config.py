from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent
ENV_FILE = BASE_DIR / ".env"


class Settings(BaseSettings):
    # Application
    PROJECT_NAME: str = "RecipeShare"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    # Default to a local sqlite file for development; override via .env in production.
    DATABASE_URL: str = "sqlite:///./recipe_share.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30  # seconds to wait for a pooled connection
    DB_STATEMENT_TIMEOUT_MS: int = 5000
    CREATE_TABLES: bool = False

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE), case_sensitive=True, extra="ignore"
    )


settings = Settings()
