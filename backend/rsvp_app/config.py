"""Application configuration via environment variables."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings loaded from .env or environment."""

    ENVIRONMENT: str = "development"
    DATABASE_URL: str = "sqlite:///./data/rsvp.db"
    CORS_ORIGINS: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"

    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    DEFAULT_PAGE_LIMIT: int = 10
    MAX_PAGE_LIMIT: int = 100

    # Attendance mirror (git working tree of per-event attendee files)
    MIRROR_ENABLED: bool = True
    MIRROR_REPO_PATH: str = "./rsvp-data"
    MIRROR_GIT_USER_NAME: str = "RSVP System"
    MIRROR_GIT_USER_EMAIL: str = "rsvp@system.com"
    MIRROR_COMMIT_TIMEOUT: float = 30.0
    MIRROR_WORKERS: int = 2
    MIRROR_TIMEZONE: str = "UTC"

    # Seeded on startup when missing. Change the password in production!
    ADMIN_USERNAME: str = "admin"
    ADMIN_EMAIL: str = "admin@rsvp.com"
    ADMIN_PASSWORD: str = "admin123"

    class Config:
        env_file = ".env"


settings = Settings()
