"""Auth settings loaded from the environment."""

from pydantic import Field
from pydantic_settings import BaseSettings


class AuthSettings(BaseSettings):
    model_config = {"env_prefix": "AUTH_"}

    # Session lifetime and sweep cadence for the in-memory store
    session_duration_seconds: int = Field(default=7 * 24 * 3600, gt=0)
    session_cleanup_interval_seconds: int = Field(default=600, gt=0)

    # "argon2" in production, "simple" only for tests
    password_hasher: str = Field(default="argon2", pattern="^(argon2|simple)$")

    # SQLite database file path
    database_path: str = "backend/storage.db"

    session_cookie_name: str = Field(default="groupauth_session", min_length=1)

    # Cookie Secure flag -- True in production, False for local dev (HTTP)
    cookie_secure: bool = False
