from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Scheduling policy. There is deliberately no default: a teacher without any
    # availability rows is either unconstrained (false) or unavailable (true).
    require_explicit_availability: bool = Field(..., alias="REQUIRE_EXPLICIT_AVAILABILITY")
    # Weekly-hour budget violations are warnings unless this is set.
    strict_weekly_hours: bool = Field(False, alias="STRICT_WEEKLY_HOURS")
    max_teacher_weekly_hours: int = Field(30, alias="MAX_TEACHER_WEEKLY_HOURS")
    teacher_workload_warning_hours: int = Field(25, alias="TEACHER_WORKLOAD_WARNING_HOURS")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], alias="CORS_ORIGINS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
