"""
Configuration for Hearing Scheduler
===================================

Environment variables:
- DEFAULT_TIMEZONE: IANA zone used when a hearing has none (default: Asia/Kolkata)
- DEFAULT_HEARING_TIME: Local time used when a hearing has none (default: 10:00)
- DEFAULT_DURATION_MINUTES: Hearing length when none is given (default: 60)
- REJECT_PAST_HEARINGS: Reject scheduled hearings dated before today (default: true)
- SCHEDULING_LOCK_TIMEOUT: Seconds to wait for the per-owner scheduling lock (default: 10)
- CONFLICT_QUERY_TIMEOUT_MS: Statement/lock timeout for conflict queries on PostgreSQL (default: 5000)
- PROPAGATION_MODE: inline|rq - how next-hearing recomputation is dispatched (default: inline)
- REDIS_URL: Redis connection for rq mode
- JWT_SECRET_KEY / JWT_ALGORITHM: Verification of bearer tokens issued by the auth service
- APP_ENV: development|staging|production (default: development)
- ALLOW_USER_ID_HEADER: Accept X-User-Id without a token (default: only when APP_ENV=development)
- CORS_ALLOW_ORIGINS: Comma separated origins

DATABASE_URL is read directly by db.session so tests can swap it at runtime.
"""

from enum import Enum
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings


DEV_JWT_SECRET = "dev-secret-key-change-in-production"


class PropagationMode(str, Enum):
    """How Case.next_hearing recomputation is dispatched"""
    INLINE = "inline"
    RQ = "rq"


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # Scheduling defaults
    default_timezone: str = "Asia/Kolkata"
    default_hearing_time: str = "10:00"
    default_duration_minutes: int = 60
    reject_past_hearings: bool = True

    # Concurrency
    scheduling_lock_timeout: float = 10.0
    conflict_query_timeout_ms: int = 5000

    # Derived field propagation
    propagation_mode: PropagationMode = PropagationMode.INLINE
    redis_url: Optional[str] = None
    propagation_queue: str = "default"

    # Auth (tokens are issued elsewhere; we only verify them)
    jwt_secret_key: str = DEV_JWT_SECRET
    jwt_algorithm: str = "HS256"
    # X-User-Id header fallback; None = only in development
    allow_user_id_header: Optional[bool] = None

    # Deployment
    app_env: str = "development"

    # HTTP
    cors_allow_origins: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:8000"

    # Service info
    service_version: str = "1.0.0"

    class Config:
        env_prefix = ""
        case_sensitive = False
        env_file = ".env"
        env_file_encoding = "utf-8"

    def cors_origins(self) -> List[str]:
        origins: List[str] = []
        for item in self.cors_allow_origins.split(","):
            origin = item.strip().strip('"').strip("'").rstrip("/")
            if origin:
                origins.append(origin)
        return origins

    def user_id_header_enabled(self) -> bool:
        if self.allow_user_id_header is not None:
            return self.allow_user_id_header
        return self.app_env.strip().lower() == "development"

    def validate_config(self) -> List[str]:
        """Validate configuration, return list of warnings"""
        warnings = []

        if self.jwt_secret_key == DEV_JWT_SECRET:
            warnings.append("JWT_SECRET_KEY is the development default")

        if self.allow_user_id_header and self.app_env.strip().lower() != "development":
            warnings.append("ALLOW_USER_ID_HEADER is on outside development (any caller can act as any owner)")

        if self.propagation_mode == PropagationMode.RQ and not self.redis_url:
            warnings.append("PROPAGATION_MODE=rq but REDIS_URL not set (recompute will run inline)")

        if self.default_duration_minutes <= 0:
            warnings.append("DEFAULT_DURATION_MINUTES must be positive")

        if self.scheduling_lock_timeout <= 0:
            warnings.append("SCHEDULING_LOCK_TIMEOUT must be positive")

        return warnings


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
