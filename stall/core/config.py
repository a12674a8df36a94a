"""
Stall Service — Configuration
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    SERVICE_NAME: str = "stall-service"
    SERVICE_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # ── PostgreSQL ────────────────────────────────────────────
    DATABASE_URL: str = ""          # overrides the POSTGRES_* parts when set
    POSTGRES_HOST: str = "stall-db"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "stall_db"
    POSTGRES_USER: str = "stall_user"
    POSTGRES_PASSWORD: str = "stall_pass"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # ── Redis ─────────────────────────────────────────────────
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""

    @property
    def redis_url(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # ── JWT (issued elsewhere, verified here) ─────────────────
    JWT_SECRET_KEY: str = "CHANGE_ME_IN_PRODUCTION"
    JWT_ALGORITHM: str = "HS256"

    # ── Payment gateway (payment status is always read from here) ──
    PAYMENT_GATEWAY_URL: str = "https://stg-api.sandbox.paypay.ne.jp"
    PAYMENT_GATEWAY_API_KEY: str = ""
    PAYMENT_GATEWAY_MERCHANT_ID: str = ""
    HTTP_TIMEOUT_SECONDS: float = 5.0

    # ── Menu ──────────────────────────────────────────────────
    SEED_MENU: bool = True                # insert the default menu when empty

    # ── Optimistic Locking Retry ──────────────────────────────
    OPT_LOCK_MAX_RETRIES: int = 5
    OPT_LOCK_BASE_DELAY_MS: int = 10      # base exponential backoff delay in ms
    OPT_LOCK_MAX_DELAY_MS: int = 200      # max backoff cap in ms
    OPT_LOCK_JITTER_MS: int = 10          # random jitter range in ms

    # ── Idempotency ───────────────────────────────────────────
    IDEMPOTENCY_KEY_TTL_SECONDS: int = 86400

    # ── Pickup Time Slots ─────────────────────────────────────
    SLOT_COUNT: int = 12
    SLOT_INTERVAL_MINUTES: int = 10
    SLOT_CAPACITY: int = 10
    SLOT_LEAD_MINUTES: int = 5            # earliest pickup is now + lead, rounded up

    # ── Observability ─────────────────────────────────────────
    NOTIFICATIONS_ENABLED: bool = True
    METRICS_ENABLED: bool = True
    HEALTH_CHECK_TIMEOUT: float = 5.0


@lru_cache()
def get_settings() -> Settings:
    return Settings()
