import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def _env_int(name: str, default: int) -> int:
    v = (os.getenv(name) or "").strip()
    if not v:
        return default
    try:
        return int(v)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {v!r}")


def make_async_db_url(url: str) -> str:
    """Accepts Heroku/Railway-style DATABASE_URL and returns sqlalchemy async url."""
    if url.startswith("postgresql+asyncpg://") or url.startswith("sqlite+aiosqlite://"):
        return url
    if url.startswith("postgres://"):
        return "postgresql+asyncpg://" + url[len("postgres://") :]
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://") :]
    if url.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + url[len("sqlite://") :]
    raise RuntimeError("Unsupported DATABASE_URL format")


def make_sync_db_url(url: str) -> str:
    """Sync driver url for alembic."""
    if url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://") :]
    if url.startswith("postgresql+asyncpg://"):
        return "postgresql://" + url[len("postgresql+asyncpg://") :]
    if url.startswith("sqlite+aiosqlite://"):
        return "sqlite://" + url[len("sqlite+aiosqlite://") :]
    return url


@dataclass(frozen=True)
class Settings:
    database_url: str
    db_echo: bool = False

    # business defaults (percent of price)
    commission_percent: int = 20
    down_payment_percent: int = 20

    # Coupons
    coupon_default_discount: int = 10
    # how many times a colliding generated code is retried with a random suffix
    coupon_code_attempts: int = 8


def _load_settings() -> Settings:
    database_url_raw = os.getenv("DATABASE_URL", "").strip()
    if not database_url_raw:
        raise RuntimeError("DATABASE_URL is missing")

    commission_percent = _env_int("COMMISSION_PERCENT", 20)
    if not 0 <= commission_percent <= 100:
        raise RuntimeError("COMMISSION_PERCENT must be between 0 and 100")
    down_payment_percent = _env_int("DOWN_PAYMENT_PERCENT", 20)
    if not 0 <= down_payment_percent <= 100:
        raise RuntimeError("DOWN_PAYMENT_PERCENT must be between 0 and 100")

    return Settings(
        database_url=make_async_db_url(database_url_raw),
        db_echo=_env_bool("DB_ECHO", False),
        commission_percent=commission_percent,
        down_payment_percent=down_payment_percent,
        coupon_default_discount=_env_int("COUPON_DEFAULT_DISCOUNT", 10),
        coupon_code_attempts=max(1, _env_int("COUPON_CODE_ATTEMPTS", 8)),
    )


settings = _load_settings()
