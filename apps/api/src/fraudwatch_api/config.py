"""Service configuration.

Every recognized setting is enumerated here with its default. Values are
resolved once from the environment at startup (after loading .env files)
and passed down explicitly; components never read the environment.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from fraudwatch_api.errors import ConfigurationError

logger = logging.getLogger("fraudwatch-api")

STORAGE_BACKENDS = ("auto", "memory", "sql")

_DEFAULT_JWT_SECRET = "CHANGE_ME_IN_PRODUCTION_32_BYTES!"


def _env_int(key: str, default: int) -> int:
    """Read an integer env var or raise a clear error."""
    value = os.getenv(key)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(
            f"Environment variable {key} must be an integer, got {value!r}"
        ) from e


def _env_float(key: str, default: float) -> float:
    """Read a float env var or raise a clear error."""
    value = os.getenv(key)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(
            f"Environment variable {key} must be a number, got {value!r}"
        ) from e


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class OTCSettings:
    """One-time code lifecycle settings."""

    code_length: int = 6
    ttl_minutes: int = 10
    max_attempts: int = 3
    cooldown_seconds: int = 60
    verified_grace_seconds: float = 5.0  # Verified codes stay readable this long
    verified_retention_seconds: int = 300  # Sweep removes verified codes after this
    sweep_interval_seconds: int = 300

    def __post_init__(self):
        if not 4 <= self.code_length <= 6:
            raise ConfigurationError("OTC code length must be between 4 and 6")
        if self.max_attempts < 1:
            raise ConfigurationError("OTC max attempts must be at least 1")


@dataclass(frozen=True)
class AlertSettings:
    """Bounds on per-user alert lists."""

    pending_cap: int = 100
    history_cap: int = 500
    history_default_limit: int = 50

    def __post_init__(self):
        if self.pending_cap < 1 or self.history_cap < 1:
            raise ConfigurationError("Alert list caps must be at least 1")
        if self.history_default_limit < 1:
            raise ConfigurationError("Alert history limit must be at least 1")


@dataclass(frozen=True)
class RiskSettings:
    """Crowd intelligence window."""

    window_days: int = 30


@dataclass(frozen=True)
class AuthSettings:
    """Session token settings."""

    jwt_secret: str = _DEFAULT_JWT_SECRET
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30


@dataclass(frozen=True)
class StorageSettings:
    """Which storage provider to select at startup."""

    backend: str = "auto"  # auto | memory | sql
    database_url: str | None = None
    create_tables: bool = True

    def __post_init__(self):
        if self.backend not in STORAGE_BACKENDS:
            raise ConfigurationError(
                f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}"
            )


@dataclass(frozen=True)
class Settings:
    """Complete service configuration."""

    otc: OTCSettings = field(default_factory=OTCSettings)
    alerts: AlertSettings = field(default_factory=AlertSettings)
    risk: RiskSettings = field(default_factory=RiskSettings)
    auth: AuthSettings = field(default_factory=AuthSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    cors_origins: tuple[str, ...] = ("http://localhost:3000",)

    @classmethod
    def from_env(cls) -> "Settings":
        """Resolve settings from environment variables."""
        otc = OTCSettings(
            code_length=_env_int("OTC_LENGTH", 6),
            ttl_minutes=_env_int("OTC_TTL_MINUTES", 10),
            max_attempts=_env_int("OTC_MAX_ATTEMPTS", 3),
            cooldown_seconds=_env_int("OTC_COOLDOWN_SECONDS", 60),
            verified_grace_seconds=_env_float("OTC_VERIFIED_GRACE_SECONDS", 5.0),
            verified_retention_seconds=_env_int("OTC_VERIFIED_RETENTION_SECONDS", 300),
            sweep_interval_seconds=_env_int("OTC_SWEEP_INTERVAL_SECONDS", 300),
        )
        alerts = AlertSettings(
            pending_cap=_env_int("ALERT_PENDING_CAP", 100),
            history_cap=_env_int("ALERT_HISTORY_CAP", 500),
            history_default_limit=_env_int("ALERT_HISTORY_DEFAULT_LIMIT", 50),
        )
        risk = RiskSettings(window_days=_env_int("RISK_WINDOW_DAYS", 30))

        jwt_secret = os.getenv("JWT_SECRET_KEY", _DEFAULT_JWT_SECRET)
        if jwt_secret == _DEFAULT_JWT_SECRET:
            logger.warning("JWT_SECRET_KEY not set - using development secret")
        auth = AuthSettings(
            jwt_secret=jwt_secret,
            algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            access_token_expire_minutes=_env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 30),
        )

        database_url = os.getenv("DATABASE_URL") or None
        storage = StorageSettings(
            backend=os.getenv("STORAGE_BACKEND", "auto").strip().lower(),
            database_url=database_url,
            create_tables=_env_bool("DATABASE_CREATE_TABLES", True),
        )

        origins = os.getenv("CORS_ORIGIN", "http://localhost:3000")
        cors_origins = tuple(o.strip() for o in origins.split(",") if o.strip())

        return cls(
            otc=otc,
            alerts=alerts,
            risk=risk,
            auth=auth,
            storage=storage,
            cors_origins=cors_origins,
        )


def load_settings(project_root: Path | None = None) -> Settings:
    """Load .env files and resolve settings. Fails fast with clear errors."""
    if project_root is not None:
        load_dotenv(project_root / ".env.local")
    load_dotenv()  # Also try default .env
    return Settings.from_env()
