"""Startup-time helpers for safe config logging and fail-fast validation."""

import os

from ukprofit.common.config import CommonSettings
from ukprofit.common.logging import logger


CRITICAL_SETTINGS = [
    "stripe_secret_key",
    "stripe_webhook_secret",
    "postgres_dsn",
    "supabase_url",
    "supabase_anon_key",
]


def _safe_env(name: str) -> str:
    """Return env value with simple redaction for secret-like variable names."""

    value = os.getenv(name)
    if value is None:
        return "<unset>"
    if any(secret in name for secret in ["KEY", "SECRET", "PASSWORD", "TOKEN", "DSN"]):
        return "<redacted>"
    return value


def log_startup_config(service_name: str, keys: list[str]) -> None:
    """Log selected startup config keys for quick troubleshooting."""

    config = {"service": service_name}
    for key in keys:
        config[key] = _safe_env(key)
    logger.info("startup_config=%s", config)


def assert_critical_config(config: CommonSettings) -> None:
    """Fail fast on blank critical settings, but only in development.

    Production deployments may run the webhook and checkout apps with disjoint
    configuration, so the check is limited to local runs.
    """

    if config.environment != "development":
        return
    missing = [name.upper() for name in CRITICAL_SETTINGS if not str(getattr(config, name, "")).strip()]
    if missing:
        raise RuntimeError(f"Missing critical env variables in development: {', '.join(missing)}")
