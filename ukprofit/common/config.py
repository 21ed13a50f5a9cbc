"""Central environment-driven settings shared by the webhook and checkout apps.

Each service process loads this once at startup. Behavior is controlled by
environment variables (see `.env.example`).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "unknown-service"
    log_level: str = "INFO"
    environment: str = "production"
    postgres_dsn: str
    redis_url: str = "redis://redis:6379/0"
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_webhook_tolerance_seconds: int = 300
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""
    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com"
    notification_from_email: str = "noreply@ukprofit.co.uk"
    admin_email: str = ""
    site_url: str = "http://localhost:3000"
    written_breakdown_price_pence: int = 3900
    checkout_rate_limit_per_minute: int = 5
    tracing_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = CommonSettings()
