"""Stripe webhook receiver.

Verifies each delivery and reconciles it against `written_requests`; see
`ReconciliationService` for the status-code contract.
"""

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse

from ukprofit.common.config import settings
from ukprofit.common.db import SessionLocal
from ukprofit.common.logging import configure_logging, install_request_id
from ukprofit.common.metrics import install_http_metrics, metrics_response
from ukprofit.common.startup import assert_critical_config, log_startup_config
from ukprofit.common.tracing import instrument_app, setup_tracing
from ukprofit.services.identity.client import SupabaseAuthClient
from ukprofit.services.notification.sender import ResendEmailSender
from ukprofit.services.webhook.service import ReconciliationService
from ukprofit.services.webhook.signature import StripeSignatureVerifier
from ukprofit.services.written_requests.store import WrittenRequestStore

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(
    settings.service_name,
    [
        "SERVICE_NAME",
        "ENVIRONMENT",
        "POSTGRES_DSN",
        "STRIPE_WEBHOOK_SECRET",
        "SUPABASE_URL",
        "RESEND_API_KEY",
        "NOTIFICATION_FROM_EMAIL",
        "ADMIN_EMAIL",
    ],
)
assert_critical_config(settings)
service = ReconciliationService(
    verifier=StripeSignatureVerifier(
        settings.stripe_webhook_secret,
        tolerance_seconds=settings.stripe_webhook_tolerance_seconds,
    ),
    store=WrittenRequestStore(SessionLocal),
    sender=ResendEmailSender(settings.resend_api_key, api_url=settings.resend_api_url),
    identity=SupabaseAuthClient(
        settings.supabase_url,
        anon_key=settings.supabase_anon_key,
        service_role_key=settings.supabase_service_role_key,
    ),
    notification_from=settings.notification_from_email,
    notification_to=settings.admin_email,
    service_name=settings.service_name,
)

app = FastAPI(title="UK Profit Stripe Webhook")
instrument_app(app)
install_http_metrics(app, settings.service_name)
install_request_id(app)


@app.post("/stripe/webhook")
async def stripe_webhook(request: Request, stripe_signature: str | None = Header(default=None)):
    """Acknowledge, reject (400) or ask for redelivery (500) of one Stripe event."""

    payload = await request.body()
    result = await service.handle_event(payload, stripe_signature)
    return JSONResponse(result.body(), status_code=result.status_code)


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@app.get("/health")
def health():
    """Container health probe endpoint."""

    return {"ok": True}
