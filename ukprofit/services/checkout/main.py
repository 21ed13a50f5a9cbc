"""Public checkout endpoints for the written-breakdown upsell."""

import redis
from fastapi import FastAPI, Header, HTTPException, Request

from ukprofit.common.config import settings
from ukprofit.common.db import SessionLocal
from ukprofit.common.logging import configure_logging, install_request_id
from ukprofit.common.metrics import install_http_metrics, metrics_response
from ukprofit.common.rate_limit import TokenBucketRateLimiter, client_ip
from ukprofit.common.startup import assert_critical_config, log_startup_config
from ukprofit.common.tracing import instrument_app, setup_tracing
from ukprofit.services.checkout.gateway import StripeCheckoutGateway
from ukprofit.services.checkout.schemas import CheckoutRequest, WrittenRequestStatus
from ukprofit.services.checkout.service import (
    CheckoutService,
    CheckoutUnavailableError,
    CheckoutValidationError,
    RateLimitExceededError,
)
from ukprofit.services.identity.client import SupabaseAuthClient
from ukprofit.services.written_requests.store import StoreUnavailableError, WrittenRequestStore

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(
    settings.service_name,
    [
        "SERVICE_NAME",
        "ENVIRONMENT",
        "POSTGRES_DSN",
        "REDIS_URL",
        "STRIPE_SECRET_KEY",
        "SUPABASE_URL",
        "SITE_URL",
        "WRITTEN_BREAKDOWN_PRICE_PENCE",
        "CHECKOUT_RATE_LIMIT_PER_MINUTE",
    ],
)
assert_critical_config(settings)
rdb = redis.Redis.from_url(settings.redis_url, decode_responses=True)
service = CheckoutService(
    store=WrittenRequestStore(SessionLocal),
    gateway=StripeCheckoutGateway(
        settings.stripe_secret_key,
        site_url=settings.site_url,
        price_pence=settings.written_breakdown_price_pence,
    ),
    identity=SupabaseAuthClient(
        settings.supabase_url,
        anon_key=settings.supabase_anon_key,
        service_role_key=settings.supabase_service_role_key,
    ),
    rate_limiter=TokenBucketRateLimiter(
        rdb,
        key_prefix="checkout",
        limit_per_minute=settings.checkout_rate_limit_per_minute,
    ),
    service_name=settings.service_name,
)

app = FastAPI(title="UK Profit Checkout")
instrument_app(app)
install_http_metrics(app, settings.service_name)
install_request_id(app)


@app.post("/stripe/checkout-session")
async def create_checkout_session(
    req: CheckoutRequest,
    request: Request,
    authorization: str | None = Header(default=None),
):
    """Create a draft written request and return the Stripe Checkout redirect."""

    try:
        response = await service.start_checkout(req, authorization=authorization, client_ip=client_ip(request))
    except RateLimitExceededError as exc:
        raise HTTPException(status_code=429, detail=str(exc)) from exc
    except CheckoutValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except CheckoutUnavailableError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return response.model_dump(by_alias=True)


@app.get("/stripe/written-request-status", response_model=WrittenRequestStatus)
def written_request_status(request_id: str | None = None, session_id: str | None = None):
    """Poll whether a request/session pair has been paid."""

    try:
        return service.get_status(request_id, session_id)
    except CheckoutValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=500, detail="Unable to load written request status.") from exc


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@app.get("/health")
def health():
    """Container health probe endpoint."""

    return {"ok": True}
