"""Post a locally signed Stripe event to a running webhook.

Useful for manual duplicate-delivery testing without the Stripe CLI.
"""

import argparse
import hashlib
import hmac
import json
import time
from uuid import uuid4

import httpx

from ukprofit.common.config import settings


def build_event(written_request_id: str, event_type: str) -> dict:
    """Minimal event body with the correlation metadata the webhook reads."""

    metadata = {"written_request_id": written_request_id}
    if event_type == "payment_intent.succeeded":
        obj = {"id": f"pi_{uuid4().hex[:24]}", "metadata": metadata, "amount_received": 3900, "currency": "gbp"}
    else:
        obj = {
            "id": f"cs_test_{uuid4().hex[:24]}",
            "metadata": metadata,
            "client_reference_id": written_request_id,
            "payment_intent": f"pi_{uuid4().hex[:24]}",
            "amount_total": 3900,
            "currency": "gbp",
            "payment_status": "paid",
        }
    return {"id": f"evt_{uuid4().hex[:24]}", "object": "event", "type": event_type, "data": {"object": obj}}


def sign(payload: str, secret: str, timestamp: int | None = None) -> str:
    """Stripe `t=...,v1=...` signature header for `payload`."""

    timestamp = int(time.time()) if timestamp is None else timestamp
    mac = hmac.new(secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256)
    return f"t={timestamp},v1={mac.hexdigest()}"


def main() -> None:
    """Parse CLI args, sign one event and post it (optionally several times)."""

    parser = argparse.ArgumentParser(description="Post a signed Stripe event to the webhook.")
    parser.add_argument("--url", default="http://localhost:8000/stripe/webhook")
    parser.add_argument("--request-id", required=True)
    parser.add_argument(
        "--type",
        dest="event_type",
        default="checkout.session.completed",
        choices=["checkout.session.completed", "payment_intent.succeeded"],
    )
    parser.add_argument("--repeat", type=int, default=1, help="Deliver the same body N times")
    parser.add_argument("--secret", default=settings.stripe_webhook_secret)
    args = parser.parse_args()

    if not args.secret:
        raise SystemExit("Missing STRIPE_WEBHOOK_SECRET (or pass --secret)")

    payload = json.dumps(build_event(args.request_id, args.event_type))
    for attempt in range(1, args.repeat + 1):
        resp = httpx.post(
            args.url,
            content=payload,
            headers={"stripe-signature": sign(payload, args.secret), "content-type": "application/json"},
            timeout=10.0,
        )
        print(f"attempt={attempt} status={resp.status_code} body={resp.text}")


if __name__ == "__main__":
    main()
