"""Shared fixtures: SQLite-backed store, signed webhook bodies and fake collaborators."""

import hashlib
import hmac
import json
import os
import time

os.environ.setdefault("POSTGRES_DSN", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("SERVICE_NAME", "test")

import pytest

from ukprofit.common.db import Base, create_db_engine, make_session_factory
from ukprofit.common.state_machine import AWAITING_PAYMENT
from ukprofit.services.checkout.gateway import CheckoutGatewayError, CreatedSession
from ukprofit.services.identity.client import AuthenticatedUser, IdentityLookupError
from ukprofit.services.notification.sender import NotificationDeliveryError
from ukprofit.services.webhook.service import ReconciliationService
from ukprofit.services.webhook.signature import StripeSignatureVerifier
from ukprofit.services.written_requests.models import WrittenRequest
from ukprofit.services.written_requests.store import WrittenRequestStore

WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture
def session_factory(tmp_path):
    engine = create_db_engine(f"sqlite+pysqlite:///{tmp_path / 'written_requests.db'}")
    Base.metadata.create_all(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return WrittenRequestStore(session_factory)


@pytest.fixture
def add_request(session_factory):
    """Insert a written request directly, bypassing checkout."""

    def _add(request_id: str = "R1", status: str = AWAITING_PAYMENT, **fields) -> WrittenRequest:
        values = {
            "question_1": "How do I price for VAT?",
            "question_2": "Is my ROAS sustainable?",
            "question_3": "What about self-employed tax?",
            "guest_email": "guest@example.com",
        }
        values.update(fields)
        with session_factory() as db:
            row = WrittenRequest(id=request_id, status=status, **values)
            db.add(row)
            db.commit()
            return row

    return _add


def signature_header(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    mac = hmac.new(secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256)
    return f"t={timestamp},v1={mac.hexdigest()}"


def checkout_completed_body(
    request_id: str | None = "R1",
    session_id: str = "cs_test_1",
    payment_intent: str | None = "pi_1",
    client_reference_id: str | None = None,
    event_id: str = "evt_1",
    payment_status: str = "paid",
) -> str:
    metadata = {"written_request_id": request_id} if request_id else {}
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "id": session_id,
                    "object": "checkout.session",
                    "metadata": metadata,
                    "client_reference_id": client_reference_id,
                    "payment_intent": payment_intent,
                    "amount_total": 3900,
                    "currency": "gbp",
                    "payment_status": payment_status,
                }
            },
        }
    )


def payment_intent_succeeded_body(request_id: str = "R1", intent_id: str = "pi_1", event_id: str = "evt_2") -> str:
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": "payment_intent.succeeded",
            "data": {
                "object": {
                    "id": intent_id,
                    "object": "payment_intent",
                    "metadata": {"written_request_id": request_id},
                    "amount_received": 3900,
                    "currency": "gbp",
                }
            },
        }
    )


class FakeSender:
    """Records messages; can be told to fail."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent = []

    async def send(self, message):
        if self.fail:
            raise NotificationDeliveryError("provider down")
        self.sent.append(message)
        return f"msg_{len(self.sent)}"


class FakeIdentity:
    def __init__(self, emails: dict | None = None, fail: bool = False, users: dict | None = None) -> None:
        self.emails = emails or {}
        self.users = users or {}
        self.fail = fail
        self.lookups = []

    async def get_user_email(self, user_id):
        self.lookups.append(user_id)
        if self.fail:
            raise IdentityLookupError("identity provider down")
        return self.emails.get(user_id)

    async def get_user_from_access_token(self, access_token):
        if self.fail:
            raise IdentityLookupError("identity provider down")
        if not access_token:
            return None
        user = self.users.get(access_token)
        return AuthenticatedUser(**user) if user else None


class FakeGateway:
    def __init__(self, fail: bool = False, url: str | None = "https://checkout.stripe.com/c/pay/cs_1") -> None:
        self.fail = fail
        self.url = url
        self.calls = []

    def create_session(self, written_request_id, customer_email, user_id, guest_email):
        self.calls.append(
            {
                "written_request_id": written_request_id,
                "customer_email": customer_email,
                "user_id": user_id,
                "guest_email": guest_email,
            }
        )
        if self.fail:
            raise CheckoutGatewayError("card processor unavailable")
        return CreatedSession(session_id=f"cs_{len(self.calls)}", url=self.url)


def make_reconciler(store, sender=None, identity=None, secret=WEBHOOK_SECRET) -> ReconciliationService:
    return ReconciliationService(
        verifier=StripeSignatureVerifier(secret, tolerance_seconds=300),
        store=store,
        sender=sender or FakeSender(),
        identity=identity or FakeIdentity(),
        notification_from="noreply@ukprofit.co.uk",
        notification_to="admin@ukprofit.co.uk",
    )


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def identity():
    return FakeIdentity()
