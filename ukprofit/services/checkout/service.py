"""Checkout initiation and status polling for written-breakdown requests.

Checkout creates the request as `draft`, opens a Stripe session carrying the
request id as metadata, then moves the request to `awaiting_payment` with the
session id attached. A request whose session never got attached stays `draft`
and can never be reconciled as paid.
"""

import re

from ukprofit.common.logging import logger, written_request_id_ctx
from ukprofit.common.metrics import checkout_sessions_total, written_request_transitions_total
from ukprofit.common.state_machine import AWAITING_PAYMENT
from ukprofit.services.checkout.gateway import CheckoutGatewayError
from ukprofit.services.checkout.schemas import (
    MAX_QUESTION_LENGTH,
    QUESTION_COUNT,
    CheckoutRequest,
    CheckoutResponse,
    WrittenRequestStatus,
)
from ukprofit.services.identity.client import IdentityLookupError
from ukprofit.services.written_requests.store import StoreUnavailableError

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class CheckoutValidationError(ValueError):
    """Client-side problem with a checkout request."""


class RateLimitExceededError(Exception):
    pass


class CheckoutUnavailableError(Exception):
    """Store or Stripe failure while starting checkout."""


def parse_bearer_token(header_value: str | None) -> str | None:
    if not header_value:
        return None
    scheme, _, token = header_value.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        return None
    return token


def normalize_questions(raw: list) -> list[str]:
    """Exactly three questions, each 1-200 characters once trimmed."""

    if len(raw) != QUESTION_COUNT:
        raise CheckoutValidationError("Please provide all 3 questions.")
    questions = [value.strip() if isinstance(value, str) else "" for value in raw]
    if any(not q or len(q) > MAX_QUESTION_LENGTH for q in questions):
        raise CheckoutValidationError(f"Each question must be between 1 and {MAX_QUESTION_LENGTH} characters.")
    return questions


class CheckoutService:
    def __init__(self, store, gateway, identity, rate_limiter=None, service_name: str = "checkout") -> None:
        self.store = store
        self.gateway = gateway
        self.identity = identity
        self.rate_limiter = rate_limiter
        self.service_name = service_name

    async def start_checkout(
        self,
        req: CheckoutRequest,
        authorization: str | None = None,
        client_ip: str = "unknown",
    ) -> CheckoutResponse:
        """Validate, persist, open a Stripe session and attach it to the request."""

        if self.rate_limiter is not None and not self.rate_limiter.allow(client_ip):
            checkout_sessions_total.labels(service=self.service_name, result="rate_limited").inc()
            raise RateLimitExceededError("Too many checkout attempts. Please try again shortly.")

        questions = normalize_questions(req.questions)

        try:
            user = await self.identity.get_user_from_access_token(parse_bearer_token(authorization))
        except IdentityLookupError as exc:
            # Treat as a guest checkout; the email check below still applies.
            logger.warning("checkout_identity_lookup_failed error=%s", exc)
            user = None

        email = (user.email if user else "") or req.guest_email
        if not EMAIL_RE.match(email):
            raise CheckoutValidationError("A valid email is required.")

        try:
            record = self.store.create(
                questions,
                user_id=user.id if user else None,
                guest_email=None if user else req.guest_email,
                calculator_snapshot=req.calculator_snapshot,
            )
        except StoreUnavailableError as exc:
            logger.error("written_request_insert_failed error=%s", exc)
            checkout_sessions_total.labels(service=self.service_name, result="failed").inc()
            raise CheckoutUnavailableError("Unable to create written request.") from exc

        token = written_request_id_ctx.set(record.id)
        try:
            return self._open_session(record, email, user)
        finally:
            written_request_id_ctx.reset(token)

    def _open_session(self, record, email: str, user) -> CheckoutResponse:
        try:
            session = self.gateway.create_session(
                record.id,
                customer_email=email,
                user_id=user.id if user else None,
                guest_email=record.guest_email,
            )
        except CheckoutGatewayError as exc:
            logger.error("checkout_session_create_failed error=%s", exc)
            checkout_sessions_total.labels(service=self.service_name, result="failed").inc()
            raise CheckoutUnavailableError("Unable to start checkout.") from exc
        if not session.url:
            checkout_sessions_total.labels(service=self.service_name, result="failed").inc()
            raise CheckoutUnavailableError("Unable to initialize payment session.")

        try:
            attached = self.store.attach_checkout_session(record.id, session.session_id)
        except StoreUnavailableError as exc:
            logger.error("checkout_session_attach_failed session_id=%s error=%s", session.session_id, exc)
            checkout_sessions_total.labels(service=self.service_name, result="failed").inc()
            raise CheckoutUnavailableError("Unable to persist payment session.") from exc
        if not attached:
            checkout_sessions_total.labels(service=self.service_name, result="failed").inc()
            raise CheckoutUnavailableError("Unable to persist payment session.")

        written_request_transitions_total.labels(service=self.service_name, to_status=AWAITING_PAYMENT).inc()
        checkout_sessions_total.labels(service=self.service_name, result="created").inc()
        logger.info("checkout_session_created session_id=%s", session.session_id)
        return CheckoutResponse(session_id=session.session_id, url=session.url)

    def get_status(self, request_id: str | None, session_id: str | None) -> WrittenRequestStatus:
        """Status for a request/session pair; unknown pairs read as awaiting payment."""

        request_id = (request_id or "").strip()
        session_id = (session_id or "").strip()
        if not request_id or not session_id:
            raise CheckoutValidationError("request_id and session_id are required")
        record = self.store.get_for_session(request_id, session_id)
        if record is None:
            return WrittenRequestStatus(paid=False, status=AWAITING_PAYMENT)
        return WrittenRequestStatus(paid=record.is_paid, status=record.status or AWAITING_PAYMENT)
