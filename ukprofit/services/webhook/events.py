"""Typed view of the Stripe webhook events the reconciler acts on.

`parse_event` turns a verified body into one arm of `ProcessorEvent`: a
supported event with a validated `data.object`, or `UnsupportedEvent` for any
other type so callers can acknowledge and move on.
"""

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from ukprofit.services.written_requests.store import PaymentDetails


CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
CORRELATION_METADATA_KEY = "written_request_id"
CHECKOUT_PAYMENT_STATUS_PAID = "paid"


class InvalidEventPayloadError(ValueError):
    """Verified body that is not a well-formed event."""


def _expandable_id(value: Any) -> Any:
    # Stripe sends either the id or the expanded object.
    if isinstance(value, dict):
        return value.get("id")
    return value


class _StripeObject(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("metadata", mode="before")
    @classmethod
    def metadata_or_empty(cls, value: Any) -> Any:
        return value or {}

    def metadata_correlation_id(self) -> str | None:
        value = (self.metadata.get(CORRELATION_METADATA_KEY) or "").strip()
        return value or None


class CheckoutSession(_StripeObject):
    client_reference_id: str | None = None
    payment_intent: str | None = None
    amount_total: int | None = None
    currency: str | None = None
    payment_status: str | None = None

    @field_validator("payment_intent", mode="before")
    @classmethod
    def payment_intent_id_only(cls, value: Any) -> Any:
        return _expandable_id(value)


class PaymentIntent(_StripeObject):
    amount_received: int | None = None
    currency: str | None = None


class CheckoutSessionData(BaseModel):
    obj: CheckoutSession = Field(alias="object")


class PaymentIntentData(BaseModel):
    obj: PaymentIntent = Field(alias="object")


class CheckoutSessionCompleted(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    type: Literal["checkout.session.completed"]
    data: CheckoutSessionData

    def payment_complete(self) -> bool:
        # Delayed methods (Bacs, SEPA) complete the session while still `unpaid`.
        return self.data.obj.payment_status == CHECKOUT_PAYMENT_STATUS_PAID

    def correlation_id(self) -> str | None:
        session = self.data.obj
        fallback = (session.client_reference_id or "").strip()
        return session.metadata_correlation_id() or fallback or None

    def payment_details(self) -> PaymentDetails:
        session = self.data.obj
        return PaymentDetails(
            stripe_session_id=session.id,
            payment_intent_id=session.payment_intent,
            amount_paid_pence=session.amount_total,
            currency=session.currency,
        )


class PaymentIntentSucceeded(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    type: Literal["payment_intent.succeeded"]
    data: PaymentIntentData

    def payment_complete(self) -> bool:
        return True

    def correlation_id(self) -> str | None:
        return self.data.obj.metadata_correlation_id()

    def payment_details(self) -> PaymentDetails:
        intent = self.data.obj
        return PaymentDetails(
            payment_intent_id=intent.id,
            amount_paid_pence=intent.amount_received,
            currency=intent.currency,
        )


class UnsupportedEvent(BaseModel):
    """Any verified event type the reconciler does not act on."""

    id: str = ""
    type: str = ""


SupportedEvent = Annotated[
    Union[CheckoutSessionCompleted, PaymentIntentSucceeded],
    Field(discriminator="type"),
]
ProcessorEvent = Union[CheckoutSessionCompleted, PaymentIntentSucceeded, UnsupportedEvent]

SUPPORTED_EVENT_TYPES = {CHECKOUT_SESSION_COMPLETED, PAYMENT_INTENT_SUCCEEDED}
_supported_adapter = TypeAdapter(SupportedEvent)


def parse_event(payload: bytes | str) -> ProcessorEvent:
    """Parse a verified webhook body into a typed event."""

    try:
        raw = json.loads(payload)
    except ValueError as exc:
        raise InvalidEventPayloadError("webhook body is not valid JSON") from exc
    if not isinstance(raw, dict):
        raise InvalidEventPayloadError("webhook body is not a JSON object")

    event_type = raw.get("type")
    if not isinstance(event_type, str) or event_type not in SUPPORTED_EVENT_TYPES:
        return UnsupportedEvent(id=str(raw.get("id") or ""), type=str(event_type or ""))
    try:
        return _supported_adapter.validate_python(raw)
    except ValidationError as exc:
        raise InvalidEventPayloadError(f"malformed {event_type} event: {exc.error_count()} error(s)") from exc
