"""Guarded reads and writes against the `written_requests` table.

Every status change is a single conditional UPDATE whose WHERE clause carries
the expected prior state, so concurrent writers race inside the database and
exactly one of them sees a matched row.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from ukprofit.common.state_machine import AWAITING_PAYMENT, DRAFT, PAID, validate_transition
from ukprofit.services.written_requests.models import WrittenRequest


class StoreUnavailableError(Exception):
    """The backing store could not complete a read or write."""


@dataclass(frozen=True)
class PaymentDetails:
    """Correlation and amount fields reported by the payment processor."""

    stripe_session_id: str | None = None
    payment_intent_id: str | None = None
    amount_paid_pence: int | None = None
    currency: str | None = None


class WrittenRequestStore:
    """Repository over `WrittenRequest` rows using a session factory."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    def _transition(self, request_id: str, from_status: str, to_status: str, **values) -> bool:
        """Apply one validated transition; True when this call changed the row."""

        validate_transition(from_status, to_status)
        try:
            with self.session_factory() as db:
                result = db.execute(
                    update(WrittenRequest)
                    .where(WrittenRequest.id == request_id, WrittenRequest.status == from_status)
                    .values(status=to_status, updated_at=datetime.now(timezone.utc), **values)
                )
                changed = result.rowcount == 1
                db.commit()
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(
                f"transition {from_status} -> {to_status} failed for written request {request_id}"
            ) from exc
        return changed

    def create(
        self,
        questions: list[str],
        user_id: str | None = None,
        guest_email: str | None = None,
        calculator_snapshot: dict | None = None,
    ) -> WrittenRequest:
        """Insert a new request in `draft`."""

        padded = (list(questions) + ["", "", ""])[:3]
        try:
            with self.session_factory() as db:
                row = WrittenRequest(
                    status=DRAFT,
                    user_id=user_id,
                    guest_email=guest_email,
                    question_1=padded[0],
                    question_2=padded[1],
                    question_3=padded[2],
                    calculator_snapshot=calculator_snapshot,
                )
                db.add(row)
                db.commit()
                return row
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("written request insert failed") from exc

    def attach_checkout_session(self, request_id: str, stripe_session_id: str) -> bool:
        """Record the checkout session and open the request for payment."""

        return self._transition(
            request_id,
            DRAFT,
            AWAITING_PAYMENT,
            stripe_session_id=func.coalesce(WrittenRequest.stripe_session_id, stripe_session_id),
        )

    def mark_paid(self, request_id: str, details: PaymentDetails) -> bool:
        """Move `awaiting_payment -> paid`; False when another delivery already did.

        Correlation ids are only filled in when still null.
        """

        values = {"paid_at": datetime.now(timezone.utc)}
        if details.stripe_session_id:
            values["stripe_session_id"] = func.coalesce(
                WrittenRequest.stripe_session_id, details.stripe_session_id
            )
        if details.payment_intent_id:
            values["payment_intent_id"] = func.coalesce(
                WrittenRequest.payment_intent_id, details.payment_intent_id
            )
        if details.amount_paid_pence is not None:
            values["amount_paid_pence"] = details.amount_paid_pence
        if details.currency:
            values["currency"] = details.currency.lower()
        return self._transition(request_id, AWAITING_PAYMENT, PAID, **values)

    def mark_notified(self, request_id: str) -> bool:
        """Stamp `admin_notified_at` once; False when it was already set."""

        try:
            with self.session_factory() as db:
                result = db.execute(
                    update(WrittenRequest)
                    .where(
                        WrittenRequest.id == request_id,
                        WrittenRequest.status == PAID,
                        WrittenRequest.admin_notified_at.is_(None),
                    )
                    .values(admin_notified_at=datetime.now(timezone.utc))
                )
                stamped = result.rowcount == 1
                db.commit()
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"notification stamp failed for written request {request_id}") from exc
        return stamped

    def get(self, request_id: str) -> WrittenRequest | None:
        try:
            with self.session_factory() as db:
                return db.get(WrittenRequest, request_id)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"written request {request_id} lookup failed") from exc

    def get_for_session(self, request_id: str, stripe_session_id: str) -> WrittenRequest | None:
        """Point read that only matches when the session id belongs to the request."""

        try:
            with self.session_factory() as db:
                return db.execute(
                    select(WrittenRequest).where(
                        WrittenRequest.id == request_id,
                        WrittenRequest.stripe_session_id == stripe_session_id,
                    )
                ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"written request {request_id} status lookup failed") from exc
