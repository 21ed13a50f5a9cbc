"""Result of one webhook delivery, mapped 1:1 onto the HTTP response."""

from pydantic import BaseModel


# Acknowledged outcomes (HTTP 200).
IGNORED = "ignored"
MISSING_CORRELATION_ID = "missing_correlation_id"
PAYMENT_PENDING = "payment_pending"
NOT_FOUND = "not_found"
ALREADY_PROCESSED = "already_processed"
ALREADY_NOTIFIED = "already_notified"
PAID_NOTIFIED = "paid_notified"
PAID_NOTIFICATION_FAILED = "paid_notification_failed"
# Rejected outcomes.
INVALID_SIGNATURE = "invalid_signature"
INVALID_PAYLOAD = "invalid_payload"
STORE_UNAVAILABLE = "store_unavailable"


class HandlerResult(BaseModel):
    status_code: int = 200
    outcome: str
    written_request_id: str | None = None
    notified: bool = False
    error: str | None = None

    @classmethod
    def ack(cls, outcome: str, written_request_id: str | None = None, notified: bool = False) -> "HandlerResult":
        return cls(outcome=outcome, written_request_id=written_request_id, notified=notified)

    @classmethod
    def reject(cls, status_code: int, outcome: str, error: str) -> "HandlerResult":
        return cls(status_code=status_code, outcome=outcome, error=error)

    def body(self) -> dict:
        if self.status_code >= 400:
            return {"error": self.error or self.outcome}
        return {"received": True, "outcome": self.outcome}
