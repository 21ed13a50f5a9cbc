"""Payment reconciliation for Stripe webhook deliveries.

One delivery moves at most one written request from `awaiting_payment` to
`paid` and sends at most one admin email for it. Duplicate and concurrent
deliveries are absorbed by two conditional updates in the store: the status
transition itself, then the `admin_notified_at` stamp.
"""

from ukprofit.common.logging import event_id_ctx, logger, written_request_id_ctx
from ukprofit.common.metrics import (
    notifications_total,
    webhook_events_total,
    written_request_transitions_total,
)
from ukprofit.common.state_machine import PAID
from ukprofit.common.tracing import tracer
from ukprofit.services.identity.client import IdentityLookupError
from ukprofit.services.notification.sender import NotificationDeliveryError
from ukprofit.services.notification.templates import build_paid_notification
from ukprofit.services.webhook import schemas
from ukprofit.services.webhook.events import InvalidEventPayloadError, UnsupportedEvent, parse_event
from ukprofit.services.webhook.schemas import HandlerResult
from ukprofit.services.webhook.signature import WebhookSignatureError
from ukprofit.services.written_requests.models import WrittenRequest
from ukprofit.services.written_requests.store import StoreUnavailableError


class ReconciliationService:
    """Verifies, parses and applies payment-completion events.

    Collaborators are passed in so tests can swap the store, the identity
    provider and the email sender for fakes.
    """

    def __init__(
        self,
        verifier,
        store,
        sender,
        identity,
        notification_from: str,
        notification_to: str,
        service_name: str = "webhook",
    ) -> None:
        self.verifier = verifier
        self.store = store
        self.sender = sender
        self.identity = identity
        self.notification_from = notification_from
        self.notification_to = notification_to
        self.service_name = service_name

    def _count(self, event_type: str, outcome: str) -> None:
        webhook_events_total.labels(service=self.service_name, event_type=event_type, outcome=outcome).inc()

    async def handle_event(self, raw_body: bytes, signature_header: str | None) -> HandlerResult:
        """Process one delivery and return what the processor should be told."""

        try:
            self.verifier.verify(raw_body, signature_header)
        except WebhookSignatureError as exc:
            logger.warning("webhook_signature_rejected reason=%s", exc)
            self._count("unknown", schemas.INVALID_SIGNATURE)
            return HandlerResult.reject(400, schemas.INVALID_SIGNATURE, "Invalid signature")

        try:
            event = parse_event(raw_body)
        except InvalidEventPayloadError as exc:
            logger.warning("webhook_payload_rejected reason=%s", exc)
            self._count("unknown", schemas.INVALID_PAYLOAD)
            return HandlerResult.reject(400, schemas.INVALID_PAYLOAD, "Invalid payload")

        event_token = event_id_ctx.set(event.id)
        try:
            with tracer.start_as_current_span("webhook.reconcile") as span:
                span.set_attribute("stripe.event_id", event.id)
                span.set_attribute("stripe.event_type", event.type or "unknown")
                result = await self._reconcile(event)
                span.set_attribute("webhook.outcome", result.outcome)
                if result.written_request_id:
                    span.set_attribute("written_request.id", result.written_request_id)
        finally:
            event_id_ctx.reset(event_token)
        self._count(event.type or "unknown", result.outcome)
        return result

    async def _reconcile(self, event) -> HandlerResult:
        if isinstance(event, UnsupportedEvent):
            logger.info("webhook_event_ignored event_type=%s", event.type)
            return HandlerResult.ack(schemas.IGNORED)

        request_id = event.correlation_id()
        if not request_id:
            logger.error("webhook_missing_correlation_id event_type=%s", event.type)
            return HandlerResult.ack(schemas.MISSING_CORRELATION_ID)

        request_token = written_request_id_ctx.set(request_id)
        try:
            if not event.payment_complete():
                logger.info("webhook_payment_pending event_type=%s", event.type)
                return HandlerResult.ack(schemas.PAYMENT_PENDING, written_request_id=request_id)
            return await self._apply_payment(event, request_id)
        finally:
            written_request_id_ctx.reset(request_token)

    async def _apply_payment(self, event, request_id: str) -> HandlerResult:
        try:
            transitioned = self.store.mark_paid(request_id, event.payment_details())
        except StoreUnavailableError as exc:
            logger.error("written_request_update_failed event_type=%s error=%s", event.type, exc)
            return HandlerResult.reject(500, schemas.STORE_UNAVAILABLE, "Database update failed")

        if not transitioned:
            outcome = self._describe_skipped_transition(request_id)
            logger.info("written_request_not_transitioned event_type=%s outcome=%s", event.type, outcome)
            return HandlerResult.ack(outcome, written_request_id=request_id)

        written_request_transitions_total.labels(service=self.service_name, to_status=PAID).inc()
        logger.info("written_request_paid event_type=%s", event.type)
        return await self._notify(request_id)

    def _describe_skipped_transition(self, request_id: str) -> str:
        # Labels the zero-row case for logs only; the acknowledgment is the same.
        try:
            record = self.store.get(request_id)
        except StoreUnavailableError as exc:
            logger.warning("written_request_lookup_failed error=%s", exc)
            return schemas.ALREADY_PROCESSED
        if record is None:
            return schemas.NOT_FOUND
        return schemas.ALREADY_PROCESSED

    async def _notify(self, request_id: str) -> HandlerResult:
        try:
            record = self.store.get(request_id)
        except StoreUnavailableError as exc:
            logger.error("written_request_reload_failed error=%s", exc)
            notifications_total.labels(service=self.service_name, result="skipped").inc()
            return HandlerResult.ack(schemas.PAID_NOTIFICATION_FAILED, written_request_id=request_id)
        if record is None:
            logger.error("written_request_missing_after_transition")
            notifications_total.labels(service=self.service_name, result="skipped").inc()
            return HandlerResult.ack(schemas.PAID_NOTIFICATION_FAILED, written_request_id=request_id)
        if record.admin_notified_at is not None:
            logger.info("admin_notification_already_sent notified_at=%s", record.admin_notified_at.isoformat())
            return HandlerResult.ack(schemas.ALREADY_NOTIFIED, written_request_id=request_id)

        requester_email = await self._resolve_requester_email(record)
        message = build_paid_notification(
            record,
            requester_email,
            sender=self.notification_from,
            recipient=self.notification_to,
        )
        try:
            message_id = await self.sender.send(message)
        except NotificationDeliveryError as exc:
            logger.error("admin_notification_failed error=%s", exc)
            notifications_total.labels(service=self.service_name, result="failed").inc()
            return HandlerResult.ack(schemas.PAID_NOTIFICATION_FAILED, written_request_id=request_id)
        notifications_total.labels(service=self.service_name, result="sent").inc()
        logger.info("admin_notification_sent message_id=%s", message_id)

        try:
            if not self.store.mark_notified(request_id):
                logger.warning("admin_notification_stamp_skipped reason=already_stamped")
        except StoreUnavailableError as exc:
            logger.error("admin_notification_stamp_failed error=%s", exc)
        return HandlerResult.ack(schemas.PAID_NOTIFIED, written_request_id=request_id, notified=True)

    async def _resolve_requester_email(self, record: WrittenRequest) -> str | None:
        """Guest email first, then the account email; None when neither is known."""

        if record.guest_email:
            return record.guest_email
        if not record.user_id:
            return None
        try:
            return await self.identity.get_user_email(record.user_id)
        except IdentityLookupError as exc:
            logger.warning("requester_email_lookup_failed user_id=%s error=%s", record.user_id, exc)
            return None
