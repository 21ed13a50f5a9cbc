"""Outbound email through the Resend HTTP API."""

from dataclasses import dataclass

import httpx


class NotificationDeliveryError(Exception):
    """An email could not be handed to the provider."""


@dataclass(frozen=True)
class EmailMessage:
    sender: str
    to: str
    subject: str
    text: str
    html: str | None = None


class ResendEmailSender:
    """Posts one message per call; no retries, no delivery tracking."""

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.resend.com",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def send(self, message: EmailMessage) -> str:
        """Send `message` and return the provider's message id."""

        if not self.api_key:
            raise NotificationDeliveryError("RESEND_API_KEY is not configured")
        if not message.to or not message.sender:
            raise NotificationDeliveryError("sender and recipient addresses are required")
        body = {
            "from": message.sender,
            "to": [message.to],
            "subject": message.subject,
            "text": message.text,
        }
        if message.html is not None:
            body["html"] = message.html
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(
                    f"{self.api_url}/emails",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=body,
                )
        except httpx.HTTPError as exc:
            raise NotificationDeliveryError(f"email provider request failed: {exc}") from exc
        if resp.status_code >= 400:
            raise NotificationDeliveryError(f"email provider returned {resp.status_code}: {resp.text}")
        return str(resp.json().get("id", ""))
