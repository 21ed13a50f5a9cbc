"""Send a one-line test email to ADMIN_EMAIL through the configured provider."""

import argparse
import asyncio

from ukprofit.common.config import settings
from ukprofit.services.notification.sender import EmailMessage, NotificationDeliveryError, ResendEmailSender


def main() -> None:
    """CLI entrypoint for email configuration checks."""

    parser = argparse.ArgumentParser(description="Send a test email via Resend.")
    parser.add_argument("--to", default=settings.admin_email)
    parser.add_argument("--subject", default="UK Profit Test Email")
    args = parser.parse_args()

    if not args.to:
        raise SystemExit("Missing ADMIN_EMAIL (or pass --to)")

    sender = ResendEmailSender(settings.resend_api_key, api_url=settings.resend_api_url)
    message = EmailMessage(
        sender=settings.notification_from_email,
        to=args.to,
        subject=args.subject,
        text="Email system works",
        html="<strong>Email system works</strong>",
    )
    try:
        message_id = asyncio.run(sender.send(message))
    except NotificationDeliveryError as exc:
        raise SystemExit(f"Send failed: {exc}") from exc
    print(f"Sent message_id={message_id} to={args.to}")


if __name__ == "__main__":
    main()
