"""Stripe webhook signature verification."""

import stripe


class WebhookSignatureError(Exception):
    """Missing, malformed, expired or forged webhook signature."""


class StripeSignatureVerifier:
    """Checks the `stripe-signature` header (`t=...,v1=...`) against the raw body."""

    def __init__(self, secret: str, tolerance_seconds: int = 300) -> None:
        self.secret = secret
        self.tolerance_seconds = tolerance_seconds

    def verify(self, payload: bytes, signature_header: str | None) -> None:
        if not self.secret:
            raise WebhookSignatureError("webhook signing secret is not configured")
        if not signature_header:
            raise WebhookSignatureError("missing stripe-signature header")
        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise WebhookSignatureError("webhook body is not UTF-8") from exc
        try:
            stripe.WebhookSignature.verify_header(
                body, signature_header, self.secret, tolerance=self.tolerance_seconds
            )
        except stripe.SignatureVerificationError as exc:
            raise WebhookSignatureError(str(exc)) from exc
