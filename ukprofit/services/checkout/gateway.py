"""Stripe Checkout session creation for the written-breakdown product."""

from dataclasses import dataclass

import stripe

PRODUCT_NAME = "Written Breakdown"


class CheckoutGatewayError(Exception):
    """Stripe refused or could not create the session."""


@dataclass(frozen=True)
class CreatedSession:
    session_id: str
    url: str | None


class StripeCheckoutGateway:
    def __init__(self, api_key: str, site_url: str, price_pence: int, currency: str = "gbp") -> None:
        self.api_key = api_key
        self.site_url = site_url.rstrip("/")
        self.price_pence = price_pence
        self.currency = currency

    def create_session(
        self,
        written_request_id: str,
        customer_email: str,
        user_id: str | None,
        guest_email: str | None,
    ) -> CreatedSession:
        """Open a one-item payment session correlated to `written_request_id`.

        The same metadata is put on the session and its payment intent so
        either webhook event can be reconciled.
        """

        if not self.api_key:
            raise CheckoutGatewayError("STRIPE_SECRET_KEY is not configured")
        metadata = {"written_request_id": written_request_id, "user_id": user_id or "null"}
        if not user_id and guest_email:
            metadata["guest_email"] = guest_email
        page = f"{self.site_url}/written-breakdown"
        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                mode="payment",
                customer_email=customer_email,
                client_reference_id=written_request_id,
                line_items=[
                    {
                        "quantity": 1,
                        "price_data": {
                            "currency": self.currency,
                            "unit_amount": self.price_pence,
                            "product_data": {"name": PRODUCT_NAME},
                        },
                    }
                ],
                metadata=metadata,
                payment_intent_data={"metadata": metadata},
                success_url=f"{page}?request_id={written_request_id}&session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{page}?cancelled=1&request_id={written_request_id}",
            )
        except stripe.StripeError as exc:
            raise CheckoutGatewayError(str(exc)) from exc
        return CreatedSession(session_id=session.id, url=session.url)
