"""Admin email rendering and Resend delivery."""

import asyncio
import json
from datetime import datetime, timezone

import httpx
import pytest

from ukprofit.services.notification.sender import EmailMessage, NotificationDeliveryError, ResendEmailSender
from ukprofit.services.notification.templates import (
    build_paid_notification,
    format_amount,
    format_snapshot,
    humanize_key,
)
from ukprofit.services.written_requests.models import WrittenRequest


def paid_record(**overrides) -> WrittenRequest:
    values = {
        "id": "R1",
        "status": "paid",
        "guest_email": "guest@example.com",
        "question_1": "Is <b>VAT</b> & margin right?",
        "question_2": "Second question",
        "question_3": "",
        "amount_paid_pence": 3900,
        "currency": "gbp",
        "paid_at": datetime(2026, 3, 4, 9, 5, tzinfo=timezone.utc),
        "calculator_snapshot": {
            "mode": "ecommerce",
            "inputs": {"sellingPrice": 24.99, "vatRegistered": True, "units": 1200},
            "results": {"net_profit": 5.5},
        },
    }
    values.update(overrides)
    return WrittenRequest(**values)


def test_text_body_lists_request_details():
    message = build_paid_notification(paid_record(), "guest@example.com", "from@x.co", "admin@x.co")
    assert message.subject == "Written Breakdown Paid: R1"
    assert message.sender == "from@x.co"
    assert message.to == "admin@x.co"
    assert "Request ID: R1" in message.text
    assert "Customer: Guest" in message.text
    assert "Payment Amount: £39.00" in message.text
    assert "Paid At: 04/03/2026, 09:05 UTC" in message.text
    assert "1) Is <b>VAT</b> & margin right?" in message.text
    assert "2) Second question" in message.text
    assert "3)" not in message.text
    assert "- Selling price: 24.99" in message.text
    assert "- Net profit: 5.50" in message.text


def test_html_body_escapes_user_text():
    message = build_paid_notification(
        paid_record(guest_email="<script>x</script>@example.com"),
        "<script>x</script>@example.com",
        "from@x.co",
        "admin@x.co",
    )
    assert "<script>" not in message.html
    assert "&lt;script&gt;" in message.html
    assert "Is &lt;b&gt;VAT&lt;/b&gt; &amp; margin right?" in message.html


def test_unknown_fields_render_as_unknown():
    record = paid_record(guest_email=None, amount_paid_pence=None, paid_at=None, calculator_snapshot=None)
    message = build_paid_notification(record, None, "from@x.co", "admin@x.co")
    assert "Customer: unknown" in message.text
    assert "Customer Email: unknown" in message.text
    assert "Payment Amount: unknown" in message.text
    assert "Calculator snapshot" not in message.text


def test_snapshot_sections():
    sections = format_snapshot({"mode": "vat", "inputs": {"price": 10}, "empty": {}})
    assert sections[0] == {"title": "Calculator snapshot", "rows": [("Mode", "vat")]}
    assert sections[1] == {"title": "Inputs", "rows": [("Price", "10")]}
    assert len(sections) == 2


@pytest.mark.parametrize(
    "key,label",
    [("netProfit", "Net profit"), ("net_profit", "Net profit"), ("breakEvenROAS", "Break even roas"), ("vat", "Vat")],
)
def test_humanize_key(key, label):
    assert humanize_key(key) == label


def test_format_amount():
    assert format_amount(3900, "gbp") == "£39.00"
    assert format_amount(123456, "chf") == "1,234.56 CHF"


def message() -> EmailMessage:
    return EmailMessage(sender="from@x.co", to="admin@x.co", subject="s", text="t", html="<p>t</p>")


def test_resend_sender_posts_message():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "email_123"})

    sender = ResendEmailSender("re_key", transport=httpx.MockTransport(handler))
    assert asyncio.run(sender.send(message())) == "email_123"
    assert seen["url"] == "https://api.resend.com/emails"
    assert seen["auth"] == "Bearer re_key"
    assert seen["body"] == {
        "from": "from@x.co",
        "to": ["admin@x.co"],
        "subject": "s",
        "text": "t",
        "html": "<p>t</p>",
    }


def test_resend_sender_raises_on_provider_error():
    sender = ResendEmailSender(
        "re_key", transport=httpx.MockTransport(lambda request: httpx.Response(422, json={"message": "bad"}))
    )
    with pytest.raises(NotificationDeliveryError):
        asyncio.run(sender.send(message()))


def test_resend_sender_raises_on_transport_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    sender = ResendEmailSender("re_key", transport=httpx.MockTransport(handler))
    with pytest.raises(NotificationDeliveryError):
        asyncio.run(sender.send(message()))


def test_resend_sender_requires_configuration():
    with pytest.raises(NotificationDeliveryError):
        asyncio.run(ResendEmailSender("").send(message()))
    missing_recipient = EmailMessage(sender="from@x.co", to="", subject="s", text="t")
    with pytest.raises(NotificationDeliveryError):
        asyncio.run(ResendEmailSender("re_key").send(missing_recipient))
