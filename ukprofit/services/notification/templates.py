"""Admin notification content for paid written requests.

Rendering is kept apart from delivery: `build_paid_notification` returns an
`EmailMessage` that any sender can deliver. User-supplied text only reaches
HTML through autoescaped Jinja2 templates.
"""

import re
from datetime import datetime, timezone

from jinja2 import DictLoader, Environment, StrictUndefined, select_autoescape

from ukprofit.services.notification.sender import EmailMessage
from ukprofit.services.written_requests.models import WrittenRequest


UNKNOWN = "unknown"

TEMPLATES = {
    "written_request_paid.txt": """\
New Written Breakdown payment confirmed

Request ID: {{ request_id }}
Customer: {{ identity }}
Customer Email: {{ email }}
Payment Amount: {{ amount }}
Paid At: {{ paid_at }}

Questions:
{% for question in questions %}{{ loop.index }}) {{ question }}
{% else %}(none)
{% endfor %}
{%- for section in snapshot %}
{{ section.title }}:
{% for label, value in section.rows %}- {{ label }}: {{ value }}
{% endfor %}
{%- endfor %}
""",
    "written_request_paid.html": """\
<h2>New Written Breakdown payment confirmed</h2>
<table>
  <tr><th align="left">Request ID</th><td>{{ request_id }}</td></tr>
  <tr><th align="left">Customer</th><td>{{ identity }}</td></tr>
  <tr><th align="left">Customer Email</th><td>{{ email }}</td></tr>
  <tr><th align="left">Payment Amount</th><td>{{ amount }}</td></tr>
  <tr><th align="left">Paid At</th><td>{{ paid_at }}</td></tr>
</table>
<h3>Questions</h3>
{% if questions %}
<ol>
  {% for question in questions %}<li>{{ question }}</li>
  {% endfor %}
</ol>
{% else %}
<p>(none)</p>
{% endif %}
{% for section in snapshot %}
<h3>{{ section.title }}</h3>
<table>
  {% for label, value in section.rows %}<tr><th align="left">{{ label }}</th><td>{{ value }}</td></tr>
  {% endfor %}
</table>
{% endfor %}
""",
}

env = Environment(
    loader=DictLoader(TEMPLATES),
    autoescape=select_autoescape(["html"]),
    undefined=StrictUndefined,
    keep_trailing_newline=True,
)

CURRENCY_SYMBOLS = {"gbp": "£", "eur": "€", "usd": "$"}


def humanize_key(key: str) -> str:
    """`netProfit` / `net_profit` -> `Net profit`."""

    words = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", str(key)).replace("_", " ").replace("-", " ")
    words = " ".join(words.split()).lower()
    return words[:1].upper() + words[1:]


def format_value(value) -> str:
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, int):
        return f"{value:,}"
    if isinstance(value, float):
        return f"{value:,.2f}"
    if isinstance(value, (list, tuple)):
        return ", ".join(format_value(item) for item in value)
    return str(value)


def format_snapshot(snapshot: dict | None) -> list[dict]:
    """Flatten a calculator snapshot into titled sections of (label, value) rows.

    Nested mappings become their own section; scalar top-level entries are
    grouped under "Calculator snapshot".
    """

    if not snapshot:
        return []
    sections = []
    loose_rows = []
    for key, value in snapshot.items():
        if isinstance(value, dict):
            rows = [(humanize_key(k), format_value(v)) for k, v in value.items()]
            if rows:
                sections.append({"title": humanize_key(key), "rows": rows})
        else:
            loose_rows.append((humanize_key(key), format_value(value)))
    if loose_rows:
        sections.insert(0, {"title": "Calculator snapshot", "rows": loose_rows})
    return sections


def format_amount(amount_pence: int | None, currency: str | None) -> str:
    if amount_pence is None:
        return UNKNOWN
    code = (currency or "gbp").lower()
    major = f"{amount_pence / 100:,.2f}"
    symbol = CURRENCY_SYMBOLS.get(code)
    return f"{symbol}{major}" if symbol else f"{major} {code.upper()}"


def format_paid_at(paid_at: datetime | None) -> str:
    if paid_at is None:
        return UNKNOWN
    if paid_at.tzinfo is None:
        paid_at = paid_at.replace(tzinfo=timezone.utc)
    return paid_at.astimezone(timezone.utc).strftime("%d/%m/%Y, %H:%M UTC")


def describe_identity(record: WrittenRequest) -> str:
    if record.user_id:
        return f"Account user {record.user_id}"
    if record.guest_email:
        return "Guest"
    return UNKNOWN


def build_paid_notification(
    record: WrittenRequest,
    requester_email: str | None,
    sender: str,
    recipient: str,
) -> EmailMessage:
    """Compose the admin email for a request that has just been paid."""

    context = {
        "request_id": record.id,
        "identity": describe_identity(record),
        "email": requester_email or UNKNOWN,
        "amount": format_amount(record.amount_paid_pence, record.currency),
        "paid_at": format_paid_at(record.paid_at),
        "questions": record.questions,
        "snapshot": format_snapshot(record.calculator_snapshot),
    }
    return EmailMessage(
        sender=sender,
        to=recipient,
        subject=f"Written Breakdown Paid: {record.id}",
        text=env.get_template("written_request_paid.txt").render(**context),
        html=env.get_template("written_request_paid.html").render(**context),
    )
