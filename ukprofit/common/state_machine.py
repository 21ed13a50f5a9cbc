"""Written-request status transitions."""

DRAFT = "draft"
AWAITING_PAYMENT = "awaiting_payment"
PAID = "paid"

ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    DRAFT: {AWAITING_PAYMENT},
    AWAITING_PAYMENT: {PAID},
    PAID: set(),
}


def validate_transition(current: str, new: str) -> None:
    """Raise when a transition is not allowed by the state machine."""

    if new not in ALLOWED_TRANSITIONS.get(current, set()):
        raise ValueError(f"Invalid transition: {current} -> {new}")
