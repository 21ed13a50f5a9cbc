"""API request/response schemas for checkout endpoints."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_QUESTION_LENGTH = 200
QUESTION_COUNT = 3


class CheckoutRequest(BaseModel):
    """Body accepted by `POST /stripe/checkout-session`."""

    model_config = ConfigDict(populate_by_name=True)

    guest_email: str = Field(default="", alias="guestEmail")
    questions: list[Any] = Field(default_factory=list)
    calculator_snapshot: dict[str, Any] | None = Field(default=None, alias="calculatorSnapshot")

    @field_validator("questions", mode="before")
    @classmethod
    def questions_as_list(cls, value: Any) -> list:
        # Anything but an array reads as no questions and fails the count check.
        return value if isinstance(value, list) else []

    @field_validator("guest_email", mode="before")
    @classmethod
    def strip_guest_email(cls, value: Any) -> str:
        return value.strip() if isinstance(value, str) else ""


class CheckoutResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(serialization_alias="sessionId")
    url: str


class WrittenRequestStatus(BaseModel):
    paid: bool
    status: str
