"""Written-request persistence model.

One row per paid-upsell request; the webhook and checkout apps share it.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from ukprofit.common.db import Base
from ukprofit.common.state_machine import DRAFT, PAID


class WrittenRequest(Base):
    """Questions, requester identity and payment correlation for one breakdown."""

    __tablename__ = "written_requests"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    status: Mapped[str] = mapped_column(String, index=True, default=DRAFT)
    user_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    guest_email: Mapped[str | None] = mapped_column(String, nullable=True)
    question_1: Mapped[str] = mapped_column(String(200), default="")
    question_2: Mapped[str] = mapped_column(String(200), default="")
    question_3: Mapped[str] = mapped_column(String(200), default="")
    calculator_snapshot: Mapped[dict | None] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=True
    )
    stripe_session_id: Mapped[str | None] = mapped_column(String, nullable=True, unique=True, index=True)
    payment_intent_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    amount_paid_pence: Mapped[int | None] = mapped_column(Integer, nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    admin_notified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    @property
    def questions(self) -> list[str]:
        return [q for q in (self.question_1, self.question_2, self.question_3) if q]

    @property
    def is_paid(self) -> bool:
        return self.status == PAID
