from datetime import datetime
import enum

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class InteractionOutcome(str, enum.Enum):
    connected_interested = "CONNECTED_INTERESTED"
    no_answer = "NO_ANSWER"
    not_interested = "NOT_INTERESTED"
    appointment_booked = "APPOINTMENT_BOOKED"
    wrong_number = "WRONG_NUMBER"
    do_not_contact = "DO_NOT_CONTACT"


CONNECTED_OUTCOMES = (InteractionOutcome.connected_interested, InteractionOutcome.appointment_booked)


class Interaction(Base):
    __tablename__ = "interactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    inquiry_id: Mapped[int] = mapped_column(ForeignKey("inquiries.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    outcome: Mapped[InteractionOutcome] = mapped_column(Enum(InteractionOutcome), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
