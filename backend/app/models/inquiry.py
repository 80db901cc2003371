from datetime import datetime
import enum

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class InquiryStage(str, enum.Enum):
    new = "NEW"
    attempting_contact = "ATTEMPTING_CONTACT"
    connected = "CONNECTED"
    qualified = "QUALIFIED"
    counseling_scheduled = "COUNSELING_SCHEDULED"
    considering = "CONSIDERING"
    ready_to_register = "READY_TO_REGISTER"
    lost = "LOST"


# Stages that count as positive progression through the pipeline.
CONVERTED_STAGES = (
    InquiryStage.qualified,
    InquiryStage.counseling_scheduled,
    InquiryStage.ready_to_register,
)


class Inquiry(Base):
    __tablename__ = "inquiries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    full_name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), index=True)
    phone: Mapped[str | None] = mapped_column(String(30), index=True)
    marketing_source: Mapped[str | None] = mapped_column(String(80), index=True)
    stage: Mapped[InquiryStage] = mapped_column(Enum(InquiryStage), default=InquiryStage.new, nullable=False, index=True)
    notes: Mapped[str | None] = mapped_column(Text)
    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    created_by = relationship("User")
