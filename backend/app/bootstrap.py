import logging
import os
from datetime import timedelta

from sqlalchemy.orm import Session

from app.core.database import Base, SessionLocal, engine
from app.core.logging import configure_logging
from app.core.security import get_password_hash
from app.core.time import utcnow
from app.models import Inquiry, InquiryStage, Interaction, InteractionOutcome, User, UserRole

logger = logging.getLogger("app.bootstrap")

# (name, source, stage, days ago, outcomes logged against it)
DEMO_INQUIRIES = [
    ("John Doe", "FB_AD", InquiryStage.connected, 3, [InteractionOutcome.connected_interested]),
    ("Jane Smith", "WEBSITE", InquiryStage.qualified, 12, [InteractionOutcome.appointment_booked]),
    ("Mike Johnson", "REFERRAL", InquiryStage.counseling_scheduled, 40, [InteractionOutcome.appointment_booked]),
    ("Sarah Wilson", "WALK_IN", InquiryStage.new, 1, []),
    ("David Brown", "PHONE", InquiryStage.attempting_contact, 65, [InteractionOutcome.no_answer]),
    ("Lisa Garcia", "FB_AD", InquiryStage.considering, 90, [InteractionOutcome.no_answer, InteractionOutcome.connected_interested]),
    ("Tom Anderson", "WEBSITE", InquiryStage.ready_to_register, 120, [InteractionOutcome.appointment_booked]),
    ("Emma Davis", "FB_AD", InquiryStage.lost, 150, [InteractionOutcome.not_interested]),
]


def create_user(email: str, full_name: str, password: str, role: UserRole) -> User | None:
    db = SessionLocal()
    try:
        if db.query(User).filter(User.email == email).first():
            logger.info("user already exists: %s", email)
            return None

        user = User(
            email=email,
            full_name=full_name,
            hashed_password=get_password_hash(password),
            role=role,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("created %s: %s", role.value, email)
        return user
    finally:
        db.close()


def seed_demo_data(db: Session, owner: User) -> int:
    """Populate a handful of inquiries spread over the trend window. Skipped once any inquiry exists."""
    if db.query(Inquiry).first():
        return 0

    now = utcnow()
    for full_name, source, stage, days_ago, outcomes in DEMO_INQUIRIES:
        created_at = now - timedelta(days=days_ago)
        inquiry = Inquiry(
            full_name=full_name,
            marketing_source=source,
            stage=stage,
            created_by_id=owner.id,
            created_at=created_at,
        )
        db.add(inquiry)
        db.flush()
        for offset, outcome in enumerate(outcomes, start=1):
            db.add(
                Interaction(
                    inquiry_id=inquiry.id,
                    user_id=owner.id,
                    outcome=outcome,
                    created_at=created_at + timedelta(hours=offset),
                )
            )
    db.commit()
    return len(DEMO_INQUIRIES)


if __name__ == "__main__":
    configure_logging()
    Base.metadata.create_all(bind=engine)

    admin_email = os.getenv("BOOTSTRAP_ADMIN_EMAIL")
    admin_password = os.getenv("BOOTSTRAP_ADMIN_PASSWORD")
    if not (admin_email and admin_password):
        logger.warning("bootstrap skipped: set BOOTSTRAP_ADMIN_EMAIL and BOOTSTRAP_ADMIN_PASSWORD")
        raise SystemExit(0)

    create_user(admin_email, os.getenv("BOOTSTRAP_ADMIN_NAME", "CRM Administrator"), admin_password, UserRole.admin)

    if os.getenv("BOOTSTRAP_DEMO_DATA", "").lower() in {"1", "true", "yes"}:
        session = SessionLocal()
        try:
            admin = session.query(User).filter(User.email == admin_email).one()
            logger.info("seeded %s demo inquiries", seed_demo_data(session, admin))
        finally:
            session.close()
