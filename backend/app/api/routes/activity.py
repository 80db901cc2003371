from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.deps import require_admin
from app.models.activity import UserActivityLog
from app.models.user import User
from app.schemas.activity import ActivityLogResponse

router = APIRouter(prefix="/user-activity", tags=["user-activity"])


@router.get("", response_model=list[ActivityLogResponse])
def list_activity_logs(
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    return (
        db.query(UserActivityLog)
        .order_by(UserActivityLog.timestamp.desc(), UserActivityLog.id.desc())
        .limit(limit)
        .all()
    )
