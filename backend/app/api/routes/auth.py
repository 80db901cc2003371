from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.deps import get_current_user, oauth2_scheme
from app.core.rate_limit import limiter
from app.core.security import create_access_token, decode_token, generate_session_id, verify_password
from app.models.activity import ActivityType
from app.models.user import User
from app.schemas.auth import TokenResponse, UserResponse
from app.services.activity import log_activity
from app.services.client_info import describe_request

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
@limiter.limit("20/minute")
def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    user = db.query(User).filter(User.email == form_data.username).first()
    if not user:
        raise HTTPException(status_code=400, detail="Incorrect email or password")

    if not verify_password(form_data.password, user.hashed_password):
        log_activity(
            db,
            user.id,
            ActivityType.login,
            is_successful=False,
            failure_reason="Invalid password",
            **describe_request(request),
        )
        raise HTTPException(status_code=400, detail="Incorrect email or password")

    if not user.is_active:
        raise HTTPException(status_code=403, detail="User inactive")

    session_id = generate_session_id()
    log_activity(db, user.id, ActivityType.login, session_id=session_id, **describe_request(request))
    return TokenResponse(access_token=create_access_token(str(user.id), session_id))


@router.post("/logout")
def logout(
    request: Request,
    token: str = Depends(oauth2_scheme),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    session_id = decode_token(token).get("sid")
    log_activity(db, current_user.id, ActivityType.logout, session_id=session_id, **describe_request(request))
    return {"status": "logged_out"}


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user
