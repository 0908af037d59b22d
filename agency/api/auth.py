import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlmodel import Session, select

from agency.api.deps import get_current_user, user_roles
from agency.core.clock import utcnow
from agency.core.database import get_db
from agency.core.rate_limit import limiter
from agency.core.security import create_access_token, verify_password
from agency.models import User
from agency.schemas import Token, UserLogin, UserResponse

router = APIRouter(prefix="/auth", tags=["auth"])
log = logging.getLogger("agency")


@router.post("/login", response_model=Token)
@limiter.limit("5/minute;20/hour")
def login(request: Request, body: UserLogin, db: Session = Depends(get_db)):
    user = db.exec(select(User).where(User.email == body.email.lower())).first()
    if not user or not verify_password(body.password, user.hashed_password):
        log.warning("failed login email=%s", body.email)
        raise HTTPException(status_code=401, detail="Invalid email or password.")
    user.last_login_at = utcnow()
    db.add(user)
    db.commit()
    return Token(access_token=create_access_token({"sub": str(user.id)}))


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return UserResponse(
        id=user.id or 0,
        email=user.email,
        full_name=user.full_name,
        roles=user_roles(db, user.id),
    )
