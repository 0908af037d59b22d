from fastapi import APIRouter, Depends, HTTPException, Request
from sqlmodel import Session, select

from agency.api.deps import require_super_admin, user_roles
from agency.core.database import get_db
from agency.core.security import hash_password
from agency.models import User, UserPackage, UserRole
from agency.schemas import UserCreate, UserResponse
from agency.services.audit import write_audit

router = APIRouter()


def create_user(db: Session, email: str, password: str, full_name: str = "", role: str | None = None) -> User:
    user = User(email=email.strip().lower(), hashed_password=hash_password(password), full_name=full_name)
    db.add(user)
    db.commit()
    db.refresh(user)
    if role:
        db.add(UserRole(user_id=user.id, role=role))
        db.commit()
    return user


@router.get("")
def users_list(_=Depends(require_super_admin), db: Session = Depends(get_db)):
    users = db.exec(select(User).order_by(User.id)).all()
    return {
        "items": [
            UserResponse(id=u.id, email=u.email, full_name=u.full_name, roles=user_roles(db, u.id)).model_dump()
            for u in users
        ]
    }


@router.post("", response_model=UserResponse)
def user_create(
    body: UserCreate,
    request: Request,
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    if db.exec(select(User).where(User.email == body.email.lower())).first():
        raise HTTPException(status_code=400, detail="Email is already registered.")
    user = create_user(db, body.email, body.password, body.full_name, body.role)
    write_audit(db, request, admin.id, "set_setting", "users", {"user_id": user.id, "role": body.role})
    return UserResponse(id=user.id, email=user.email, full_name=user.full_name, roles=user_roles(db, user.id))


@router.get("/{user_id}/packages")
def user_packages(user_id: int, _=Depends(require_super_admin), db: Session = Depends(get_db)):
    rows = db.exec(select(UserPackage).where(UserPackage.user_id == user_id).order_by(UserPackage.id.desc())).all()
    return {"items": [r.model_dump(mode="json") for r in rows]}
