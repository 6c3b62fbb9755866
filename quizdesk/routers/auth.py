from fastapi import APIRouter, Depends, Form, HTTPException, Response
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from quizdesk.database import get_db
from quizdesk.deps import admin_exists, require_admin
from quizdesk.models import AdminUser
from quizdesk.schemas import Token
from quizdesk.security import create_token, hash_password, verify_password

router = APIRouter(prefix="/auth", tags=["auth"])


def create_admin(db: Session, email: str, password: str) -> AdminUser:
    """Creates the one admin account. Refuses once an admin exists."""
    email = (email or "").strip().lower()
    if not email or not password:
        raise HTTPException(400, "email and password are required")
    if admin_exists(db):
        raise HTTPException(409, "admin already exists")

    admin = AdminUser(email=email, password_hash=hash_password(password))
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


def authenticate(db: Session, email: str, password: str):
    admin = db.query(AdminUser).filter(AdminUser.email == (email or "").strip().lower()).first()
    if not admin or not verify_password(password, admin.password_hash):
        return None
    return admin


@router.post("/register")
def register(
    email: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db),
):
    admin = create_admin(db, email, password)
    return {"ok": True, "id": admin.id}


@router.post("/login")
def login(
    response: Response,
    email: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db),
):
    admin = authenticate(db, email, password)
    if admin is None:
        raise HTTPException(401, "Invalid login or password")

    token = create_token(admin.id)
    response.set_cookie("access_token", token, httponly=True)
    return {"ok": True}


@router.post("/token", response_model=Token)
def issue_token(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """
    OAuth2-compatible token endpoint for Swagger/clients.
    Accepts username/password, returns bearer token.
    """
    admin = authenticate(db, form_data.username, form_data.password)
    if admin is None:
        raise HTTPException(status_code=400, detail="Invalid credentials")

    return Token(access_token=create_token(admin.id))


@router.get("/me")
def me(admin: AdminUser = Depends(require_admin)):
    return {"id": admin.id, "email": admin.email}
