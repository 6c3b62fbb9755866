from typing import Optional

from fastapi import Cookie, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from quizdesk.database import get_db
from quizdesk.models import AdminUser
from quizdesk.security import verify_token

# Bearer header is optional: browser pages authenticate with the cookie
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


# ---------- TOKEN ----------


def _load_admin_from_token(token: str, db: Session) -> Optional[AdminUser]:
    """
    Decodes the token and loads the admin it names.
    Returns None if the token or the account is not valid.
    """
    try:
        admin_id = verify_token(token)
    except HTTPException:
        return None
    return db.get(AdminUser, admin_id)


# ---------- CURRENT ADMIN ----------


def get_current_admin_optional(
    access_token: Optional[str] = Cookie(default=None, alias="access_token"),
    bearer: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> Optional[AdminUser]:
    """
    Admin if the request carries a valid cookie or bearer token, else None.
    Pages use it to show or hide admin navigation.
    """
    token = bearer or access_token
    if not token:
        return None
    return _load_admin_from_token(token, db)


def require_admin(
    admin: Optional[AdminUser] = Depends(get_current_admin_optional),
) -> AdminUser:
    """Mandatory auth: 401 if there is no token or it does not resolve."""
    if admin is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return admin


def admin_exists(db: Session) -> bool:
    return db.query(AdminUser).first() is not None
