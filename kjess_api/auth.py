import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi import Header, Request
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import crud
from .config import Settings
from .errors import AuthenticationError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@dataclass(frozen=True)
class AdminIdentity:
    username: str


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def seed_admin(db: Session, settings: Settings) -> None:
    """Create the admin row from ADMIN_PASSWORD when none exists yet."""
    if crud.get_admin(db):
        return
    if not settings.admin_password:
        logger.warning("No admin account and ADMIN_PASSWORD is not set; admin login is disabled")
        return
    crud.create_admin(db, hash_password(settings.admin_password))
    logger.info("Admin account created")


def authenticate(db: Session, settings: Settings, password: str) -> str:
    admin = crud.get_admin(db)
    if not admin or not pwd_context.verify(password, admin.password):
        logger.warning("Rejected admin login")
        raise AuthenticationError(message="Invalid password")

    expires = datetime.now(timezone.utc) + timedelta(minutes=settings.admin_token_ttl_minutes)
    return jwt.encode({"sub": admin.username, "exp": expires}, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def require_admin(request: Request, x_admin_token: str = Header(None)) -> AdminIdentity:
    """FastAPI dependency: the caller's admin identity, or 401."""
    if not x_admin_token:
        raise AuthenticationError(message="Missing X-Admin-Token header")
    settings: Settings = request.app.state.settings
    try:
        payload = jwt.decode(x_admin_token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise AuthenticationError(message="Invalid or expired admin token")
    username = payload.get("sub")
    if not username:
        raise AuthenticationError(message="Invalid or expired admin token")
    return AdminIdentity(username=username)
