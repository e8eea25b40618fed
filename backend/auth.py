import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4

import bcrypt
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from config import settings
from models import RevokedToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserSession:
    """Who is acting. Created on sign-in, discarded on sign-out."""
    user_id: str
    email: str
    token_id: str


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash"""
    if isinstance(hashed_password, str):
        hashed_password = hashed_password.encode('utf-8')
    if isinstance(plain_password, str):
        plain_password = plain_password.encode('utf-8')
    try:
        return bcrypt.checkpw(plain_password, hashed_password)
    except ValueError as e:
        # Malformed stored hash
        logger.warning("Password verification error: %s", e)
        return False


def get_password_hash(password: str) -> str:
    """Hash a password"""
    if isinstance(password, str):
        password = password.encode('utf-8')
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password, salt).decode('utf-8')


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode.update({"exp": expire, "jti": str(uuid4())})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def is_revoked(db: Session, token_id: str) -> bool:
    return db.query(RevokedToken).filter(RevokedToken.jti == token_id).first() is not None


def revoke_session(db: Session, session: UserSession):
    """Sign out: the session's token is refused from now on."""
    if not is_revoked(db, session.token_id):
        db.add(RevokedToken(jti=session.token_id))
        db.commit()
    logger.info("Signed out user %s", session.user_id)
