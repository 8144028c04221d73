"""
Bearer-token authentication.

Tokens are issued by the external identity provider. This module only checks
the signature and maps the ``sub`` claim, an email address, to an active user.
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from . import config, crud, models
from .database import get_db

# tokenUrl only feeds the OpenAPI docs
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="login")


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str) -> dict:
    return jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])


def token_subject(token: str) -> str:
    """The ``sub`` claim; 401 for a bad signature, an expired token or a missing claim."""
    try:
        subject = decode_token(token).get("sub")
    except JWTError as exc:
        raise _unauthorized() from exc
    if not subject:
        raise _unauthorized()
    return subject


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> models.User:
    user = crud.get_user_by_email(db, token_subject(token))
    if user is None:
        raise _unauthorized()
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return user
