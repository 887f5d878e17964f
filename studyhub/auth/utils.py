import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from studyhub.auth.schemas import CurrentUser, Role, TokenData
from studyhub.config import get_settings
from studyhub.errors import forbidden, unauthorized

logger = logging.getLogger(__name__)

settings = get_settings()

# Tokens are issued by the external identity provider; tokenUrl is only used by the docs UI
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def decode_access_token(token: str) -> TokenData:
    """Verify a token and return its claims. Raises 401 on any failure."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.info(f"Rejected access token: {e}")
        raise unauthorized()

    user_id = payload.get("sub")
    if not user_id:
        raise unauthorized()

    try:
        return TokenData(
            user_id=str(user_id),
            role=payload.get("role") or Role.STUDENT,
            name=payload.get("name"),
        )
    except ValidationError:
        raise unauthorized()


async def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> CurrentUser:
    """Get the current authenticated user from JWT token."""
    if not token:
        raise unauthorized("Not authenticated")
    token_data = decode_access_token(token)
    return CurrentUser(id=token_data.user_id, role=token_data.role, name=token_data.name)


def require_role(*roles: Role):
    """Dependency factory that admits only the given roles."""
    async def checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in roles:
            raise forbidden("Insufficient permissions")
        return current_user

    return checker
