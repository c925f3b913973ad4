"""Bearer token helpers.

Tokens are issued by the external auth service; this service only verifies
them and reads the caller's id and role.
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from tradie_market.core.config import get_settings
from tradie_market.schemas import TokenData

security = HTTPBearer()

ADMIN_ROLES = {"admin", "super_admin"}


def decode_access_token(token: str) -> TokenData:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials") from exc

    user_id = payload.get("sub")
    role = payload.get("role")
    if not all([user_id, role]):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials")
    return TokenData(user_id=user_id, role=role)


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> TokenData:
    return decode_access_token(credentials.credentials)


async def get_current_tradie(user: TokenData = Depends(get_current_user)) -> TokenData:
    if user.role != "tradie":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Tradie account required")
    return user


async def get_current_admin(user: TokenData = Depends(get_current_user)) -> TokenData:
    if user.role not in ADMIN_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required")
    return user
