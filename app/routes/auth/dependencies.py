from typing import Annotated, Optional
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from app.database import get_database
from app.core.clock import get_clock
from app.services.auth.security import security_service

# OAuth2 scheme
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

__all__ = ["get_database", "get_clock", "get_current_user_id", "oauth2_scheme"]


async def get_current_user_id(
    token: Annotated[Optional[str], Depends(oauth2_scheme)]
) -> Optional[str]:
    """Opaque user id of the caller, or None when the bearer token is missing/invalid"""
    token_data = security_service.verify_token(token, "access")
    if token_data is None:
        return None
    return token_data.user_id
