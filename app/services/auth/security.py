"""
Bearer credential verification.

Tokens are issued by the external auth service; this side only decodes them
to obtain the caller's opaque user id.
"""
import logging
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
from typing import Optional

from app.core import config
from app.models.auth.token import TokenData

logger = logging.getLogger(__name__)


class SecurityService:
    """Service for JWT access tokens"""

    def __init__(self, secret_key: Optional[str] = None, algorithm: Optional[str] = None):
        self._secret_key = secret_key
        self._algorithm = algorithm

    @property
    def secret_key(self) -> Optional[str]:
        return self._secret_key or config.SECRET_KEY

    @property
    def algorithm(self) -> str:
        return self._algorithm or config.ALGORITHM

    def create_access_token(self, user_id: str, expires_delta: Optional[timedelta] = None) -> str:
        """Create JWT access token (scripts and tests; production tokens come from the auth service)"""
        expire = datetime.now(timezone.utc) + (
            expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
        )
        to_encode = {"sub": user_id, "user_id": user_id, "exp": expire, "type": "access"}
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: Optional[str], token_type: str = "access") -> Optional[TokenData]:
        """Verify and decode JWT token"""
        if not token or not self.secret_key:
            return None
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.debug("Rejected bearer token: %s", e)
            return None

        # Verify token type
        if payload.get("type") != token_type:
            return None

        user_id = payload.get("user_id") or payload.get("sub")
        if not user_id:
            return None

        return TokenData(user_id=str(user_id), email=payload.get("email"))


security_service = SecurityService()
