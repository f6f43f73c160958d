"""JWT handling. Tokens are issued by the main app's login flow and shared via SECRET_KEY."""
from typing import Optional

from jose import JWTError, jwt

from tenantpay.config import settings


def decode_access_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT access token.

    Returns the payload if valid, None otherwise.
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
