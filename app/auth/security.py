from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from jose import jwt

from app.core.config import settings


def create_access_token(
    *, subject: Dict, expires_minutes: Optional[int] = None
) -> str:
    """Sign an access token. Sessions are issued by the identity service; this is used
    by internal tooling and tests, and shares its claims layout (user_id, tenant_id, role)."""
    if expires_minutes is None:
        expires_minutes = settings.access_token_expire_minutes

    to_encode = subject.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict:
    """Raises jose.JWTError when the signature or expiry is invalid."""
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
