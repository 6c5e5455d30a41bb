import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError as PydanticValidationError

from tokenhub.config import settings
from tokenhub.core.exceptions import AuthenticationError

DEFAULT_TOKEN_TTL = timedelta(hours=1)


class TokenPayload(BaseModel):
    user_id: int
    sub: str  # subject, typically user's email


def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None,
    secret_key: Optional[str] = None,
) -> str:
    """Sign a bearer JWT. Used by tooling and tests; the auth provider issues real ones."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or DEFAULT_TOKEN_TTL)
    to_encode.update({"exp": expire})
    return jwt.encode(
        to_encode,
        secret_key or settings.SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_access_token(token: str, secret_key: Optional[str] = None) -> TokenPayload:
    """Verify a bearer JWT and return its payload."""
    try:
        payload = jwt.decode(
            token,
            secret_key or settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
        return TokenPayload.model_validate(payload)
    except (JWTError, PydanticValidationError):
        raise AuthenticationError("Invalid or expired token")


def compute_ipn_signature(raw_body: bytes, secret: str) -> str:
    """Hex HMAC-SHA512 of the raw request body, as sent in x-nowpayments-sig."""
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()


def verify_ipn_signature(raw_body: bytes, signature: Optional[str], secret: str) -> bool:
    if not signature or not secret:
        return False
    expected = compute_ipn_signature(raw_body, secret)
    return hmac.compare_digest(expected.lower(), signature.strip().lower())
