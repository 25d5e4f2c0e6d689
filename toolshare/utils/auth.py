"""
Access tokens (python-jose) and password hashing (passlib bcrypt).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from passlib.context import CryptContext
from toolshare.config import settings
import uuid

ACCESS_TOKEN_TYPE = "access"
MIN_PASSWORD_LENGTH = 8

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)


@dataclass(frozen=True)
class TokenPayload:
    """Claims of a verified access token."""

    user_id: str
    email: str
    exp: datetime

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "TokenPayload":
        return cls(
            user_id=claims["sub"],
            email=claims["email"],
            exp=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        )


def create_access_token(
    user_id: uuid.UUID,
    email: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Sign an access token for a user.

    ``expires_delta`` overrides the configured lifetime; a negative value
    yields an already expired token.
    """
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta if expires_delta is not None else timedelta(minutes=settings.access_token_expire_minutes)
    claims = {
        "sub": str(user_id),
        "email": email,
        "type": ACCESS_TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> TokenPayload:
    """
    Check signature, expiry and token type.

    Raises:
        ExpiredSignatureError: The token is past its ``exp``
        JWTError: Bad signature, wrong type or missing claims
    """
    claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    if claims.get("type") != ACCESS_TOKEN_TYPE:
        raise JWTError(f"Expected an {ACCESS_TOKEN_TYPE} token")
    if not (claims.get("sub") and claims.get("email")):
        raise JWTError("Token is missing the subject or email claim")
    return TokenPayload.from_claims(claims)


def hash_password(password: str) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)
