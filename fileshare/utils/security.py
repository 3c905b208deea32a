"""
Security helpers: share tokens, share password hashing and owner JWTs.
"""
import secrets
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from fileshare.config import get_settings
from fileshare.schemas.auth import TokenPayload


# bcrypt only reads the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72


@lru_cache()
def get_password_context() -> CryptContext:
    """bcrypt context for share link passwords (cost from settings)."""
    settings = get_settings()
    return CryptContext(
        schemes=["bcrypt"],
        deprecated="auto",
        bcrypt__rounds=settings.share_password_hash_rounds,
    )


def is_hashable_password(password: str) -> bool:
    """bcrypt rejects NUL bytes and ignores everything after 72 bytes."""
    return "\x00" not in password and len(password.encode("utf-8")) <= BCRYPT_MAX_BYTES


def hash_password(password: str) -> str:
    """
    Hash a share link password with a per-hash random salt.

    Args:
        password: Plain text password

    Returns:
        bcrypt hash in modular crypt format
    """
    return get_password_context().hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against a stored hash.
    The digest comparison inside passlib is constant time.

    Args:
        plain_password: Password submitted by the consumer
        hashed_password: Hash stored on the share link

    Returns:
        True if the password matches
    """
    return get_password_context().verify(plain_password, hashed_password)


def generate_share_token(nbytes: Optional[int] = None) -> str:
    """
    Generate an unguessable URL-safe share token.

    Args:
        nbytes: Random bytes of entropy (default from settings, at least 16)

    Returns:
        Random URL-safe token string
    """
    if nbytes is None:
        nbytes = get_settings().share_token_bytes
    return secrets.token_urlsafe(nbytes)


def create_access_token(
    owner_id: int,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create an owner JWT. Tokens are normally minted by the identity
    provider; this exists for operators and tests.
    """
    settings = get_settings()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    to_encode = {
        "sub": str(owner_id),
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> Optional[TokenPayload]:
    """
    Decode and validate an owner JWT.

    Returns:
        TokenPayload if valid, None if invalid or expired
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        owner_id = payload.get("sub")
        exp = payload.get("exp")
        if owner_id is None or exp is None:
            return None

        return TokenPayload(
            sub=int(owner_id),
            exp=datetime.fromtimestamp(exp, tz=timezone.utc),
        )

    except (JWTError, ValueError, TypeError):
        return None
