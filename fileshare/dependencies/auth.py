"""
Authentication and service dependencies for FastAPI.

Owners authenticate with a bearer JWT issued by the identity provider;
the ``sub`` claim is the owner id. Share consumers never authenticate.
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from fileshare.services.object_storage import BlobStore, get_storage_service
from fileshare.utils.security import decode_access_token

logger = logging.getLogger("fileshare.auth")

# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


async def get_current_owner_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> int:
    """
    Dependency resolving the authenticated owner.

    Returns:
        Owner id from the token's ``sub`` claim

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not credentials:
        logger.warning("Auth failed", extra={"event": "auth", "reason": "no_token"})
        raise credentials_exception

    token_payload = decode_access_token(credentials.credentials)
    if token_payload is None:
        logger.warning("Auth failed", extra={"event": "auth", "reason": "invalid_or_expired_token"})
        raise credentials_exception

    return token_payload.sub


def get_blob_store() -> BlobStore:
    """Blob store used by the request. Overridden in tests."""
    return get_storage_service()
