"""
Share subsystem error taxonomy.

Every error carries the HTTP status it maps to and a stable machine-readable
code. Routers do not translate these; the handler registered in
``fileshare.main`` renders them.
"""
from typing import Any, Dict, Optional


class ShareError(Exception):
    """Base error for the file sharing service."""

    status_code: int = 500
    code: str = "share_error"
    default_message: str = "Share operation failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code}


class NotFoundError(ShareError):
    """Unknown token, file or link, or an owner mismatch."""

    status_code = 404
    code = "not_found"
    default_message = "Not found"


class ExpiredLinkError(NotFoundError):
    """The link's expiry has elapsed. A soft-expired link is also "not found"."""

    status_code = 410
    code = "link_expired"
    default_message = "Share link has expired"


class ValidationError(ShareError):
    """Malformed input. ``constraint`` names the violated rule."""

    status_code = 422
    code = "validation_error"
    default_message = "Invalid input"

    def __init__(self, message: Optional[str] = None, constraint: Optional[str] = None):
        super().__init__(message)
        self.constraint = constraint

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.constraint:
            body["constraint"] = self.constraint
        return body


class AuthenticationError(ShareError):
    """Wrong or missing password for a protected link."""

    status_code = 401
    code = "invalid_password"
    default_message = "Incorrect password"


class NotAuthorizedError(ShareError):
    """Download requested while the password gate is locked."""

    status_code = 403
    code = "not_authorized"
    default_message = "Share link is locked"


class ConflictError(ShareError):
    """Could not obtain a unique token within the retry budget."""

    status_code = 409
    code = "conflict"
    default_message = "Could not allocate a unique share token"


class StorageError(ShareError):
    """Blob store or database backend failure that survived the retry."""

    status_code = 503
    code = "storage_unavailable"
    default_message = "Storage backend unavailable"
