"""
Services package.
Contains business logic and external service integrations.
"""
from fileshare.services.access_counter import AccessCounter
from fileshare.services.download_authorizer import DownloadAuthorizer, DownloadCapability
from fileshare.services.file import FileService
from fileshare.services.object_storage import BlobStore, ObjectStorageService
from fileshare.services.password_gate import GateState, PasswordGate, UnlockResult
from fileshare.services.share import ShareAccess, ShareService
from fileshare.services.share_store import ShareLinkStore
from fileshare.services.token_issuer import TokenIssuer

__all__ = [
    "AccessCounter",
    "BlobStore",
    "DownloadAuthorizer",
    "DownloadCapability",
    "FileService",
    "GateState",
    "ObjectStorageService",
    "PasswordGate",
    "ShareAccess",
    "ShareLinkStore",
    "ShareService",
    "TokenIssuer",
    "UnlockResult",
]
