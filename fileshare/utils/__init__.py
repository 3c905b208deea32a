"""
Utility functions package.
"""
from fileshare.utils.security import (
    create_access_token,
    decode_access_token,
    generate_share_token,
    hash_password,
    verify_password,
)

__all__ = [
    "create_access_token",
    "decode_access_token",
    "generate_share_token",
    "hash_password",
    "verify_password",
]
