"""
Database models package.
All models are exported here for easy import.
"""
from fileshare.models.file import FileRecord
from fileshare.models.share import ShareLink

__all__ = ["FileRecord", "ShareLink"]
