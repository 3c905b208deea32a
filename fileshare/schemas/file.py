"""
File-related Pydantic schemas for request/response validation.
"""
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class FileResponse(BaseModel):
    """Schema for file metadata response."""

    id: int
    owner_id: int
    original_filename: str
    content_type: str
    file_size: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
