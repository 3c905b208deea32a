"""
File model for storing uploaded file metadata.
The bytes live in object storage under ``storage_path``.
"""
from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import String, DateTime, Integer, BigInteger
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fileshare.database import Base
from fileshare.utils.clock import utcnow

if TYPE_CHECKING:
    from fileshare.models.share import ShareLink


class FileRecord(Base):
    """
    Metadata of an uploaded file. Immutable once created; deleting it
    removes its share links.
    """

    __tablename__ = "files"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    # Supplied by the identity provider, no local users table
    owner_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)

    # File metadata
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Storage information
    storage_path: Mapped[str] = mapped_column(
        String(500), nullable=False, unique=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )

    share_links: Mapped[List["ShareLink"]] = relationship(
        "ShareLink",
        back_populates="file",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<FileRecord(id={self.id}, filename={self.filename})>"
