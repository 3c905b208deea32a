"""
Share link model for public file sharing.
"""
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fileshare.database import Base
from fileshare.utils.clock import utcnow

if TYPE_CHECKING:
    from fileshare.models.file import FileRecord


class ShareLink(Base):
    """
    Public access grant for one file, looked up by its token.

    Only ``accessed_count`` (atomic increment) and ``expires_at`` (revoke)
    change after creation.
    """

    __tablename__ = "share_links"
    __table_args__ = (
        CheckConstraint(
            "(has_password AND password_hash IS NOT NULL) "
            "OR (NOT has_password AND password_hash IS NULL)",
            name="ck_share_links_password_hash_presence",
        ),
        CheckConstraint("accessed_count >= 0", name="ck_share_links_accessed_count"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    file_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("files.id", ondelete="CASCADE"), index=True, nullable=False
    )

    # Unique share token (random string), the only external lookup key
    token: Mapped[str] = mapped_column(
        String(128), unique=True, index=True, nullable=False
    )

    # Password gate
    has_password: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Statistics
    accessed_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )

    file: Mapped["FileRecord"] = relationship("FileRecord", back_populates="share_links")

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True once ``expires_at`` has been reached."""
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utcnow())

    def __repr__(self) -> str:
        return f"<ShareLink(id={self.id}, token={self.token[:8]}...)>"
