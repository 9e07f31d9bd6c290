"""Entry model: one row per resolved source document."""

from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional
from uuid import uuid4

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UTCDateTime

if TYPE_CHECKING:
    from .mention import Mention


class Entry(Base):
    """A source document that has been fetched and parsed at least once."""

    __tablename__ = "entries"
    __table_args__ = (
        Index("idx_entries_canonical_url", "canonical_url", unique=True),
        Index("idx_entries_published", "published"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    url: Mapped[str] = mapped_column(String, nullable=False)
    # normalize_url() of the source, one entry per document however it is spelled
    canonical_url: Mapped[str] = mapped_column(String, nullable=False)
    published: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    type: Mapped[Optional[str]] = mapped_column(String, nullable=True)  # like, repost, reply, mention
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    raw: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    mfversion: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    mentions: Mapped[list["Mention"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Entry(id={self.id}, url={self.url}, type={self.type})>"
