"""Mention model: one row per (entry, target URL) pair."""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UTCDateTime

if TYPE_CHECKING:
    from .entry import Entry


class Mention(Base):
    """A link from an entry to a target URL, tombstoned instead of deleted."""

    __tablename__ = "mentions"
    __table_args__ = (
        Index("idx_mentions_url", "url"),
        Index("idx_mentions_removed", "removed"),
    )

    eid: Mapped[str] = mapped_column(
        String, ForeignKey("entries.id", ondelete="CASCADE"), primary_key=True
    )
    url: Mapped[str] = mapped_column(String, primary_key=True)
    interaction: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    removed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Stays NULL until reconciliation changes the row
    updated: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    entry: Mapped["Entry"] = relationship(back_populates="mentions")

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Mention(eid={self.eid}, url={self.url}, "
            f"interaction={self.interaction}, removed={self.removed})>"
        )
