"""StatsSnapshot model - stores channel statistics over time for growth charts."""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class StatsSnapshot(Base):
    """Point-in-time statistics for one tracked channel.

    Append-only table. One row per channel per successful collection.
    Rows are removed only when their channel is deleted.
    """

    __tablename__ = "stats"
    __table_args__ = (
        Index("ix_stats_channel_recorded", "channel_id", "recorded_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("channels.id", ondelete="CASCADE"),
        nullable=False,
    )
    subscribers: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    total_views: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    videos: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    likes: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    channel: Mapped["TrackedChannel"] = relationship(
        "TrackedChannel", back_populates="snapshots"
    )

    def __repr__(self) -> str:
        return f"<StatsSnapshot channel={self.channel_id} subs={self.subscribers} at={self.recorded_at}>"
