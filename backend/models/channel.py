"""TrackedChannel model - a social channel whose statistics are collected hourly."""

import enum
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class Platform(str, enum.Enum):
    """Platforms whose channel statistics can be tracked."""
    YOUTUBE = "youtube"
    TIKTOK = "tiktok"


class TrackedChannel(Base):
    """A channel added by a user for periodic statistics collection.

    `platform` and `handle` identify the channel and never change.
    `internal_id` is the platform's opaque identifier, resolved lazily on the
    first successful lookup and never re-resolved afterwards.
    """

    __tablename__ = "channels"
    __table_args__ = (
        UniqueConstraint("platform", "handle", name="uix_channels_platform_handle"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    platform: Mapped[Platform] = mapped_column(
        Enum(Platform, values_callable=lambda enum: [e.value for e in enum]),
        nullable=False,
    )
    handle: Mapped[str] = mapped_column(String(255), nullable=False)
    channel_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    internal_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )  # e.g. YouTube "UC..." id or TikTok uid
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    snapshots: Mapped[list["StatsSnapshot"]] = relationship(
        "StatsSnapshot",
        back_populates="channel",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def display_name(self) -> str:
        return self.name or self.handle

    def __repr__(self) -> str:
        return f"<TrackedChannel {self.platform.value}:{self.handle}>"
