# liveroom/domains/votes/models.py
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from liveroom.shared.database.mixins import utcnow
from liveroom.shared.models.base import Base


class Vote(Base):
    __tablename__ = "poll_votes"
    __table_args__ = (
        UniqueConstraint("activation_id", "participant_id", name="uq_poll_votes_activation_participant"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    activation_id: Mapped[str] = mapped_column(
        String, ForeignKey("activations.id", ondelete="CASCADE"), index=True
    )
    participant_id: Mapped[str] = mapped_column(
        String, ForeignKey("participants.id", ondelete="CASCADE"), index=True
    )
    option_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    # kept for display and for legacy rows written before options had ids
    option_text: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow, nullable=False
    )


class VoteWriteFailure(Base):
    __tablename__ = "vote_write_failures"
    __table_args__ = (
        Index("ix_vote_write_failures_retry", "retry_count", "last_retry"),
        Index("ix_vote_write_failures_activation_participant", "activation_id", "participant_id"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    room_id: Mapped[str] = mapped_column(String, index=True)
    activation_id: Mapped[str] = mapped_column(String)
    participant_id: Mapped[str] = mapped_column(String)
    option_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    option_text: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow, nullable=False
    )
    last_retry: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow, nullable=False
    )
