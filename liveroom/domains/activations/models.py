# liveroom/domains/activations/models.py
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from liveroom.shared.database.mixins import TimestampMixin
from liveroom.shared.models.base import Base

ONE_LIVE_ACTIVATION_PREDICATE = "active = true AND is_template = false"


class Activation(Base, TimestampMixin):
    __tablename__ = "activations"
    __table_args__ = (
        # at most one armed live activation per room
        Index(
            "uq_activations_one_active_per_room",
            "room_id",
            unique=True,
            postgresql_where=text(ONE_LIVE_ACTIVATION_PREDICATE),
            sqlite_where=text(ONE_LIVE_ACTIVATION_PREDICATE),
        ),
        Index("ix_activations_room_template", "room_id", "is_template"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    room_id: Mapped[Optional[str]] = mapped_column(
        String, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=True, index=True
    )
    parent_id: Mapped[Optional[str]] = mapped_column(
        String, ForeignKey("activations.id", ondelete="SET NULL"), nullable=True
    )
    kind: Mapped[str] = mapped_column(String)  # multiple_choice, text_answer, poll, social_wall, leaderboard
    is_template: Mapped[bool] = mapped_column(Boolean, default=True)
    active: Mapped[bool] = mapped_column(Boolean, default=False)
    poll_state: Mapped[Optional[str]] = mapped_column(String, nullable=True)  # pending, voting, closed

    # content
    title: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    question: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    options: Mapped[list] = mapped_column(JSON, default=list)  # [{id, text, media_type, media_url}]
    correct_answer: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    exact_answer: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    time_limit: Mapped[int] = mapped_column(Integer, default=0)
    timer_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    media_type: Mapped[str] = mapped_column(String, default="none")
    media_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    # display formatting
    poll_display_type: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    poll_result_format: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    option_colors: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    show_answers: Mapped[bool] = mapped_column(Boolean, default=True)

    # append-only audit trail: [{at, action, actor}]
    history: Mapped[list] = mapped_column(JSON, default=list)
    last_activated: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_deactivated: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
