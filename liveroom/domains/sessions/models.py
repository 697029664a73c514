# liveroom/domains/sessions/models.py
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from liveroom.shared.database.mixins import TimestampMixin
from liveroom.shared.models.base import Base


class GameSession(Base, TimestampMixin):
    __tablename__ = "game_sessions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    # one session per room; concurrent upserts converge on this row
    room_id: Mapped[str] = mapped_column(
        String, ForeignKey("rooms.id", ondelete="CASCADE"), unique=True, index=True
    )
    current_activation_id: Mapped[Optional[str]] = mapped_column(
        String, ForeignKey("activations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    is_live: Mapped[bool] = mapped_column(Boolean, default=True)
