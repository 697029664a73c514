# liveroom/domains/rooms/models.py
from typing import Optional

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from liveroom.shared.database.mixins import TimestampMixin
from liveroom.shared.models.base import Base


class Room(Base, TimestampMixin):
    """Owned by the room/tenant management collaborator; the core only reads it."""

    __tablename__ = "rooms"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    customer_id: Mapped[Optional[str]] = mapped_column(String, index=True, nullable=True)
    name: Mapped[str] = mapped_column(String)
    code: Mapped[str] = mapped_column(String, unique=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class Participant(Base, TimestampMixin):
    __tablename__ = "participants"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    room_id: Mapped[str] = mapped_column(
        String, ForeignKey("rooms.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String)
    score: Mapped[float] = mapped_column(Float, default=0.0)

    # stats block
    total_points: Mapped[float] = mapped_column(Float, default=0.0)
    correct_answers: Mapped[int] = mapped_column(Integer, default=0)
    total_answers: Mapped[int] = mapped_column(Integer, default=0)
    average_response_ms: Mapped[float] = mapped_column(Float, default=0.0)

    @property
    def stats(self) -> dict:
        return {
            "total_points": self.total_points,
            "correct_answers": self.correct_answers,
            "total_answers": self.total_answers,
            "average_response_ms": self.average_response_ms,
        }
