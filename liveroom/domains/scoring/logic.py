# liveroom/domains/scoring/logic.py
from liveroom.core.config import settings


def points_for(is_correct: bool, time_taken_ms: int) -> int:
    """Correct answers lose points per second taken, never dropping below the floor."""
    if not is_correct:
        return 0
    seconds = max(time_taken_ms, 0) / 1000
    return int(max(settings.POINTS_MIN, round(settings.POINTS_MAX - seconds * settings.POINTS_DEDUCTION_PER_SECOND)))
