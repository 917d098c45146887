"""
Scheduled activities.

A parent plans a quiz, game or puzzle for a given time. Once that time has
passed the activity is available to the child until it is marked complete.
All helpers take ``now`` so callers and tests agree on a single clock reading.
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from errors import InvalidArgument
from schemas import Schedule, utcnow

logger = logging.getLogger(__name__)

_REQUIRED_DATA = {
    "quiz": ("quiz_data", "Quiz data is required for quiz activities"),
    "game": ("game_type", "Game type is required for game activities"),
    "puzzle": ("puzzle_data", "Puzzle data is required for puzzle activities"),
}


def check_activity_data(schedule: Schedule) -> None:
    attr, message = _REQUIRED_DATA[schedule.activity_type]
    if not getattr(schedule, attr):
        raise InvalidArgument(message)


def check_new_schedule(schedule: Schedule, now: Optional[datetime] = None) -> None:
    now = now or utcnow()
    if schedule.scheduled_time < now:
        raise InvalidArgument("Scheduled time must be in the future")
    check_activity_data(schedule)


def by_time(schedules: Iterable[Schedule]) -> List[Schedule]:
    return sorted(schedules, key=lambda s: s.scheduled_time)


def available(schedules: Iterable[Schedule], now: Optional[datetime] = None) -> List[Schedule]:
    now = now or utcnow()
    return by_time(s for s in schedules if not s.is_completed and s.scheduled_time <= now)


def upcoming(schedules: Iterable[Schedule], now: Optional[datetime] = None) -> List[Schedule]:
    now = now or utcnow()
    return by_time(s for s in schedules if not s.is_completed and s.scheduled_time > now)


def completed(schedules: Iterable[Schedule]) -> List[Schedule]:
    """Completed activities, most recent first."""
    done = [s for s in schedules if s.is_completed]
    return sorted(done, key=lambda s: s.completed_at or s.scheduled_time, reverse=True)


def mark_completed(schedule: Schedule, score: Optional[int] = None, time_spent: Optional[int] = None,
                   now: Optional[datetime] = None) -> Schedule:
    schedule.is_completed = True
    schedule.completed_at = now or utcnow()
    if score is not None:
        schedule.score = score
    if time_spent is not None:
        schedule.time_spent = time_spent
    logger.info("Schedule %s completed (score=%s)", schedule.id, score)
    return schedule


def schedule_stats(schedules: List[Schedule], now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    total = len(schedules)
    done = completed(schedules)
    scores = [s.score for s in done if s.score is not None]
    return {
        "total": total,
        "completed": len(done),
        "available": len(available(schedules, now)),
        "upcoming": len(upcoming(schedules, now)),
        "completion_rate": 100 * len(done) / total if total else 0,
        "average_score": sum(scores) / len(scores) if scores else 0,
    }
