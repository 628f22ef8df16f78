#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Habito - Streak Engine
Calendar-day streak computation over habit completion logs

Version: 1.0.0
"""

from datetime import date, timedelta
from typing import Iterable, List, Optional, Any
import logging

from habito.config import config
from habito.core.models import StreakRecord, StreakStatus
from habito.utils.datetime_utils import to_local_date, today_local

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)

# ===== NORMALIZATION =====

def _timestamp_of(entry: Any) -> Any:
    """Pull the completion timestamp out of a log record, a row dict or a bare value"""
    if isinstance(entry, dict):
        return entry["completed_at"]
    return getattr(entry, "completed_at", entry)

def completion_dates(logs: Iterable[Any], tz=None) -> List[date]:
    """Distinct calendar dates of the given logs, ascending. Unparseable entries are skipped."""
    days = set()
    for entry in logs:
        try:
            days.add(to_local_date(_timestamp_of(entry), tz))
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"Skipping malformed completion entry {entry!r}: {e}")
    return sorted(days)

# ===== STREAK ENGINE =====

def compute_current_streak(logs: Iterable[Any], as_of: Optional[date] = None, tz=None) -> int:
    """Length of the run of consecutive days ending today or yesterday"""
    as_of = as_of or today_local(tz)
    days = [d for d in completion_dates(logs, tz) if d <= as_of]
    if not days:
        return 0

    days.reverse()
    if days[0] != as_of and days[0] != as_of - ONE_DAY:
        return 0

    streak = 1
    for newer, older in zip(days, days[1:]):
        if newer - older != ONE_DAY:
            break
        streak += 1
    return streak

def compute_longest_streak(logs: Iterable[Any], tz=None) -> int:
    """Longest run of consecutive completion days in the whole history"""
    days = completion_dates(logs, tz)
    if not days:
        return 0

    longest = 1
    running = 1
    for previous, current in zip(days, days[1:]):
        if current - previous == ONE_DAY:
            running += 1
            longest = max(longest, running)
        else:
            running = 1
    return longest

def classify_streak(logs: Iterable[Any], as_of: Optional[date] = None, tz=None) -> StreakStatus:
    """ACTIVE if done today, AT_RISK if last done yesterday, otherwise BROKEN"""
    as_of = as_of or today_local(tz)
    days = [d for d in completion_dates(logs, tz) if d <= as_of]
    if days and days[-1] == as_of:
        return StreakStatus.ACTIVE
    if days and days[-1] == as_of - ONE_DAY:
        return StreakStatus.AT_RISK
    return StreakStatus.BROKEN

def streak_milestone(current_streak: int, milestones: Optional[Iterable[int]] = None) -> Optional[int]:
    """The milestone hit exactly by this streak length, if any"""
    milestones = milestones if milestones is not None else config.tracking.streak_milestones
    return current_streak if current_streak in set(milestones) else None

def build_streak_record(habit_id: int, user_id: str, logs: Iterable[Any],
                        as_of: Optional[date] = None, tz=None) -> StreakRecord:
    """Fresh streak record computed from the full log set"""
    logs = list(logs)
    days = completion_dates(logs, tz)
    current = compute_current_streak(logs, as_of, tz)
    longest = compute_longest_streak(logs, tz)
    return StreakRecord(
        habit_id=habit_id,
        user_id=user_id,
        current_streak=current,
        longest_streak=max(longest, current),
        last_tracked_date=days[-1] if days else None
    )

class StreakEngine:
    """Streak computation bound to one timezone"""

    def __init__(self, tz=None, milestones: Optional[Iterable[int]] = None):
        self.tz = tz
        self.milestones = list(milestones) if milestones is not None else list(config.tracking.streak_milestones)

    def current_streak(self, logs: Iterable[Any], as_of: Optional[date] = None) -> int:
        return compute_current_streak(logs, as_of, self.tz)

    def longest_streak(self, logs: Iterable[Any]) -> int:
        return compute_longest_streak(logs, self.tz)

    def status(self, logs: Iterable[Any], as_of: Optional[date] = None) -> StreakStatus:
        return classify_streak(logs, as_of, self.tz)

    def milestone(self, current_streak: int) -> Optional[int]:
        return streak_milestone(current_streak, self.milestones)

    def build_record(self, habit_id: int, user_id: str, logs: Iterable[Any],
                     as_of: Optional[date] = None) -> StreakRecord:
        return build_streak_record(habit_id, user_id, logs, as_of, self.tz)

__all__ = [
    'StreakEngine',
    'completion_dates',
    'compute_current_streak',
    'compute_longest_streak',
    'classify_streak',
    'streak_milestone',
    'build_streak_record'
]
