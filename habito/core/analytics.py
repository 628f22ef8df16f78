# habito/core/analytics.py

import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional
import logging

from habito.core.models import Habit, StreakRecord
from habito.core.streaks import completion_dates, compute_longest_streak
from habito.utils.datetime_utils import parse_timestamp, get_timezone, today_local

logger = logging.getLogger(__name__)

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

@dataclass
class HabitInsights:
    total_completions: int = 0
    best_day: Optional[str] = None
    best_hour: Optional[int] = None
    completion_rate: int = 0  # % of the last 30 days
    consistency: int = 0  # 0-100, steadiness of gaps between completions
    longest_streak: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_completions": self.total_completions,
            "best_day": self.best_day,
            "best_hour": self.best_hour,
            "completion_rate": self.completion_rate,
            "consistency": self.consistency,
            "longest_streak": self.longest_streak
        }

@dataclass
class UserSummary:
    active_habits: int = 0
    total_completions: int = 0
    completed_today: int = 0
    today_completion_rate: int = 0
    most_consistent_habit: Optional[Dict[str, Any]] = None
    top_streak_habit: Optional[Dict[str, Any]] = None
    weekly_trend: List[Dict[str, Any]] = field(default_factory=list)

def _local_timestamps(logs: Iterable[Any], tz=None):
    zone = get_timezone(tz)
    stamps = []
    for entry in logs:
        raw = entry.get("completed_at") if isinstance(entry, dict) else getattr(entry, "completed_at", entry)
        try:
            stamps.append(parse_timestamp(raw).astimezone(zone))
        except (TypeError, ValueError) as e:
            logger.debug(f"Skipping malformed completion entry {entry!r}: {e}")
    return stamps

def habit_insights(logs: Iterable[Any], as_of: Optional[date] = None, tz=None) -> HabitInsights:
    """Per-habit statistics shown on the habit detail page"""
    logs = list(logs)
    as_of = as_of or today_local(tz)
    stamps = _local_timestamps(logs, tz)
    if not stamps:
        return HabitInsights()

    by_weekday = Counter(s.weekday() for s in stamps)
    by_hour = Counter(s.hour for s in stamps)
    # ties resolve to the earliest weekday / hour
    best_day = min(by_weekday, key=lambda d: (-by_weekday[d], d))
    best_hour = min(by_hour, key=lambda h: (-by_hour[h], h))

    days = completion_dates(logs, tz)
    window_start = as_of - timedelta(days=29)
    recent_days = [d for d in days if window_start <= d <= as_of]
    completion_rate = round(len(recent_days) / 30 * 100)

    consistency = 0
    if len(days) > 1:
        gaps = [(b - a).days for a, b in zip(days, days[1:])]
        mean = sum(gaps) / len(gaps)
        deviation = math.sqrt(sum((g - mean) ** 2 for g in gaps) / len(gaps))
        consistency = round(100 - min(100, deviation * 10))

    return HabitInsights(
        total_completions=len(stamps),
        best_day=WEEKDAYS[best_day],
        best_hour=best_hour,
        completion_rate=completion_rate,
        consistency=consistency,
        longest_streak=compute_longest_streak(logs, tz)
    )

def completion_trends(logs: Iterable[Any], days: int = 7, as_of: Optional[date] = None, tz=None) -> List[Dict[str, Any]]:
    """Completion counts per day for the last ``days`` days, oldest first"""
    as_of = as_of or today_local(tz)
    counts = Counter(s.date() for s in _local_timestamps(logs, tz))
    return [
        {"date": day.isoformat(), "count": counts.get(day, 0)}
        for day in (as_of - timedelta(days=offset) for offset in range(days - 1, -1, -1))
    ]

def summarize_user(habits: Iterable[Habit], logs: Iterable[Any], streaks: Iterable[StreakRecord],
                   as_of: Optional[date] = None, tz=None) -> UserSummary:
    """Dashboard summary across all of a user's habits"""
    as_of = as_of or today_local(tz)
    habits = list(habits)
    logs = list(logs)
    active = [h for h in habits if h.is_active]

    logs_by_habit: Dict[Any, List[Any]] = {}
    for log in logs:
        logs_by_habit.setdefault(getattr(log, "habit_id", None), []).append(log)

    completed_today = sum(
        1 for habit in active
        if as_of in completion_dates(logs_by_habit.get(habit.id, []), tz)
    )

    summary = UserSummary(
        active_habits=len(active),
        total_completions=len(logs),
        completed_today=completed_today,
        today_completion_rate=round(completed_today / len(active) * 100) if active else 0,
        weekly_trend=completion_trends(logs, 7, as_of, tz)
    )

    best_consistency = None
    for habit in active:
        habit_logs = logs_by_habit.get(habit.id, [])
        if not habit_logs:
            continue
        insights = habit_insights(habit_logs, as_of, tz)
        if best_consistency is None or insights.consistency > best_consistency["consistency"]:
            best_consistency = {"habit_id": habit.id, "title": habit.title,
                                "consistency": insights.consistency}
    summary.most_consistent_habit = best_consistency

    titles = {h.id: h.title for h in habits}
    top = max(streaks, key=lambda s: s.current_streak, default=None)
    if top is not None and top.current_streak > 0:
        summary.top_streak_habit = {"habit_id": top.habit_id,
                                    "title": titles.get(top.habit_id, "Unknown"),
                                    "streak": top.current_streak}
    return summary

__all__ = [
    'HabitInsights',
    'UserSummary',
    'habit_insights',
    'completion_trends',
    'summarize_user'
]
