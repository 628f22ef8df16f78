#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Habito - Achievement System
Achievement catalog, progress checkers and the evaluator

Version: 1.0.0
"""

from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import datetime, date
from typing import Dict, List, Optional, Any, Callable, Iterable, Set
from abc import ABC, abstractmethod
import logging

import pytz

from habito.core.models import (
    AchievementRecord, AchievementType, Habit, StreakRecord
)
from habito.core.streaks import completion_dates
from habito.utils.datetime_utils import to_local_date, today_local

logger = logging.getLogger(__name__)

# ===== DATA CLASSES =====

@dataclass(frozen=True)
class AchievementDefinition:
    """Static achievement definition"""
    name: str
    description: str
    type: AchievementType
    target: int
    icon: str
    metric: str

    def new_record(self, user_id: str) -> AchievementRecord:
        """Zero-progress record for a user"""
        return AchievementRecord(
            id=None,
            user_id=user_id,
            name=self.name,
            type=self.type.value,
            progress=0,
            target=self.target,
            achieved_at=None,
            description=self.description,
            icon=self.icon
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'description': self.description,
            'type': self.type.value,
            'target': self.target,
            'icon': self.icon,
            'metric': self.metric
        }

@dataclass
class EvaluationContext:
    """Everything a checker may look at for one user"""
    habits: List[Habit]
    logs: List[Any]
    streaks: List[StreakRecord]
    social_counts: Dict[str, int] = field(default_factory=dict)
    as_of: Optional[date] = None
    tz: Any = None

    def __post_init__(self):
        if self.as_of is None:
            self.as_of = today_local(self.tz)

    def logs_by_habit(self) -> Dict[Any, List[Any]]:
        """Group logs by habit id, dropping entries without one"""
        grouped: Dict[Any, List[Any]] = defaultdict(list)
        for entry in self.logs:
            habit_id = entry.get("habit_id") if isinstance(entry, dict) else getattr(entry, "habit_id", None)
            if habit_id is None:
                logger.debug(f"Skipping completion entry without habit id: {entry!r}")
                continue
            grouped[habit_id].append(entry)
        return grouped

@dataclass
class AchievementUpdate:
    """Evaluated record and whether it differs from the stored one"""
    record: AchievementRecord
    changed: bool

@dataclass
class EvaluationResult:
    """Output of one evaluation pass"""
    updates: List[AchievementUpdate] = field(default_factory=list)
    unlocked: List[AchievementRecord] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def changed(self) -> List[AchievementRecord]:
        return [u.record for u in self.updates if u.changed]

# ===== ACHIEVEMENT CHECKERS =====

class AchievementChecker(ABC):
    """Computes the raw progress value for a metric"""

    @abstractmethod
    def get_progress(self, context: EvaluationContext) -> int:
        pass

class SimpleCountChecker(AchievementChecker):
    """Progress given directly by a getter"""

    def __init__(self, value_getter: Callable[[EvaluationContext], int]):
        self.value_getter = value_getter

    def get_progress(self, context: EvaluationContext) -> int:
        return max(0, int(self.value_getter(context)))

class StreakChecker(AchievementChecker):
    """Maximum current streak across all of the user's habits"""

    def get_progress(self, context: EvaluationContext) -> int:
        best = 0
        for streak in context.streaks:
            try:
                best = max(best, int(streak.current_streak))
            except (AttributeError, TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed streak record {streak!r}: {e}")
        return best

class CompletionChecker(AchievementChecker):
    """Highest completion-log count of any single habit"""

    def get_progress(self, context: EvaluationContext) -> int:
        counts = [len(entries) for entries in context.logs_by_habit().values()]
        return max(counts, default=0)

class ConsistencyChecker(AchievementChecker):
    """Number of days on which every active habit was completed"""

    def get_progress(self, context: EvaluationContext) -> int:
        active = [h for h in context.habits if h.is_active and h.id is not None]
        if not active:
            return 0

        grouped = context.logs_by_habit()
        done: Dict[Any, Set[date]] = {
            habit.id: set(completion_dates(grouped.get(habit.id, []), context.tz))
            for habit in active
        }
        created = {habit.id: to_local_date(habit.created_at, context.tz) for habit in active}

        candidate_days: Set[date] = set().union(*done.values())
        perfect_days = 0
        for day in candidate_days:
            if day > context.as_of:
                continue
            expected = [habit.id for habit in active if created[habit.id] <= day]
            if expected and all(day in done[habit_id] for habit_id in expected):
                perfect_days += 1
        return perfect_days

class DaysSinceFirstHabitChecker(AchievementChecker):
    """Days since the first habit was created, counting that day"""

    def get_progress(self, context: EvaluationContext) -> int:
        if not context.habits:
            return 0
        first = min(to_local_date(habit.created_at, context.tz) for habit in context.habits)
        return max(0, (context.as_of - first).days + 1)

class SocialCountChecker(AchievementChecker):
    """Count supplied by the social collaborator"""

    def __init__(self, key: str):
        self.key = key

    def get_progress(self, context: EvaluationContext) -> int:
        return max(0, int(context.social_counts.get(self.key, 0) or 0))

# ===== ACHIEVEMENT REGISTRY =====

class AchievementRegistry:
    """Catalog of achievement definitions and their checkers"""

    def __init__(self, load_defaults: bool = True):
        self.achievements: Dict[str, AchievementDefinition] = {}
        self.checkers: Dict[str, AchievementChecker] = {}
        if load_defaults:
            self._load_default_achievements()

    def register_metric(self, metric: str, checker: AchievementChecker) -> None:
        self.checkers[metric] = checker

    def register_achievement(self, definition: AchievementDefinition,
                             checker: Optional[AchievementChecker] = None) -> None:
        """Register a definition, optionally with the checker for its metric"""
        if checker is not None:
            self.register_metric(definition.metric, checker)
        if definition.metric not in self.checkers:
            raise ValueError(f"No checker registered for metric {definition.metric!r}")
        self.achievements[definition.name] = definition
        logger.debug(f"Registered achievement: {definition.name}")

    def get_achievement(self, name: str) -> Optional[AchievementDefinition]:
        return self.achievements.get(name)

    def get_checker(self, metric: str) -> Optional[AchievementChecker]:
        return self.checkers.get(metric)

    def get_all_achievements(self) -> List[AchievementDefinition]:
        return list(self.achievements.values())

    def get_achievements_by_type(self, achievement_type: AchievementType) -> List[AchievementDefinition]:
        return [a for a in self.achievements.values() if a.type == achievement_type]

    def seed_records(self, user_id: str) -> List[AchievementRecord]:
        """Initial records for every definition"""
        return [definition.new_record(user_id) for definition in self.achievements.values()]

    def missing_records(self, user_id: str, existing: Iterable[AchievementRecord]) -> List[AchievementRecord]:
        """Records for definitions the user does not have yet"""
        present = {record.name for record in existing}
        return [d.new_record(user_id) for d in self.achievements.values() if d.name not in present]

    def _load_default_achievements(self):
        """Default Habito catalog"""

        self.register_metric("max_current_streak", StreakChecker())
        self.register_metric("max_habit_completions", CompletionChecker())
        self.register_metric("perfect_days", ConsistencyChecker())
        self.register_metric("has_habit", SimpleCountChecker(lambda ctx: min(1, len(ctx.habits))))
        self.register_metric("habits_created", SimpleCountChecker(lambda ctx: len(ctx.habits)))
        self.register_metric("days_since_first_habit", DaysSinceFirstHabitChecker())
        self.register_metric("friend_invites", SocialCountChecker("friend_invites"))
        self.register_metric("challenges_completed", SocialCountChecker("challenges_completed"))

        # ===== STREAK ACHIEVEMENTS =====

        for name, target, icon in (
            ("Streak Starter", 3, "🔥"),
            ("Streak Pro", 7, "🔥"),
            ("Streak Master", 30, "🔥"),
            ("Streak Champion", 100, "🏆"),
        ):
            self.register_achievement(AchievementDefinition(
                name=name,
                description=f"Maintain a habit for {target} consecutive days",
                type=AchievementType.STREAK,
                target=target,
                icon=icon,
                metric="max_current_streak"
            ))

        # ===== COMPLETION ACHIEVEMENTS =====

        for name, target, icon in (
            ("Habit Rookie", 10, "🌱"),
            ("Habit Hero", 50, "🌿"),
            ("Habit Legend", 100, "🌳"),
        ):
            self.register_achievement(AchievementDefinition(
                name=name,
                description=f"Complete a habit {target} times",
                type=AchievementType.COMPLETION,
                target=target,
                icon=icon,
                metric="max_habit_completions"
            ))

        # ===== CONSISTENCY ACHIEVEMENTS =====

        for name, target, icon, period in (
            ("Daily Dynamo", 1, "📅", "one day"),
            ("Weekly Warrior", 7, "📆", "a week"),
            ("Monthly Master", 30, "📊", "a month"),
        ):
            self.register_achievement(AchievementDefinition(
                name=name,
                description=f"Complete all habits for {period}",
                type=AchievementType.CONSISTENCY,
                target=target,
                icon=icon,
                metric="perfect_days"
            ))

        # ===== MILESTONE ACHIEVEMENTS =====

        self.register_achievement(AchievementDefinition(
            name="First Step",
            description="Create your first habit",
            type=AchievementType.MILESTONE,
            target=1,
            icon="👣",
            metric="has_habit"
        ))

        self.register_achievement(AchievementDefinition(
            name="Habit Collector",
            description="Create 5 different habits",
            type=AchievementType.MILESTONE,
            target=5,
            icon="🧩",
            metric="habits_created"
        ))

        self.register_achievement(AchievementDefinition(
            name="Habit Veteran",
            description="Use Habito for 30 days",
            type=AchievementType.MILESTONE,
            target=30,
            icon="🎖️",
            metric="days_since_first_habit"
        ))

        # ===== SOCIAL ACHIEVEMENTS =====

        self.register_achievement(AchievementDefinition(
            name="Social Butterfly",
            description="Invite 3 friends to Habito",
            type=AchievementType.SOCIAL,
            target=3,
            icon="🦋",
            metric="friend_invites"
        ))

        self.register_achievement(AchievementDefinition(
            name="Challenge Champion",
            description="Complete a group challenge",
            type=AchievementType.SOCIAL,
            target=1,
            icon="🏅",
            metric="challenges_completed"
        ))

# ===== ACHIEVEMENT EVALUATOR =====

class AchievementEvaluator:
    """Applies the catalog to a user's current state"""

    def __init__(self, registry: Optional[AchievementRegistry] = None, tz=None):
        self.registry = registry or AchievementRegistry()
        self.tz = tz

    def evaluate(self, records: Iterable[AchievementRecord], habits: Iterable[Habit],
                 logs: Iterable[Any], streaks: Iterable[StreakRecord],
                 social_counts: Optional[Dict[str, int]] = None,
                 now: Optional[datetime] = None,
                 types: Optional[Iterable[AchievementType]] = None) -> EvaluationResult:
        """Compute new progress for every unachieved record.

        Achieved records are skipped entirely. Progress never decreases and
        ``achieved_at`` is stamped once, the first time progress reaches the
        target. Input records are left untouched; updated copies are returned.
        A failure on one record leaves it unchanged and does not stop the others.
        """
        now = now or datetime.now(pytz.utc)
        context = EvaluationContext(
            habits=list(habits),
            logs=list(logs),
            streaks=list(streaks),
            social_counts=dict(social_counts or {}),
            as_of=to_local_date(now, self.tz),
            tz=self.tz
        )
        wanted = {AchievementType(t).value for t in types} if types is not None else None

        result = EvaluationResult()
        metric_cache: Dict[str, int] = {}

        for record in records:
            if record.achieved_at is not None:
                continue
            if wanted is not None and record.type not in wanted:
                continue

            try:
                definition = self.registry.get_achievement(record.name)
                if definition is None:
                    logger.warning(f"No definition for achievement {record.name!r}, leaving it unchanged")
                    continue

                if definition.metric not in metric_cache:
                    checker = self.registry.get_checker(definition.metric)
                    metric_cache[definition.metric] = checker.get_progress(context)
                computed = metric_cache[definition.metric]

                new_progress = max(record.progress, computed)
                achieved_at = now if new_progress >= record.target else None
                updated = replace(record, progress=new_progress, achieved_at=achieved_at)
                changed = new_progress != record.progress or achieved_at is not None

                result.updates.append(AchievementUpdate(record=updated, changed=changed))
                if achieved_at is not None:
                    result.unlocked.append(updated)
                    logger.info(f"🏆 User {record.user_id} unlocked achievement: {record.name}")

            except Exception as e:
                logger.error(f"Error evaluating achievement {record.name!r} for user {record.user_id}: {e}")
                result.errors[record.name] = str(e)
                result.updates.append(AchievementUpdate(record=record, changed=False))

        return result

# ===== FORMATTING =====

def format_unlock_message(record: AchievementRecord) -> str:
    """Notification text for a newly unlocked achievement"""
    return (f"🎉 Achievement Unlocked!\n\n"
            f"{record.icon} {record.name}: {record.description}\n"
            f"📊 {record.progress}/{record.target}")

def format_progress_line(record: AchievementRecord) -> str:
    status = "✅" if record.is_achieved else f"{record.progress_percentage:.0f}%"
    return f"{record.icon} {record.name} ({record.progress}/{record.target}) {status}"

# ===== EXPORT =====

__all__ = [
    # Data classes
    'AchievementDefinition',
    'EvaluationContext',
    'AchievementUpdate',
    'EvaluationResult',

    # Checkers
    'AchievementChecker',
    'SimpleCountChecker',
    'StreakChecker',
    'CompletionChecker',
    'ConsistencyChecker',
    'DaysSinceFirstHabitChecker',
    'SocialCountChecker',

    # Core components
    'AchievementRegistry',
    'AchievementEvaluator',

    # Formatting
    'format_unlock_message',
    'format_progress_line'
]
