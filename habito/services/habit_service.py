#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Habito - Habit Service
Completion toggling and the streak / achievement side effects it drives

Version: 1.0.0
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from typing import Awaitable, Callable, Dict, Iterable, List, Optional
import logging

from habito.config import HabitoConfig, config as default_config
from habito.core.achievements import (
    AchievementEvaluator, AchievementRegistry, EvaluationResult, format_unlock_message
)
from habito.core.analytics import HabitInsights, UserSummary, habit_insights, summarize_user
from habito.core.database import HabitStore, PersistenceError
from habito.core.models import (
    AchievementRecord, AchievementType, CompletionLog, Habit, StreakRecord,
    StreakStatus, ValidationError
)
from habito.core.streaks import StreakEngine
from habito.utils.datetime_utils import now_local, to_local_date

logger = logging.getLogger(__name__)

NotificationCallback = Callable[[str, AchievementRecord], Awaitable[None]]

# Categories a change in completion logs can move
LOG_DRIVEN_TYPES = (AchievementType.STREAK, AchievementType.COMPLETION, AchievementType.CONSISTENCY)
HABIT_DRIVEN_TYPES = (AchievementType.MILESTONE, AchievementType.CONSISTENCY)

# ===== RESULTS =====

@dataclass
class ToggleResult:
    """Outcome of a completion change"""
    habit_id: int
    completed: bool
    streak: StreakRecord
    streak_status: StreakStatus
    streak_persisted: bool = True
    log: Optional[CompletionLog] = None
    removed_logs: int = 0
    milestone: Optional[int] = None
    unlocked: List[AchievementRecord] = field(default_factory=list)
    achievement_error: Optional[str] = None

    @property
    def streak_pending(self) -> bool:
        return not self.streak_persisted

@dataclass
class HabitChangeResult:
    """Outcome of creating, archiving or deleting a habit"""
    habit: Optional[Habit]
    unlocked: List[AchievementRecord] = field(default_factory=list)
    achievement_error: Optional[str] = None

@dataclass
class HabitOverview:
    habit: Habit
    streak: StreakRecord
    status: StreakStatus
    insights: HabitInsights

# ===== SERVICE =====

class HabitService:
    """Single entry point for habit state transitions"""

    def __init__(self, store: HabitStore, cfg: Optional[HabitoConfig] = None,
                 registry: Optional[AchievementRegistry] = None):
        self.store = store
        self.config = cfg or default_config
        self.tz = self.config.tracking.tzinfo
        self.engine = StreakEngine(self.tz, self.config.tracking.streak_milestones)
        self.evaluator = AchievementEvaluator(registry, self.tz)
        self.notification_callbacks: List[NotificationCallback] = []

    def add_notification_callback(self, callback: NotificationCallback) -> None:
        """Register an async callback for newly unlocked achievements"""
        self.notification_callbacks.append(callback)

    def _now(self, now: Optional[datetime]) -> datetime:
        return now or now_local(self.tz)

    def _local_date(self, log: CompletionLog) -> date:
        return to_local_date(log.completed_at, self.tz)

    # ===== COMPLETIONS =====

    async def toggle_completion(self, user_id: str, habit_id: int,
                                now: Optional[datetime] = None) -> ToggleResult:
        """Mark a habit done for today, or undo today's completion.

        Log writes are the primary action and raise ``PersistenceError`` on
        failure. The streak row is recomputed from the full remaining log set;
        if storing it fails the result is flagged as pending. Achievement
        evaluation never raises from here.
        """
        now = self._now(now)
        today = to_local_date(now, self.tz)
        habit = await self.store.get_habit(user_id, habit_id)
        if habit.archived:
            raise ValidationError(f"Habit {habit_id} is archived")
        logs = await self.store.list_logs(user_id, habit_id)

        todays = [log for log in logs if self._local_date(log) == today]
        if todays:
            removed = await self.store.delete_logs(user_id, [log.id for log in todays])
            remaining = [log for log in logs if log not in todays]
            logger.info(f"User {user_id} un-marked habit {habit_id} for {today} ({removed} log(s) removed)")
            return await self._after_log_change(habit, remaining, now, completed=False, removed=removed)

        log = await self.store.add_log(CompletionLog(
            id=None, habit_id=habit.id, user_id=user_id, completed_at=now
        ))
        logger.info(f"User {user_id} completed habit {habit_id} for {today}")
        return await self._after_log_change(habit, logs + [log], now, completed=True, log=log)

    async def log_completion(self, user_id: str, habit_id: int, notes: Optional[str] = None,
                             now: Optional[datetime] = None) -> ToggleResult:
        """Add a completion without toggling; allows up to target_count logs a day"""
        now = self._now(now)
        today = to_local_date(now, self.tz)
        habit = await self.store.get_habit(user_id, habit_id)
        if habit.archived:
            raise ValidationError(f"Habit {habit_id} is archived")

        logs = await self.store.list_logs(user_id, habit_id)
        done_today = sum(1 for log in logs if self._local_date(log) == today)
        if done_today >= habit.target_count:
            raise ValidationError(
                f"Habit {habit_id} already completed {done_today}/{habit.target_count} times on {today}"
            )

        log = await self.store.add_log(CompletionLog(
            id=None, habit_id=habit.id, user_id=user_id, completed_at=now, notes=notes
        ))
        return await self._after_log_change(habit, logs + [log], now, completed=True, log=log)

    async def _after_log_change(self, habit: Habit, logs: List[CompletionLog], now: datetime,
                                completed: bool, log: Optional[CompletionLog] = None,
                                removed: int = 0) -> ToggleResult:
        today = to_local_date(now, self.tz)
        streak = self.engine.build_record(habit.id, habit.user_id, logs, today)

        result = ToggleResult(
            habit_id=habit.id,
            completed=completed,
            streak=streak,
            streak_status=self.engine.status(logs, today),
            log=log,
            removed_logs=removed,
            milestone=self.engine.milestone(streak.current_streak) if completed else None
        )

        try:
            await self.store.upsert_streak(streak)
        except PersistenceError as e:
            logger.error(f"Failed to store streak for habit {habit.id}: {e}")
            result.streak_persisted = False

        if result.milestone:
            logger.info(f"🔥 Habit {habit.id} reached a {result.milestone} day streak")

        if self.config.tracking.achievements_enabled:
            try:
                evaluation = await self.refresh_achievements(
                    habit.user_id, types=LOG_DRIVEN_TYPES, now=now, fresh_streaks=[streak]
                )
                result.unlocked = evaluation.unlocked
            except Exception as e:
                logger.error(f"Achievement update failed for user {habit.user_id}: {e}")
                result.achievement_error = str(e)

        return result

    # ===== HABITS =====

    async def create_habit(self, user_id: str, title: str, description: str = "",
                           frequency: str = "daily", target_count: int = 1,
                           color: Optional[str] = None, icon: Optional[str] = None,
                           now: Optional[datetime] = None) -> HabitChangeResult:
        """Validate and store a new habit, then seed its streak row and achievements"""
        now = self._now(now)
        habit = Habit(
            id=None,
            user_id=user_id,
            title=title,
            description=description,
            frequency=frequency,
            target_count=target_count,
            color=color or "#6366f1",
            icon=icon or "✅",
            created_at=now
        )
        habit = await self.store.save_habit(habit)
        logger.info(f"User {user_id} created habit {habit.id}: {habit.title}")

        try:
            await self.store.upsert_streak(StreakRecord(habit_id=habit.id, user_id=user_id))
        except PersistenceError as e:
            logger.warning(f"Could not initialize streak row for habit {habit.id}: {e}")

        return await self._habit_side_effects(habit, now)

    async def archive_habit(self, user_id: str, habit_id: int,
                            now: Optional[datetime] = None) -> HabitChangeResult:
        """Soft delete; logs and streak are kept"""
        now = self._now(now)
        habit = await self.store.get_habit(user_id, habit_id)
        if habit.archive(now):
            habit = await self.store.save_habit(habit)
            logger.info(f"User {user_id} archived habit {habit_id}")
        return await self._habit_side_effects(habit, now)

    async def delete_habit(self, user_id: str, habit_id: int,
                           now: Optional[datetime] = None) -> HabitChangeResult:
        """Hard delete, cascading logs and the streak row"""
        now = self._now(now)
        await self.store.delete_habit(user_id, habit_id)
        logger.info(f"User {user_id} deleted habit {habit_id}")
        return await self._habit_side_effects(None, now, user_id=user_id)

    async def _habit_side_effects(self, habit: Optional[Habit], now: datetime,
                                  user_id: Optional[str] = None) -> HabitChangeResult:
        result = HabitChangeResult(habit=habit)
        if not self.config.tracking.achievements_enabled:
            return result
        user_id = habit.user_id if habit else user_id
        try:
            evaluation = await self.refresh_achievements(user_id, types=HABIT_DRIVEN_TYPES, now=now)
            result.unlocked = evaluation.unlocked
        except Exception as e:
            logger.error(f"Achievement update failed for user {user_id}: {e}")
            result.achievement_error = str(e)
        return result

    # ===== RETRYABLE SIDE EFFECTS =====

    async def refresh_streak(self, user_id: str, habit_id: int,
                             now: Optional[datetime] = None) -> StreakRecord:
        """Recompute and store a habit's streak from its full log history"""
        today = to_local_date(self._now(now), self.tz)
        habit = await self.store.get_habit(user_id, habit_id)
        logs = await self.store.list_logs(user_id, habit_id)
        streak = self.engine.build_record(habit.id, user_id, logs, today)
        await self.store.upsert_streak(streak)
        return streak

    async def refresh_achievements(self, user_id: str,
                                   types: Optional[Iterable[AchievementType]] = None,
                                   now: Optional[datetime] = None,
                                   fresh_streaks: Optional[Iterable[StreakRecord]] = None) -> EvaluationResult:
        """Evaluate achievements, store changed rows and notify unlocks.

        ``fresh_streaks`` override stored streak rows for the same habit, so a
        streak that could not be stored still counts.
        """
        now = self._now(now)
        records = await self.seed_achievements(user_id)
        habits = await self.store.list_habits(user_id)
        logs = await self.store.list_logs(user_id)
        streaks = {s.habit_id: s for s in await self.store.list_streaks(user_id)}
        for streak in fresh_streaks or []:
            streaks[streak.habit_id] = streak
        social_counts = await self.store.get_social_counts(user_id)

        evaluation = self.evaluator.evaluate(
            records, habits, logs, list(streaks.values()),
            social_counts=social_counts, now=now, types=types
        )

        changed = evaluation.changed
        if changed:
            await self.store.upsert_achievements(changed)
            logger.debug(f"Stored {len(changed)} achievement update(s) for user {user_id}")

        for record in evaluation.unlocked:
            await self._send_unlock_notification(user_id, record)

        return evaluation

    async def refresh_habit(self, user_id: str, habit_id: int,
                            now: Optional[datetime] = None) -> ToggleResult:
        """Re-run both side effects for a habit after an earlier failure"""
        now = self._now(now)
        habit = await self.store.get_habit(user_id, habit_id)
        logs = await self.store.list_logs(user_id, habit_id)
        return await self._after_log_change(habit, logs, now, completed=False)

    async def record_social_activity(self, user_id: str,
                                     now: Optional[datetime] = None) -> EvaluationResult:
        """Re-check social achievements after invite or challenge counts moved"""
        return await self.refresh_achievements(user_id, types=[AchievementType.SOCIAL], now=now)

    async def seed_achievements(self, user_id: str) -> List[AchievementRecord]:
        """Make sure the user has one record per catalog entry"""
        existing = await self.store.list_achievements(user_id)
        missing = self.evaluator.registry.missing_records(user_id, existing)
        if missing:
            stored = await self.store.upsert_achievements(missing)
            logger.info(f"Seeded {len(stored)} achievement(s) for user {user_id}")
            existing = existing + stored
        return existing

    async def _send_unlock_notification(self, user_id: str, record: AchievementRecord) -> None:
        logger.debug(format_unlock_message(record))
        for callback in self.notification_callbacks:
            try:
                await callback(user_id, record)
            except Exception as e:
                logger.error(f"Achievement notification callback failed: {e}")

    # ===== READ MODELS =====

    async def get_habit_overview(self, user_id: str, habit_id: int,
                                 now: Optional[datetime] = None) -> HabitOverview:
        today = to_local_date(self._now(now), self.tz)
        habit = await self.store.get_habit(user_id, habit_id)
        logs = await self.store.list_logs(user_id, habit_id)
        return HabitOverview(
            habit=habit,
            streak=self.engine.build_record(habit.id, user_id, logs, today),
            status=self.engine.status(logs, today),
            insights=habit_insights(logs, today, self.tz)
        )

    async def get_user_summary(self, user_id: str, now: Optional[datetime] = None) -> UserSummary:
        today = to_local_date(self._now(now), self.tz)
        habits = await self.store.list_habits(user_id)
        logs = await self.store.list_logs(user_id)
        streaks = []
        for habit in habits:
            habit_logs = [log for log in logs if log.habit_id == habit.id]
            streaks.append(self.engine.build_record(habit.id, user_id, habit_logs, today))
        return summarize_user(habits, logs, streaks, today, self.tz)

    async def get_streak_statuses(self, user_id: str, now: Optional[datetime] = None) -> Dict[int, StreakStatus]:
        """Status of every active habit, for "don't break your streak" prompts"""
        today = to_local_date(self._now(now), self.tz)
        habits = await self.store.list_habits(user_id, include_archived=False)
        logs = await self.store.list_logs(user_id)
        return {
            habit.id: self.engine.status([log for log in logs if log.habit_id == habit.id], today)
            for habit in habits
        }

__all__ = [
    'HabitService',
    'ToggleResult',
    'HabitChangeResult',
    'HabitOverview',
    'LOG_DRIVEN_TYPES',
    'HABIT_DRIVEN_TYPES'
]
