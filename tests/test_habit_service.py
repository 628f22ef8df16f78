"""HabitService tests against a temporary JSON store"""

from datetime import timedelta

import pytest

from habito.core.database import PersistenceError, RecordNotFoundError
from habito.core.models import StreakStatus, ValidationError
from habito.core.streaks import build_streak_record
from tests.conftest import MONDAY, at

USER = "user-1"


async def stored_streak(store, habit_id):
    return {s.habit_id: s for s in await store.list_streaks(USER)}.get(habit_id)


async def stored_achievements(store):
    return {a.name: a for a in await store.list_achievements(USER)}


class TestToggleCompletion:
    """Toggle on / off and streak recomputation"""

    @pytest.mark.asyncio
    async def test_toggle_on_creates_log_and_streak(self, service, store):
        habit = (await service.create_habit(USER, "Read", now=at(MONDAY, 8))).habit

        result = await service.toggle_completion(USER, habit.id, now=at(MONDAY, 9))

        assert result.completed is True
        assert result.log is not None
        assert result.streak.current_streak == 1
        assert result.streak_persisted is True
        assert result.streak_status == StreakStatus.ACTIVE
        assert len(await store.list_logs(USER, habit.id)) == 1
        assert (await stored_streak(store, habit.id)).current_streak == 1

    @pytest.mark.asyncio
    async def test_toggle_off_only_log_resets_streak(self, service, store):
        habit = (await service.create_habit(USER, "Read", now=at(MONDAY, 8))).habit
        await service.toggle_completion(USER, habit.id, now=at(MONDAY, 9))

        result = await service.toggle_completion(USER, habit.id, now=at(MONDAY, 21))

        assert result.completed is False
        assert result.removed_logs == 1
        assert result.streak.current_streak == 0
        assert await store.list_logs(USER, habit.id) == []
        assert (await stored_streak(store, habit.id)).current_streak == 0

    @pytest.mark.asyncio
    async def test_stored_streak_matches_fresh_computation(self, service, store):
        habit = (await service.create_habit(USER, "Read", now=at(MONDAY, 8))).habit
        plan = [0, 1, 2, 2, 3, 5, 6, 6, 6, 7]

        for offset in plan:
            await service.toggle_completion(USER, habit.id, now=at(MONDAY + timedelta(days=offset), 10))

        last_day = MONDAY + timedelta(days=plan[-1])
        expected = build_streak_record(habit.id, USER, await store.list_logs(USER, habit.id), as_of=last_day)
        assert (await stored_streak(store, habit.id)).same_numbers(expected)

    @pytest.mark.asyncio
    async def test_milestone_reported_on_exact_day(self, service):
        habit = (await service.create_habit(USER, "Read", now=at(MONDAY, 8))).habit

        results = [
            await service.toggle_completion(USER, habit.id, now=at(MONDAY + timedelta(days=i), 9))
            for i in range(4)
        ]

        assert [r.milestone for r in results] == [None, None, 3, None]

    @pytest.mark.asyncio
    async def test_unknown_habit(self, service):
        with pytest.raises(RecordNotFoundError):
            await service.toggle_completion(USER, 999, now=at(MONDAY))


class TestSideEffectFailures:
    """Primary writes propagate, side effects degrade"""

    @pytest.mark.asyncio
    async def test_log_write_failure_propagates(self, service, store):
        habit = (await service.create_habit(USER, "Read", now=at(MONDAY, 8))).habit
        store.failing.add("add_log")

        with pytest.raises(PersistenceError):
            await service.toggle_completion(USER, habit.id, now=at(MONDAY, 9))

        assert await store.list_logs(USER, habit.id) == []

    @pytest.mark.asyncio
    async def test_streak_write_failure_is_pending(self, service, store):
        habit = (await service.create_habit(USER, "Read", now=at(MONDAY, 8))).habit
        store.failing.add("upsert_streak")

        result = await service.toggle_completion(USER, habit.id, now=at(MONDAY, 9))

        assert result.streak_persisted is False
        assert result.streak_pending
        assert result.streak.current_streak == 1
        assert len(await store.list_logs(USER, habit.id)) == 1
        assert (await stored_streak(store, habit.id)).current_streak == 0

        store.failing.clear()
        await service.refresh_habit(USER, habit.id, now=at(MONDAY, 10))

        assert (await stored_streak(store, habit.id)).current_streak == 1

    @pytest.mark.asyncio
    async def test_achievement_failure_does_not_block_toggle(self, service, store):
        habit = (await service.create_habit(USER, "Read", now=at(MONDAY, 8))).habit
        store.failing.add("list_achievements")

        result = await service.toggle_completion(USER, habit.id, now=at(MONDAY, 9))

        assert result.completed is True
        assert "list_achievements unavailable" in result.achievement_error
        assert result.unlocked == []
        assert result.streak_persisted is True


class TestAchievements:
    """Achievement side effects and notifications"""

    @pytest.mark.asyncio
    async def test_create_habit_unlocks_first_step(self, service, store):
        result = await service.create_habit(USER, "Read", now=at(MONDAY, 8))

        assert "First Step" in [r.name for r in result.unlocked]
        stored = await stored_achievements(store)
        assert len(stored) == 15
        assert stored["First Step"].is_achieved
        assert stored["Habit Veteran"].progress == 1

    @pytest.mark.asyncio
    async def test_streak_starter_notifies_once(self, service):
        received = []

        async def on_unlock(user_id, record):
            received.append((user_id, record.name))

        service.add_notification_callback(on_unlock)
        habit = (await service.create_habit(USER, "Read", now=at(MONDAY, 8))).habit

        for i in range(5):
            await service.toggle_completion(USER, habit.id, now=at(MONDAY + timedelta(days=i), 9))

        names = [name for _, name in received]
        assert names.count("Streak Starter") == 1
        assert names.count("First Step") == 1
        assert names.count("Daily Dynamo") == 1

    @pytest.mark.asyncio
    async def test_toggle_off_keeps_achievement(self, service, store):
        habit = (await service.create_habit(USER, "Read", now=at(MONDAY, 8))).habit
        for i in range(3):
            await service.toggle_completion(USER, habit.id, now=at(MONDAY + timedelta(days=i), 9))
        unlocked_at = (await stored_achievements(store))["Streak Starter"].achieved_at

        await service.toggle_completion(USER, habit.id, now=at(MONDAY + timedelta(days=2), 20))

        starter = (await stored_achievements(store))["Streak Starter"]
        assert starter.achieved_at == unlocked_at
        assert starter.progress == 3

    @pytest.mark.asyncio
    async def test_failing_callback_is_contained(self, service):
        delivered = []

        async def broken(user_id, record):
            raise RuntimeError("push service down")

        async def working(user_id, record):
            delivered.append(record.name)

        service.add_notification_callback(broken)
        service.add_notification_callback(working)

        result = await service.create_habit(USER, "Read", now=at(MONDAY, 8))

        assert result.achievement_error is None
        assert "First Step" in delivered

    @pytest.mark.asyncio
    async def test_disabled_achievements(self, service, store):
        service.config.tracking.achievements_enabled = False

        result = await service.create_habit(USER, "Read", now=at(MONDAY, 8))
        await service.toggle_completion(USER, result.habit.id, now=at(MONDAY, 9))

        assert result.unlocked == []
        assert await store.list_achievements(USER) == []

    @pytest.mark.asyncio
    async def test_social_activity(self, service, store):
        for _ in range(3):
            await store.increment_social_count(USER, "friend_invites")

        result = await service.record_social_activity(USER, now=at(MONDAY))

        assert [r.name for r in result.unlocked] == ["Social Butterfly"]


class TestHabitLifecycle:
    """Multi-count logging, archive and hard delete"""

    @pytest.mark.asyncio
    async def test_log_completion_respects_target_count(self, service, store):
        habit = (await service.create_habit(USER, "Water", target_count=2, now=at(MONDAY, 8))).habit

        await service.log_completion(USER, habit.id, notes="glass one", now=at(MONDAY, 9))
        result = await service.log_completion(USER, habit.id, now=at(MONDAY, 12))

        assert result.streak.current_streak == 1
        with pytest.raises(ValidationError):
            await service.log_completion(USER, habit.id, now=at(MONDAY, 15))

        toggled = await service.toggle_completion(USER, habit.id, now=at(MONDAY, 18))
        assert toggled.removed_logs == 2
        assert await store.list_logs(USER, habit.id) == []

    @pytest.mark.asyncio
    async def test_create_habit_validates(self, service):
        with pytest.raises(ValidationError):
            await service.create_habit(USER, "   ", now=at(MONDAY))
        with pytest.raises(ValidationError):
            await service.create_habit(USER, "Read", frequency="hourly", now=at(MONDAY))

    @pytest.mark.asyncio
    async def test_archive_keeps_history(self, service, store):
        habit = (await service.create_habit(USER, "Read", now=at(MONDAY, 8))).habit
        await service.toggle_completion(USER, habit.id, now=at(MONDAY, 9))

        result = await service.archive_habit(USER, habit.id, now=at(MONDAY, 10))

        assert result.habit.archived
        assert result.habit.archived_at == at(MONDAY, 10)
        assert len(await store.list_logs(USER, habit.id)) == 1
        assert await store.list_habits(USER, include_archived=False) == []
        assert await service.get_streak_statuses(USER, now=at(MONDAY, 11)) == {}
        with pytest.raises(ValidationError):
            await service.log_completion(USER, habit.id, now=at(MONDAY, 12))

    @pytest.mark.asyncio
    async def test_archived_habit_cannot_be_toggled(self, service, store):
        habit = (await service.create_habit(USER, "Read", now=at(MONDAY, 8))).habit
        await service.toggle_completion(USER, habit.id, now=at(MONDAY, 9))
        await service.archive_habit(USER, habit.id, now=at(MONDAY, 10))

        with pytest.raises(ValidationError):
            await service.toggle_completion(USER, habit.id, now=at(MONDAY + timedelta(days=1), 9))
        with pytest.raises(ValidationError):
            await service.toggle_completion(USER, habit.id, now=at(MONDAY, 11))

        assert len(await store.list_logs(USER, habit.id)) == 1

    @pytest.mark.asyncio
    async def test_delete_cascades(self, service, store):
        habit = (await service.create_habit(USER, "Read", now=at(MONDAY, 8))).habit
        await service.toggle_completion(USER, habit.id, now=at(MONDAY, 9))

        await service.delete_habit(USER, habit.id, now=at(MONDAY, 10))

        with pytest.raises(RecordNotFoundError):
            await store.get_habit(USER, habit.id)
        assert await store.list_logs(USER) == []
        assert await store.list_streaks(USER) == []
        assert (await stored_achievements(store))["First Step"].is_achieved


class TestReadModels:

    @pytest.mark.asyncio
    async def test_overview_and_summary(self, service):
        read = (await service.create_habit(USER, "Read", now=at(MONDAY, 8))).habit
        run = (await service.create_habit(USER, "Run", now=at(MONDAY, 8))).habit
        for i in range(3):
            await service.toggle_completion(USER, read.id, now=at(MONDAY + timedelta(days=i), 7))
        await service.toggle_completion(USER, run.id, now=at(MONDAY + timedelta(days=1), 18))

        now = at(MONDAY + timedelta(days=2), 20)
        overview = await service.get_habit_overview(USER, read.id, now=now)
        summary = await service.get_user_summary(USER, now=now)
        statuses = await service.get_streak_statuses(USER, now=now)

        assert overview.streak.current_streak == 3
        assert overview.status == StreakStatus.ACTIVE
        assert overview.insights.best_hour == 7
        assert summary.active_habits == 2
        assert summary.completed_today == 1
        assert summary.today_completion_rate == 50
        assert summary.top_streak_habit["title"] == "Read"
        assert statuses == {read.id: StreakStatus.ACTIVE, run.id: StreakStatus.AT_RISK}
