"""Shared fixtures for the Habito test suite"""

from datetime import datetime, date, timedelta

import pytest
import pytz

from habito.config import HabitoConfig, DEFAULT_STREAK_MILESTONES
from habito.core.database import JsonFileStore, PersistenceError
from habito.core.models import CompletionLog, Habit
from habito.services.habit_service import HabitService

# Monday
MONDAY = date(2024, 1, 15)


def at(day: date, hour: int = 9, minute: int = 0) -> datetime:
    """Aware UTC timestamp on a given calendar day"""
    return pytz.utc.localize(datetime(day.year, day.month, day.day, hour, minute))


def make_log(day: date, habit_id: int = 1, user_id: str = "user-1", hour: int = 9, log_id=None) -> CompletionLog:
    return CompletionLog(id=log_id, habit_id=habit_id, user_id=user_id, completed_at=at(day, hour))


def make_habit(habit_id: int = 1, user_id: str = "user-1", title: str = "Read",
               created: date = MONDAY - timedelta(days=30), **kwargs) -> Habit:
    return Habit(id=habit_id, user_id=user_id, title=title, created_at=at(created, 8), **kwargs)


class FlakyStore(JsonFileStore):
    """JSON store whose individual operations can be switched to fail"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.failing = set()

    def _check(self, operation: str):
        if operation in self.failing:
            raise PersistenceError(f"{operation} unavailable")

    async def add_log(self, log):
        self._check("add_log")
        return await super().add_log(log)

    async def upsert_streak(self, record):
        self._check("upsert_streak")
        return await super().upsert_streak(record)

    async def list_achievements(self, user_id):
        self._check("list_achievements")
        return await super().list_achievements(user_id)


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "habito_store.json"


@pytest.fixture
def store(store_path):
    store = FlakyStore(store_path)
    yield store
    store.close()


@pytest.fixture
def utc_config():
    cfg = HabitoConfig()
    cfg.tracking.timezone = "UTC"
    cfg.tracking.achievements_enabled = True
    cfg.tracking.streak_milestones = list(DEFAULT_STREAK_MILESTONES)
    return cfg


@pytest.fixture
def service(store, utc_config):
    return HabitService(store, utc_config)
