# habito/core/__init__.py

"""
Core domain of Habito: records, streak engine, achievements, analytics and
the persistence boundary.
"""

from .models import (
    Habit, CompletionLog, StreakRecord, AchievementRecord,
    HabitFrequency, AchievementType, StreakStatus, ValidationError
)
from .streaks import StreakEngine, compute_current_streak, compute_longest_streak
from .achievements import AchievementRegistry, AchievementEvaluator, EvaluationResult
from .database import (
    HabitStore, JsonFileStore, PersistenceError, RecordNotFoundError,
    DatabaseCorruptionError, create_store
)

__all__ = [
    # Records
    'Habit',
    'CompletionLog',
    'StreakRecord',
    'AchievementRecord',
    'HabitFrequency',
    'AchievementType',
    'StreakStatus',
    'ValidationError',

    # Engines
    'StreakEngine',
    'compute_current_streak',
    'compute_longest_streak',
    'AchievementRegistry',
    'AchievementEvaluator',
    'EvaluationResult',

    # Persistence
    'HabitStore',
    'JsonFileStore',
    'PersistenceError',
    'RecordNotFoundError',
    'DatabaseCorruptionError',
    'create_store'
]
