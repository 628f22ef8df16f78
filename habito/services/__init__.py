# habito/services/__init__.py

"""
Habito services: coordinate the store, the streak engine and the
achievement evaluator for each user action.
"""

from .habit_service import HabitService, ToggleResult, HabitChangeResult, HabitOverview

__all__ = [
    'HabitService',
    'ToggleResult',
    'HabitChangeResult',
    'HabitOverview'
]
