# habito/__init__.py

"""
Habito

Habit tracking core: completion logs, calendar-day streaks and achievements.
"""

__version__ = "1.0.0"

__all__ = ['__version__']
