#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Habito - Core Data Models
Canonical records with validation and serialization

Version: 1.0.0
"""

from datetime import datetime, date
from typing import Dict, Optional, Any
from dataclasses import dataclass, field, asdict
from enum import Enum
import logging

import pytz

from habito.utils.datetime_utils import parse_timestamp

logger = logging.getLogger(__name__)

# ===== ENUMS =====

class HabitFrequency(Enum):
    """How often a habit is expected to be done"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

class AchievementType(Enum):
    """Achievement categories"""
    STREAK = "streak"
    COMPLETION = "completion"
    CONSISTENCY = "consistency"
    MILESTONE = "milestone"
    SOCIAL = "social"

class StreakStatus(Enum):
    """State of a habit's streak relative to today"""
    ACTIVE = "active"
    AT_RISK = "at_risk"
    BROKEN = "broken"

# ===== VALIDATION HELPERS =====

class ValidationError(Exception):
    """Invalid record data"""
    pass

def validate_text(text: str, min_length: int = 1, max_length: int = 1000, field_name: str = "text") -> str:
    """Validate and strip a text field"""
    if not isinstance(text, str):
        raise ValidationError(f"{field_name} must be a string")

    text = text.strip()
    if len(text) < min_length:
        raise ValidationError(f"{field_name} must be at least {min_length} characters")

    if len(text) > max_length:
        raise ValidationError(f"{field_name} must be at most {max_length} characters")

    return text

def validate_enum_value(value: str, enum_class: type, field_name: str = "value") -> str:
    """Validate an enum value given as its string"""
    if isinstance(value, enum_class):
        return value.value
    try:
        enum_class(value)
        return value
    except ValueError:
        valid_values = [e.value for e in enum_class]
        raise ValidationError(f"{field_name} must be one of: {valid_values}")

def validate_non_negative(value: int, field_name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValidationError(f"{field_name} must be a non-negative integer")
    return value

def _as_datetime(value: Any, field_name: str) -> datetime:
    try:
        return parse_timestamp(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid {field_name}: {value!r} ({e})")

def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None

def _utcnow() -> datetime:
    return datetime.now(pytz.utc)

# ===== CORE MODELS =====

@dataclass
class Habit:
    """A recurring user-defined activity"""
    id: Optional[int]
    user_id: str
    title: str
    description: str = ""
    frequency: str = HabitFrequency.DAILY.value
    target_count: int = 1
    color: str = "#6366f1"
    icon: str = "✅"
    created_at: datetime = field(default_factory=_utcnow)
    archived: bool = False
    archived_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate after construction"""
        if not self.user_id:
            raise ValidationError("user_id is required")

        self.title = validate_text(self.title, min_length=1, max_length=200, field_name="title")
        self.description = validate_text(self.description or "", min_length=0, max_length=1000,
                                         field_name="description")
        self.frequency = validate_enum_value(self.frequency, HabitFrequency, "frequency")

        if not isinstance(self.target_count, int) or self.target_count < 1:
            raise ValidationError("target_count must be a positive integer")

        self.created_at = _as_datetime(self.created_at, "created_at")
        if self.archived_at is not None:
            self.archived_at = _as_datetime(self.archived_at, "archived_at")

    @property
    def is_active(self) -> bool:
        return not self.archived

    def archive(self, now: Optional[datetime] = None) -> bool:
        """Soft-delete the habit"""
        if self.archived:
            return False
        self.archived = True
        self.archived_at = now or _utcnow()
        return True

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['created_at'] = _iso(self.created_at)
        data['archived_at'] = _iso(self.archived_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Habit":
        return cls(
            id=data.get("id"),
            user_id=data["user_id"],
            title=data["title"],
            description=data.get("description") or "",
            frequency=data.get("frequency", HabitFrequency.DAILY.value),
            target_count=data.get("target_count", 1),
            color=data.get("color") or "#6366f1",
            icon=data.get("icon") or "✅",
            created_at=data.get("created_at") or _utcnow(),
            archived=bool(data.get("archived", False)),
            archived_at=data.get("archived_at")
        )

@dataclass
class CompletionLog:
    """A record that a habit was performed"""
    id: Optional[int]
    habit_id: int
    user_id: str
    completed_at: datetime
    notes: Optional[str] = None

    def __post_init__(self):
        if self.habit_id is None:
            raise ValidationError("habit_id is required")
        self.completed_at = _as_datetime(self.completed_at, "completed_at")
        if self.notes is not None:
            self.notes = validate_text(self.notes, min_length=0, max_length=500, field_name="notes")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "habit_id": self.habit_id,
            "user_id": self.user_id,
            "completed_at": _iso(self.completed_at),
            "notes": self.notes
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompletionLog":
        return cls(
            id=data.get("id"),
            habit_id=data["habit_id"],
            user_id=data["user_id"],
            completed_at=data["completed_at"],
            notes=data.get("notes")
        )

@dataclass
class StreakRecord:
    """Cached streak projection of a habit's completion logs"""
    habit_id: int
    user_id: str
    current_streak: int = 0
    longest_streak: int = 0
    last_tracked_date: Optional[date] = None

    def __post_init__(self):
        validate_non_negative(self.current_streak, "current_streak")
        validate_non_negative(self.longest_streak, "longest_streak")
        if isinstance(self.last_tracked_date, datetime):
            self.last_tracked_date = self.last_tracked_date.date()
        elif isinstance(self.last_tracked_date, str):
            try:
                self.last_tracked_date = date.fromisoformat(self.last_tracked_date[:10])
            except ValueError:
                raise ValidationError(f"Invalid last_tracked_date: {self.last_tracked_date!r}")

    def same_numbers(self, other: "StreakRecord") -> bool:
        return (self.current_streak == other.current_streak
                and self.longest_streak == other.longest_streak
                and self.last_tracked_date == other.last_tracked_date)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "habit_id": self.habit_id,
            "user_id": self.user_id,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_tracked_date": self.last_tracked_date.isoformat() if self.last_tracked_date else None
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StreakRecord":
        return cls(
            habit_id=data["habit_id"],
            user_id=data["user_id"],
            current_streak=data.get("current_streak", 0),
            longest_streak=data.get("longest_streak", 0),
            last_tracked_date=data.get("last_tracked_date")
        )

@dataclass
class AchievementRecord:
    """Per-user progress towards one achievement definition"""
    id: Optional[int]
    user_id: str
    name: str
    type: str
    progress: int = 0
    target: int = 1
    achieved_at: Optional[datetime] = None
    description: str = ""
    icon: str = "🏆"

    def __post_init__(self):
        self.name = validate_text(self.name, min_length=1, max_length=100, field_name="name")
        self.type = validate_enum_value(self.type, AchievementType, "type")
        validate_non_negative(self.progress, "progress")
        if not isinstance(self.target, int) or self.target < 1:
            raise ValidationError("target must be a positive integer")
        if self.achieved_at is not None:
            self.achieved_at = _as_datetime(self.achieved_at, "achieved_at")

    @property
    def is_achieved(self) -> bool:
        return self.achieved_at is not None

    @property
    def progress_percentage(self) -> float:
        return min(100.0, (self.progress / self.target) * 100)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['achieved_at'] = _iso(self.achieved_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AchievementRecord":
        return cls(
            id=data.get("id"),
            user_id=data["user_id"],
            name=data["name"],
            type=data["type"],
            progress=data.get("progress", 0),
            target=data.get("target", 1),
            achieved_at=data.get("achieved_at"),
            description=data.get("description") or "",
            icon=data.get("icon") or "🏆"
        )

__all__ = [
    # Enums
    'HabitFrequency',
    'AchievementType',
    'StreakStatus',

    # Validation
    'ValidationError',
    'validate_text',
    'validate_enum_value',

    # Records
    'Habit',
    'CompletionLog',
    'StreakRecord',
    'AchievementRecord'
]
