"""Row schemas for the hosted backend tables.

Rows coming back from the backend are loosely shaped: achievements are keyed by
``title`` on some tables and ``name`` on others, owners by ``user_id`` or
``profile_id``, and timestamps arrive as ISO strings with or without a ``Z``
suffix. These schemas accept every variant and convert to the canonical
records in :mod:`habito.core.models`.
"""

import logging
from datetime import datetime, date
from typing import List, Optional, Any, Iterable, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, AliasChoices, ValidationError, field_validator

from habito.core.models import (
    Habit, CompletionLog, StreakRecord, AchievementRecord,
    HabitFrequency, AchievementType, ValidationError as RecordValidationError
)

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT", bound="BaseRow")

class BaseRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_row(self) -> dict:
        return self.model_dump(mode="json")

class HabitRow(BaseRow):
    id: Optional[int] = None
    user_id: str = Field(validation_alias=AliasChoices("user_id", "profile_id"))
    title: str = Field(min_length=1, max_length=200, validation_alias=AliasChoices("title", "name"))
    description: Optional[str] = Field(None, max_length=1000)
    frequency: HabitFrequency = HabitFrequency.DAILY
    target_count: int = Field(1, ge=1)
    color: Optional[str] = None
    icon: Optional[str] = None
    created_at: datetime
    archived: bool = False
    archived_at: Optional[datetime] = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError('title must not be blank')
        return v.strip()

    def to_model(self) -> Habit:
        return Habit(
            id=self.id,
            user_id=self.user_id,
            title=self.title,
            description=self.description or "",
            frequency=self.frequency.value,
            target_count=self.target_count,
            color=self.color or "#6366f1",
            icon=self.icon or "✅",
            created_at=self.created_at,
            archived=self.archived,
            archived_at=self.archived_at
        )

    @classmethod
    def from_model(cls, habit: Habit) -> "HabitRow":
        return cls(**habit.to_dict())

class CompletionLogRow(BaseRow):
    id: Optional[int] = None
    habit_id: int
    user_id: str = Field(validation_alias=AliasChoices("user_id", "profile_id"))
    completed_at: datetime
    notes: Optional[str] = Field(None, max_length=500)

    def to_model(self) -> CompletionLog:
        return CompletionLog(
            id=self.id,
            habit_id=self.habit_id,
            user_id=self.user_id,
            completed_at=self.completed_at,
            notes=self.notes
        )

    @classmethod
    def from_model(cls, log: CompletionLog) -> "CompletionLogRow":
        return cls(**log.to_dict())

class StreakRow(BaseRow):
    habit_id: int
    user_id: str = Field(validation_alias=AliasChoices("user_id", "profile_id"))
    current_streak: int = Field(0, ge=0)
    longest_streak: int = Field(0, ge=0)
    last_tracked_date: Optional[date] = None

    @field_validator('last_tracked_date', mode='before')
    @classmethod
    def date_part(cls, v: Any):
        # older rows store a full timestamp here
        if isinstance(v, str) and len(v) > 10:
            return v[:10]
        if isinstance(v, datetime):
            return v.date()
        return v

    def to_model(self) -> StreakRecord:
        return StreakRecord(
            habit_id=self.habit_id,
            user_id=self.user_id,
            current_streak=self.current_streak,
            longest_streak=self.longest_streak,
            last_tracked_date=self.last_tracked_date
        )

    @classmethod
    def from_model(cls, record: StreakRecord) -> "StreakRow":
        return cls(**record.to_dict())

class AchievementRow(BaseRow):
    id: Optional[int] = None
    user_id: str = Field(validation_alias=AliasChoices("user_id", "profile_id"))
    name: str = Field(min_length=1, validation_alias=AliasChoices("name", "title"))
    type: AchievementType
    progress: int = Field(0, ge=0)
    target: int = Field(1, ge=1)
    achieved_at: Optional[datetime] = None
    description: Optional[str] = None
    icon: Optional[str] = None

    def to_model(self) -> AchievementRecord:
        return AchievementRecord(
            id=self.id,
            user_id=self.user_id,
            name=self.name,
            type=self.type.value,
            progress=self.progress,
            target=self.target,
            achieved_at=self.achieved_at,
            description=self.description or "",
            icon=self.icon or "🏆"
        )

    @classmethod
    def from_model(cls, record: AchievementRecord) -> "AchievementRow":
        return cls(**record.to_dict())

def parse_rows(schema: Type[RowT], rows: Iterable[dict]) -> List[RowT]:
    """Validate raw rows, skipping (and logging) the malformed ones"""
    parsed = []
    for row in rows:
        try:
            parsed.append(schema.model_validate(row))
        except ValidationError as e:
            logger.warning(f"Skipping malformed {schema.__name__} row {row!r}: {e.error_count()} error(s)")
    return parsed

def rows_to_models(schema: Type[RowT], rows: Iterable[dict]) -> list:
    models = []
    for row in parse_rows(schema, rows):
        try:
            models.append(row.to_model())
        except RecordValidationError as e:
            logger.warning(f"Skipping invalid {schema.__name__} row: {e}")
    return models

__all__ = [
    'HabitRow',
    'CompletionLogRow',
    'StreakRow',
    'AchievementRow',
    'parse_rows',
    'rows_to_models'
]
