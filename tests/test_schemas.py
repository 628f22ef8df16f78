"""Row schema tests for the field-name drift of stored rows"""

from datetime import date

from habito.core.models import AchievementType
from habito.core.schemas import (
    AchievementRow, CompletionLogRow, HabitRow, StreakRow, parse_rows, rows_to_models
)


class TestFieldDrift:

    def test_habit_accepts_profile_id_and_name(self):
        row = HabitRow.model_validate({
            "id": 1, "profile_id": "user-1", "name": "  Read  ",
            "created_at": "2024-01-15T08:00:00Z"
        })
        habit = row.to_model()

        assert habit.user_id == "user-1"
        assert habit.title == "Read"
        assert habit.created_at.utcoffset().total_seconds() == 0

    def test_achievement_accepts_title(self):
        row = AchievementRow.model_validate({
            "user_id": "user-1", "title": "Streak Pro", "type": "streak", "progress": 4, "target": 7
        })

        assert row.name == "Streak Pro"
        assert row.to_model().type == AchievementType.STREAK.value
        assert row.to_row()["name"] == "Streak Pro"

    def test_streak_truncates_timestamps(self):
        row = StreakRow.model_validate({
            "habit_id": 1, "user_id": "user-1", "current_streak": 2, "longest_streak": 5,
            "last_tracked_date": "2024-01-15T21:04:11.000Z"
        })

        assert row.last_tracked_date == date(2024, 1, 15)


class TestParseRows:

    def test_malformed_rows_are_skipped(self):
        rows = [
            {"habit_id": 1, "user_id": "user-1", "completed_at": "2024-01-15T08:00:00Z"},
            {"habit_id": 1, "user_id": "user-1", "completed_at": "yesterday"},
            {"user_id": "user-1", "completed_at": "2024-01-15T08:00:00Z"},
        ]

        assert len(parse_rows(CompletionLogRow, rows)) == 1
        assert len(rows_to_models(CompletionLogRow, rows)) == 1

    def test_blank_titles_are_rejected(self):
        rows = [{"user_id": "user-1", "title": "   ", "created_at": "2024-01-15T08:00:00Z"}]

        assert parse_rows(HabitRow, rows) == []
