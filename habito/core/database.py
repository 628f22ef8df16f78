#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Habito - Persistence Boundary
Store contract, persistence errors and a local JSON file store

Version: 1.0.0
"""

import io
import json
import asyncio
import threading
import shutil
from contextlib import asynccontextmanager
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional, Any, Iterable
from concurrent.futures import ThreadPoolExecutor
import logging

import pandas as pd
import pytz

from habito.config import config
from habito.core.models import Habit, CompletionLog, StreakRecord, AchievementRecord
from habito.core.schemas import (
    HabitRow, CompletionLogRow, StreakRow, AchievementRow, rows_to_models
)

logger = logging.getLogger(__name__)

# ===== EXCEPTIONS =====

class PersistenceError(Exception):
    """Base error for store reads and writes"""
    pass

class RecordNotFoundError(PersistenceError):
    """Requested row does not exist"""
    pass

class DatabaseCorruptionError(PersistenceError):
    """Stored document cannot be parsed"""
    pass

# ===== STORE CONTRACT =====

class HabitStore(ABC):
    """Async persistence collaborator for one application instance"""

    # Habits

    @abstractmethod
    async def list_habits(self, user_id: str, include_archived: bool = True) -> List[Habit]:
        pass

    @abstractmethod
    async def get_habit(self, user_id: str, habit_id: int) -> Habit:
        """Raises RecordNotFoundError when the habit does not exist"""
        pass

    @abstractmethod
    async def save_habit(self, habit: Habit) -> Habit:
        """Insert (assigning an id) or update a habit"""
        pass

    @abstractmethod
    async def delete_habit(self, user_id: str, habit_id: int) -> None:
        """Hard delete a habit together with its logs and streak row"""
        pass

    # Completion logs

    @abstractmethod
    async def list_logs(self, user_id: str, habit_id: Optional[int] = None) -> List[CompletionLog]:
        pass

    @abstractmethod
    async def add_log(self, log: CompletionLog) -> CompletionLog:
        pass

    @abstractmethod
    async def delete_logs(self, user_id: str, log_ids: Iterable[int]) -> int:
        pass

    # Streaks

    @abstractmethod
    async def list_streaks(self, user_id: str) -> List[StreakRecord]:
        pass

    @abstractmethod
    async def upsert_streak(self, record: StreakRecord) -> StreakRecord:
        pass

    # Achievements

    @abstractmethod
    async def list_achievements(self, user_id: str) -> List[AchievementRecord]:
        pass

    @abstractmethod
    async def upsert_achievements(self, records: Iterable[AchievementRecord]) -> List[AchievementRecord]:
        pass

    # Social

    @abstractmethod
    async def get_social_counts(self, user_id: str) -> Dict[str, int]:
        pass

# ===== JSON FILE STORE =====

TABLES = ("habits", "habit_logs", "habit_streaks", "user_achievements", "social_counts")

class JsonFileStore(HabitStore):
    """Single-document JSON store with atomic writes"""

    VERSION_KEY = "__schema_version__"
    CURRENT_VERSION = "1.0.0"

    def __init__(self, data_file: Optional[Path] = None, max_workers: int = 2):
        self.data_file = Path(data_file or config.storage.path)
        self.file_lock = threading.RLock()
        self.save_lock = asyncio.Lock()
        self.executor = ThreadPoolExecutor(max_workers=max_workers)
        self._data = self._load_sync()

    # ===== FILE I/O =====

    def _empty_document(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {table: [] for table in TABLES if table != "social_counts"}
        data["social_counts"] = {}
        data["__sequences__"] = {}
        data[self.VERSION_KEY] = self.CURRENT_VERSION
        return data

    def _load_sync(self) -> Dict[str, Any]:
        """Read the document from disk"""
        if not self.data_file.exists():
            logger.info(f"Store file {self.data_file} does not exist, starting empty")
            return self._empty_document()

        with self.file_lock:
            try:
                with open(self.data_file, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                logger.error(f"Store file {self.data_file} is corrupted: {e}")
                raise DatabaseCorruptionError(f"Cannot parse {self.data_file}: {e}")
            except OSError as e:
                raise PersistenceError(f"Cannot read {self.data_file}: {e}")

        if not isinstance(data, dict):
            raise DatabaseCorruptionError(f"{self.data_file} does not hold a JSON object")

        document = self._empty_document()
        document.update(data)
        logger.info(f"Loaded store from {self.data_file}")
        return document

    def _save_data_sync(self, data: Dict[str, Any]) -> None:
        """Atomic save through a temporary file"""
        with self.file_lock:
            self.data_file.parent.mkdir(parents=True, exist_ok=True)
            temp_file = self.data_file.with_suffix('.tmp')

            try:
                with open(temp_file, 'w', encoding='utf-8') as f:
                    json.dump(data, f, ensure_ascii=False, indent=2)
                shutil.move(str(temp_file), str(self.data_file))
            except (OSError, TypeError, ValueError) as e:
                if temp_file.exists():
                    temp_file.unlink()
                raise PersistenceError(f"Failed to write {self.data_file}: {e}")

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[Dict[str, Any]]:
        """Read-modify-write under the save lock.

        Yields a working copy of the document, which is written and made
        current when the block exits cleanly. Raising inside the block
        discards it.
        """
        async with self.save_lock:
            data = self._working_copy()
            yield data
            snapshot = json.loads(json.dumps(data))
            await asyncio.get_running_loop().run_in_executor(
                self.executor, self._save_data_sync, snapshot
            )
            self._data = snapshot

    def _next_id(self, data: Dict[str, Any], table: str) -> int:
        sequences = data.setdefault("__sequences__", {})
        sequences[table] = sequences.get(table, 0) + 1
        return sequences[table]

    def _working_copy(self) -> Dict[str, Any]:
        return json.loads(json.dumps(self._data))

    @staticmethod
    def _owner(row: Dict[str, Any]) -> Optional[str]:
        # older rows are keyed by profile_id
        return row.get("user_id", row.get("profile_id"))

    def _rows(self, table: str, user_id: str) -> List[Dict[str, Any]]:
        return [row for row in self._data.get(table, []) if self._owner(row) == user_id]

    # ===== HABITS =====

    async def list_habits(self, user_id: str, include_archived: bool = True) -> List[Habit]:
        habits = rows_to_models(HabitRow, self._rows("habits", user_id))
        if not include_archived:
            habits = [h for h in habits if not h.archived]
        return habits

    async def get_habit(self, user_id: str, habit_id: int) -> Habit:
        for habit in await self.list_habits(user_id):
            if habit.id == habit_id:
                return habit
        raise RecordNotFoundError(f"Habit {habit_id} not found for user {user_id}")

    async def save_habit(self, habit: Habit) -> Habit:
        async with self._transaction() as data:
            if habit.id is None:
                habit.id = self._next_id(data, "habits")
            row = HabitRow.from_model(habit).to_row()
            data["habits"] = [r for r in data["habits"] if r.get("id") != habit.id] + [row]
        return habit

    async def delete_habit(self, user_id: str, habit_id: int) -> None:
        async with self._transaction() as data:
            owned = [r for r in data["habits"] if r.get("id") == habit_id and self._owner(r) == user_id]
            if not owned:
                raise RecordNotFoundError(f"Habit {habit_id} not found for user {user_id}")

            data["habits"] = [r for r in data["habits"] if r.get("id") != habit_id]
            data["habit_logs"] = [r for r in data["habit_logs"] if r.get("habit_id") != habit_id]
            data["habit_streaks"] = [r for r in data["habit_streaks"] if r.get("habit_id") != habit_id]
        logger.info(f"Deleted habit {habit_id} with its logs and streak")

    # ===== COMPLETION LOGS =====

    async def list_logs(self, user_id: str, habit_id: Optional[int] = None) -> List[CompletionLog]:
        rows = self._rows("habit_logs", user_id)
        if habit_id is not None:
            rows = [r for r in rows if r.get("habit_id") == habit_id]
        return rows_to_models(CompletionLogRow, rows)

    async def add_log(self, log: CompletionLog) -> CompletionLog:
        async with self._transaction() as data:
            log.id = self._next_id(data, "habit_logs")
            data["habit_logs"].append(CompletionLogRow.from_model(log).to_row())
        return log

    async def delete_logs(self, user_id: str, log_ids: Iterable[int]) -> int:
        ids = set(log_ids)
        if not ids:
            return 0
        async with self._transaction() as data:
            before = len(data["habit_logs"])
            data["habit_logs"] = [
                r for r in data["habit_logs"]
                if not (r.get("id") in ids and self._owner(r) == user_id)
            ]
            removed = before - len(data["habit_logs"])
        return removed

    # ===== STREAKS =====

    async def list_streaks(self, user_id: str) -> List[StreakRecord]:
        return rows_to_models(StreakRow, self._rows("habit_streaks", user_id))

    async def upsert_streak(self, record: StreakRecord) -> StreakRecord:
        row = StreakRow.from_model(record).to_row()
        async with self._transaction() as data:
            data["habit_streaks"] = [
                r for r in data["habit_streaks"] if r.get("habit_id") != record.habit_id
            ] + [row]
        return record

    # ===== ACHIEVEMENTS =====

    async def list_achievements(self, user_id: str) -> List[AchievementRecord]:
        return rows_to_models(AchievementRow, self._rows("user_achievements", user_id))

    async def upsert_achievements(self, records: Iterable[AchievementRecord]) -> List[AchievementRecord]:
        records = list(records)
        if not records:
            return []
        async with self._transaction() as data:
            by_key = {(self._owner(r), r.get("name", r.get("title"))): r for r in data["user_achievements"]}
            for record in records:
                existing = by_key.get((record.user_id, record.name))
                if record.id is None:
                    record.id = existing["id"] if existing else self._next_id(data, "user_achievements")
                row = AchievementRow.from_model(record).to_row()
                row["updated_at"] = datetime.now(pytz.utc).isoformat()
                by_key[(record.user_id, record.name)] = row
            data["user_achievements"] = list(by_key.values())
        return records

    # ===== SOCIAL =====

    async def get_social_counts(self, user_id: str) -> Dict[str, int]:
        return dict(self._data.get("social_counts", {}).get(user_id, {}))

    async def increment_social_count(self, user_id: str, key: str, amount: int = 1) -> int:
        async with self._transaction() as data:
            counts = data["social_counts"].setdefault(user_id, {})
            counts[key] = counts.get(key, 0) + amount
        return counts[key]

    # ===== EXPORT =====

    async def export_user_data(self, user_id: str, format: str = "json") -> Optional[bytes]:
        """Export a user's habits and completion history"""
        habits = await self.list_habits(user_id)
        logs = await self.list_logs(user_id)
        streaks = {s.habit_id: s for s in await self.list_streaks(user_id)}

        if format.lower() == "json":
            export_data = {
                "export_info": {
                    "format": "json",
                    "version": self.CURRENT_VERSION,
                    "exported_at": datetime.now(pytz.utc).isoformat(),
                    "user_id": user_id
                },
                "habits": [h.to_dict() for h in habits],
                "logs": [log.to_dict() for log in logs],
                "streaks": [s.to_dict() for s in streaks.values()],
                "achievements": [a.to_dict() for a in await self.list_achievements(user_id)]
            }
            return json.dumps(export_data, ensure_ascii=False, indent=2).encode('utf-8')

        if format.lower() in ("csv", "xlsx"):
            titles = {h.id: h.title for h in habits}
            columns = ["habit_id", "title", "completed_at", "notes", "current_streak", "longest_streak"]
            rows = []
            for log in logs:
                streak = streaks.get(log.habit_id)
                rows.append({
                    "habit_id": log.habit_id,
                    "title": titles.get(log.habit_id, ""),
                    "completed_at": log.completed_at.isoformat(),
                    "notes": log.notes,
                    "current_streak": streak.current_streak if streak else 0,
                    "longest_streak": streak.longest_streak if streak else 0
                })
            df = pd.DataFrame(rows, columns=columns)

            if format.lower() == "csv":
                buffer = io.StringIO()
                df.to_csv(buffer, index=False)
                return buffer.getvalue().encode('utf-8')

            summary = pd.DataFrame([
                {"habit_id": h.id, "title": h.title, "archived": h.archived,
                 "current_streak": streaks[h.id].current_streak if h.id in streaks else 0,
                 "longest_streak": streaks[h.id].longest_streak if h.id in streaks else 0}
                for h in habits
            ], columns=["habit_id", "title", "archived", "current_streak", "longest_streak"])
            output = io.BytesIO()
            with pd.ExcelWriter(output, engine='openpyxl') as writer:
                df.to_excel(writer, sheet_name='Completions', index=False)
                summary.to_excel(writer, sheet_name='Habits', index=False)
            logger.info(f"📈 Excel export prepared for user {user_id}")
            return output.getvalue()

        logger.warning(f"Unsupported export format: {format}")
        return None

    def close(self) -> None:
        self.executor.shutdown(wait=True)

# ===== CONVENIENCE FUNCTIONS =====

def create_store(data_file: Optional[Path] = None) -> JsonFileStore:
    """Create the default local store"""
    return JsonFileStore(data_file)

# ===== EXPORT =====

__all__ = [
    'PersistenceError',
    'RecordNotFoundError',
    'DatabaseCorruptionError',
    'HabitStore',
    'JsonFileStore',
    'create_store'
]
