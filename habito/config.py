#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Habito - Configuration
Centralized environment-driven configuration with validation

Version: 1.0.0
"""

import os
import sys
from pathlib import Path
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from enum import Enum

import pytz

DEFAULT_STREAK_MILESTONES = [3, 7, 14, 21, 30, 60, 90, 180, 365]

class Environment(Enum):
    """Runtime environments"""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"

class LogLevel(Enum):
    """Logging levels"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

@dataclass
class StorageConfig:
    """Local JSON store configuration"""
    path: Path

@dataclass
class TrackingConfig:
    """Streak and achievement tracking configuration"""
    timezone: str = "UTC"
    achievements_enabled: bool = True
    streak_milestones: List[int] = field(default_factory=lambda: list(DEFAULT_STREAK_MILESTONES))

    @property
    def tzinfo(self):
        return pytz.timezone(self.timezone)

class HabitoConfig:
    """Main configuration class"""

    def __init__(self):
        self.environment = Environment(os.getenv('ENVIRONMENT', 'development'))
        self._load_config()
        self._validate_config()

    def _load_config(self):
        """Load configuration from environment variables"""

        # Directories
        self.data_dir = Path(os.getenv('DATA_DIR', 'data'))
        self.log_dir = Path(os.getenv('LOG_DIR', 'logs'))

        self.storage = StorageConfig(
            path=self.data_dir / "habito_store.json"
        )

        self.tracking = TrackingConfig(
            timezone=os.getenv('HABITO_TIMEZONE', 'UTC'),
            achievements_enabled=os.getenv('ACHIEVEMENTS_ENABLED', 'true').lower() == 'true',
            streak_milestones=self._parse_milestones(os.getenv('STREAK_MILESTONES'))
        )

        # Logging
        self.log_level = LogLevel(os.getenv('LOG_LEVEL', 'INFO').upper())
        self.log_to_file = os.getenv('LOG_TO_FILE', 'false').lower() == 'true'
        self.log_format = os.getenv(
            'LOG_FORMAT',
            '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
        )

    @staticmethod
    def _parse_milestones(raw: Optional[str]) -> List[int]:
        """Parse a comma separated milestone list"""
        if not raw:
            return list(DEFAULT_STREAK_MILESTONES)
        try:
            return sorted({int(part) for part in raw.split(',') if part.strip()})
        except ValueError:
            raise ValueError(f"STREAK_MILESTONES must be a comma separated list of integers, got {raw!r}")

    def _validate_config(self):
        """Validate configuration"""
        errors = []

        if self.tracking.timezone not in pytz.all_timezones_set:
            errors.append(f"HABITO_TIMEZONE {self.tracking.timezone!r} is not a known timezone")

        if any(m <= 0 for m in self.tracking.streak_milestones):
            errors.append("STREAK_MILESTONES must contain positive numbers only")

        if errors:
            raise ValueError("Configuration errors:\n" + "\n".join(f"• {error}" for error in errors))

    def get_logging_config(self) -> Dict[str, Any]:
        """Build a logging dictConfig mapping"""
        handlers = ['console']
        if self.log_to_file:
            handlers.append('file')

        handler_defs: Dict[str, Any] = {
            'console': {
                'class': 'logging.StreamHandler',
                'level': self.log_level.value,
                'formatter': 'default',
                'stream': sys.stdout
            }
        }
        if self.log_to_file:
            handler_defs['file'] = {
                'class': 'logging.handlers.RotatingFileHandler',
                'level': self.log_level.value,
                'formatter': 'default',
                'filename': str(self.log_dir / f"habito_{self.environment.value}.log"),
                'maxBytes': 10485760,  # 10MB
                'backupCount': 5,
                'encoding': 'utf-8'
            }

        return {
            'version': 1,
            'disable_existing_loggers': False,
            'formatters': {
                'default': {
                    'format': self.log_format,
                    'datefmt': '%Y-%m-%d %H:%M:%S'
                }
            },
            'handlers': handler_defs,
            'loggers': {
                '': {
                    'level': self.log_level.value,
                    'handlers': handlers,
                    'propagate': False
                },
                'asyncio': {
                    'level': 'WARNING',
                    'handlers': handlers,
                    'propagate': False
                }
            }
        }

    def to_dict(self) -> Dict[str, Any]:
        """Serialize configuration"""
        return {
            'environment': self.environment.value,
            'timezone': self.tracking.timezone,
            'achievements_enabled': self.tracking.achievements_enabled,
            'streak_milestones': self.tracking.streak_milestones,
            'store_path': str(self.storage.path),
            'log_level': self.log_level.value,
            'log_to_file': self.log_to_file
        }

# Global configuration instance
config = HabitoConfig()

__all__ = [
    'config',
    'HabitoConfig',
    'Environment',
    'LogLevel',
    'StorageConfig',
    'TrackingConfig',
    'DEFAULT_STREAK_MILESTONES'
]
