"""Focus/break session engine.

Runs work and break intervals, sizes work from a task's estimated effort,
books coins and a daily streak on natural completions, and collects a focus
rating after each work interval.
"""

from .config import EngineSettings
from .engine import SessionEngine
from .errors import (
    ConfigError,
    EngineError,
    InvalidDuration,
    InvalidRating,
    Notice,
    NoticeKind,
    ServiceError,
    TaskNotFound,
)
from .modes import Mode
from .rewards import RewardRecord
from .services import StaticTaskProvider, Task

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "EngineError",
    "EngineSettings",
    "InvalidDuration",
    "InvalidRating",
    "Mode",
    "Notice",
    "NoticeKind",
    "RewardRecord",
    "ServiceError",
    "SessionEngine",
    "StaticTaskProvider",
    "Task",
    "TaskNotFound",
]
