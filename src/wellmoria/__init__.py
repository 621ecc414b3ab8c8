"""Wellmoria - daily step, water and goal tracking over a realtime database."""

__version__ = "1.0.0"

from .models import (
    DailyRecord,
    WaterLogEntry,
    WaterRecord,
    UserGoals,
    UserProfile,
    TodaySummary,
    LocalCounterState,
    SensorAvailability,
)
from .errors import (
    WellmoriaError,
    MalformedRecordError,
    SensorUnavailable,
    StoreError,
    TransientWriteFailure,
)
from .config import (
    Config,
    StepConfig,
    GoalConfig,
    RewardConfig,
    StoreConfig,
    get_config_dir,
)
from .session import UserSession
from .store import RealtimeStore, MemoryStore
from .cache import LocalCache, get_data_dir
from .sensor import StepSensor, probe_availability
from .counter import DailyCounterStore
from .water import WaterTracker, WaterAddition, WATER_PRESETS
from .weekly import WeeklyAggregator, WeeklySeries, WeeklyPoint, build_weekly_series
from .progress import (
    progress,
    percentage,
    goal_met,
    points_for_water_addition,
    level_progress,
    next_level_points,
    step_motivation,
)
from .profile import ProfileService
from .dashboard import HomeDashboard, DashboardSnapshot, build_dashboard

__all__ = [
    # Models
    "DailyRecord",
    "WaterLogEntry",
    "WaterRecord",
    "UserGoals",
    "UserProfile",
    "TodaySummary",
    "LocalCounterState",
    "SensorAvailability",
    # Errors
    "WellmoriaError",
    "MalformedRecordError",
    "SensorUnavailable",
    "StoreError",
    "TransientWriteFailure",
    # Configuration
    "Config",
    "StepConfig",
    "GoalConfig",
    "RewardConfig",
    "StoreConfig",
    "get_config_dir",
    # Collaborators
    "UserSession",
    "RealtimeStore",
    "MemoryStore",
    "LocalCache",
    "get_data_dir",
    "StepSensor",
    "probe_availability",
    # Tracking
    "DailyCounterStore",
    "WaterTracker",
    "WaterAddition",
    "WATER_PRESETS",
    "WeeklyAggregator",
    "WeeklySeries",
    "WeeklyPoint",
    "build_weekly_series",
    # Progress
    "progress",
    "percentage",
    "goal_met",
    "points_for_water_addition",
    "level_progress",
    "next_level_points",
    "step_motivation",
    # Profile and dashboard
    "ProfileService",
    "HomeDashboard",
    "DashboardSnapshot",
    "build_dashboard",
]
