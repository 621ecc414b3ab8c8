"""Home dashboard snapshot.

Combines the profile, the 'today' summary and both weekly series into one
value the Home screen can show directly: progress toward each goal, level
progress, the motivation message and weekly totals.
"""

import logging
import threading
from datetime import date, datetime
from typing import Any, Callable, Optional

from pydantic import BaseModel

from .config import Config
from .errors import MalformedRecordError
from .models import TodaySummary, UserProfile
from .profile import ProfileService
from .progress import goal_met, level_progress, next_level_points, percentage, progress, remaining, step_motivation
from .session import UserSession
from .store import RealtimeStore, Unsubscribe
from .weekly import KIND_STEPS, KIND_WATER, WeeklyAggregator, WeeklySeries

logger = logging.getLogger(__name__)


class DashboardSnapshot(BaseModel):
    """Everything the Home screen shows for one day."""

    day: date
    full_name: str = ""

    steps: int = 0
    calories_burned: float = 0.0
    distance_km: float = 0.0
    step_goal: int
    step_progress: float = 0.0
    step_percentage: int = 0
    step_goal_met: bool = False
    steps_remaining: int = 0

    water_ml: int = 0
    water_goal: int
    water_progress: float = 0.0
    water_percentage: int = 0
    water_goal_met: bool = False

    level: int = 1
    total_points: int = 0
    level_progress: float = 0.0
    next_level_points: int = 0

    headline: str = ""
    detail: str = ""

    weekly_steps_total: int = 0
    weekly_water_total: int = 0
    weekly_calories_total: float = 0.0


def build_dashboard(
    profile: UserProfile,
    summary: TodaySummary,
    day: date,
    weekly_steps: Optional[WeeklySeries] = None,
    weekly_water: Optional[WeeklySeries] = None,
    points_per_level: int = 1000,
) -> DashboardSnapshot:
    """Snapshot for 'day'. A summary left over from another day counts as empty."""
    today = summary.for_day(day)
    step_goal = profile.daily_step_goal
    water_goal = profile.daily_water_goal
    headline, detail = step_motivation(today.steps, step_goal)

    return DashboardSnapshot(
        day=day,
        full_name=profile.full_name,
        steps=today.steps,
        calories_burned=today.calories_burned,
        distance_km=today.distance_km,
        step_goal=step_goal,
        step_progress=progress(today.steps, step_goal),
        step_percentage=percentage(today.steps, step_goal),
        step_goal_met=goal_met(today.steps, step_goal),
        steps_remaining=remaining(today.steps, step_goal),
        water_ml=today.water_ml,
        water_goal=water_goal,
        water_progress=progress(today.water_ml, water_goal),
        water_percentage=percentage(today.water_ml, water_goal),
        water_goal_met=goal_met(today.water_ml, water_goal),
        level=profile.current_level,
        total_points=profile.total_points,
        level_progress=level_progress(profile.total_points, profile.current_level, points_per_level),
        next_level_points=next_level_points(profile.current_level, points_per_level),
        headline=headline,
        detail=detail,
        weekly_steps_total=weekly_steps.total if weekly_steps else 0,
        weekly_water_total=weekly_water.total if weekly_water else 0,
        weekly_calories_total=weekly_steps.total_calories if weekly_steps else 0.0,
    )


class HomeDashboard:
    """Live dashboard: re-emits a snapshot whenever any source changes.

    Usage:
        home = HomeDashboard(session, store, on_snapshot).start()
        ...
        home.close()
    """

    def __init__(
        self,
        session: UserSession,
        store: RealtimeStore,
        callback: Optional[Callable[[DashboardSnapshot], None]] = None,
        config: Optional[Config] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session = session
        self.store = store
        self.callback = callback
        self.config = config or Config()
        self._clock = clock or datetime.now
        self._lock = threading.RLock()
        self._started = False

        self.profile = UserProfile()
        self.summary = TodaySummary()
        self.snapshot: Optional[DashboardSnapshot] = None

        self._profiles = ProfileService(session, store, self.config, self._clock)
        self._steps = WeeklyAggregator(
            session, store, KIND_STEPS, self.profile.daily_step_goal, self._clock, self._on_weekly
        )
        self._water = WeeklyAggregator(
            session, store, KIND_WATER, self.profile.daily_water_goal, self._clock, self._on_weekly
        )
        self._unsubscribe_today: Optional[Unsubscribe] = None

    def start(self) -> "HomeDashboard":
        self._profiles.subscribe(self._on_profile)
        self._unsubscribe_today = self.store.on_value(self.session.today_path, self._on_today)
        self._steps.start()
        self._water.start()
        self._started = True
        self._emit()
        return self

    def _on_profile(self, profile: UserProfile) -> None:
        with self._lock:
            self.profile = profile
        self._steps.set_goal(profile.daily_step_goal)
        self._water.set_goal(profile.daily_water_goal)
        self._emit()

    def _on_today(self, snapshot: Any) -> None:
        try:
            summary = TodaySummary.from_remote(snapshot, self.session.today_path)
        except MalformedRecordError as e:
            logger.warning("Ignoring today summary: %s", e)
            return
        with self._lock:
            self.summary = summary
        self._emit()

    def _on_weekly(self, series: WeeklySeries) -> None:
        self._emit()

    def _emit(self) -> None:
        if not self._started:
            return
        with self._lock:
            snapshot = build_dashboard(
                self.profile,
                self.summary,
                self._clock().date(),
                self._steps.series,
                self._water.series,
                self.config.rewards.points_per_level,
            )
            self.snapshot = snapshot
        if self.callback is not None:
            self.callback(snapshot)

    def close(self) -> None:
        """Release every listener. Safe to call more than once."""
        self._started = False
        self._profiles.close()
        if self._unsubscribe_today is not None:
            self._unsubscribe_today()
            self._unsubscribe_today = None
        self._steps.close()
        self._water.close()

    def __enter__(self) -> "HomeDashboard":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
