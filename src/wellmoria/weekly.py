"""Seven-day rolling series for steps and water.

The series always has exactly seven points, oldest first, ending today.
Days without a record count as 0. Every point carries the goal passed in
at build time, so past days are compared against today's goal.
"""

import logging
import threading
from datetime import date, datetime, timedelta
from typing import Any, Callable, Optional

from pydantic import BaseModel

from .errors import MalformedRecordError
from .models import DailyRecord, WaterRecord
from .session import UserSession
from .store import RealtimeStore, Unsubscribe

logger = logging.getLogger(__name__)

KIND_STEPS = "steps"
KIND_WATER = "water"
KINDS = (KIND_STEPS, KIND_WATER)

WEEK_DAYS = 7
WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


class WeeklyPoint(BaseModel):
    """One day of the series."""

    date: date
    label: str
    value: int = 0
    goal: int = 0
    calories_burned: float = 0.0

    @property
    def goal_met(self) -> bool:
        return self.goal > 0 and self.value >= self.goal


class WeeklySeries(BaseModel):
    """Seven points for one kind of record, oldest first."""

    kind: str
    points: list[WeeklyPoint]

    @property
    def values(self) -> list[int]:
        return [p.value for p in self.points]

    @property
    def labels(self) -> list[str]:
        return [p.label for p in self.points]

    @property
    def total(self) -> int:
        return sum(p.value for p in self.points)

    @property
    def average(self) -> int:
        return int(self.total / len(self.points)) if self.points else 0

    @property
    def goals_met(self) -> int:
        return sum(1 for p in self.points if p.goal_met)

    @property
    def total_calories(self) -> float:
        return sum(p.calories_burned for p in self.points)


def build_weekly_series(kind: str, records: Any, today: date, goal: int) -> WeeklySeries:
    """Build the seven-day series from a users/{uid}/steps or /water snapshot.

    Args:
        kind: 'steps' or 'water'.
        records: Mapping of ISO date to stored record (None means no records).
        today: Last day of the series.
        goal: Current goal, attached to every day.

    Raises:
        MalformedRecordError: If the snapshot or a record in the window is malformed.
    """
    if kind not in KINDS:
        raise ValueError(f"Unknown series kind: {kind!r}")
    if records is None:
        records = {}
    if not isinstance(records, dict):
        raise MalformedRecordError(kind, f"expected an object keyed by date, got {type(records).__name__}")

    points = []
    for i in range(WEEK_DAYS):
        day = today - timedelta(days=WEEK_DAYS - 1 - i)
        key = day.isoformat()
        raw = records.get(key)

        value = 0
        calories = 0.0
        if raw is not None:
            path = f"{kind}/{key}"
            if kind == KIND_STEPS:
                record = DailyRecord.from_remote(raw, day, path)
                value = record.steps
                calories = record.calories_burned
            else:
                value = WaterRecord.from_remote(raw, day, path).amount_ml

        points.append(
            WeeklyPoint(
                date=day,
                label=WEEKDAY_LABELS[day.weekday()],
                value=value,
                goal=goal,
                calories_burned=calories,
            )
        )

    return WeeklySeries(kind=kind, points=points)


class WeeklyAggregator:
    """Keeps a seven-day series in sync with the remote records.

    Every store notification replaces the held records; the series is then
    rebuilt from scratch. A snapshot with a malformed record in the window
    is logged and the previous series kept.

    Usage:
        steps = WeeklyAggregator(session, store, "steps", goal=8000).start()
        steps.series.total
        steps.close()
    """

    def __init__(
        self,
        session: UserSession,
        store: RealtimeStore,
        kind: str,
        goal: int,
        clock: Optional[Callable[[], datetime]] = None,
        on_change: Optional[Callable[[WeeklySeries], None]] = None,
    ):
        if kind not in KINDS:
            raise ValueError(f"Unknown series kind: {kind!r}")
        self.session = session
        self.store = store
        self.kind = kind
        self.goal = goal
        self.on_change = on_change
        self._clock = clock or datetime.now
        self._records: Any = {}
        self._lock = threading.Lock()
        self._unsubscribe: Optional[Unsubscribe] = None
        self.series = build_weekly_series(kind, {}, self._clock().date(), goal)

    def start(self) -> "WeeklyAggregator":
        if self._unsubscribe is None:
            self._unsubscribe = self.store.on_value(self.session.collection_root(self.kind), self._on_snapshot)
        return self

    def _on_snapshot(self, snapshot: Any) -> None:
        with self._lock:
            self._records = snapshot
        self.refresh()

    def refresh(self) -> WeeklySeries:
        """Rebuild from the held records, e.g. after midnight."""
        with self._lock:
            try:
                series = build_weekly_series(self.kind, self._records, self._clock().date(), self.goal)
            except MalformedRecordError as e:
                logger.warning("Keeping previous weekly %s series: %s", self.kind, e)
                return self.series
            self.series = series

        if self.on_change is not None:
            self.on_change(series)
        return series

    def set_goal(self, goal: int) -> WeeklySeries:
        self.goal = goal
        return self.refresh()

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
