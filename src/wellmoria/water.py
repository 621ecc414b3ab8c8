"""Water intake logging.

Each addition appends {time, amount} to today's record, bumps the 'today'
summary, and awards one point per 100 ml. The append runs as a store
transaction so two devices adding at once both land.
"""

import logging
import threading
from datetime import date, datetime
from typing import Any, Callable, NamedTuple, Optional

from pydantic import BaseModel

from .config import Config
from .errors import MalformedRecordError, StoreError
from .models import DailyRecord, WaterRecord
from .progress import points_for_water_addition
from .session import UserSession
from .store import RealtimeStore, Unsubscribe

logger = logging.getLogger(__name__)


class WaterPreset(NamedTuple):
    amount_ml: int
    label: str
    icon: str


WATER_PRESETS = (
    WaterPreset(250, "Glass", "🥛"),
    WaterPreset(330, "Bottle", "🍼"),
    WaterPreset(500, "Large Bottle", "🧴"),
    WaterPreset(200, "Coffee Cup", "☕"),
)


class WaterAddition(BaseModel):
    """Outcome of one add_water() call."""

    record: WaterRecord
    amount_ml: int
    points_awarded: int
    total_points: Optional[int] = None
    """New point balance, None if the points write failed."""


class WaterTracker:
    """Today's water record for one user.

    Usage:
        tracker = WaterTracker(session, store)
        tracker.subscribe(on_update)
        tracker.add_water(250)
        tracker.close()
    """

    def __init__(
        self,
        session: UserSession,
        store: RealtimeStore,
        config: Optional[Config] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session = session
        self.store = store
        self.config = config or Config()
        self._clock = clock or datetime.now
        self._today: Optional[WaterRecord] = None
        self._lock = threading.RLock()
        self._unsubscribe: Optional[Unsubscribe] = None
        self._callback: Optional[Callable[[WaterRecord], None]] = None

    def today(self, now: Optional[datetime] = None) -> WaterRecord:
        """Today's record: the held snapshot, else a store read, else zero."""
        day = (now or self._clock()).date()
        with self._lock:
            if self._today is not None and self._today.date == day:
                return self._today

            path = self.session.water_path(day)
            try:
                raw = self.store.get(path)
            except StoreError as e:
                logger.warning("Could not read water for %s: %s", day, e)
                return WaterRecord.zero(day)

            record = WaterRecord.zero(day) if raw is None else WaterRecord.from_remote(raw, day, path)
            self._today = record
            return record

    def add_water(self, amount_ml: int, now: Optional[datetime] = None) -> WaterAddition:
        """Log 'amount_ml' at the current time.

        The local record is updated first and rolled back if the store
        rejects the write.

        Raises:
            ValueError: If amount_ml is not a positive whole number.
            TransientWriteFailure: If the water record could not be saved.
            MalformedRecordError: If today's stored record is malformed.
        """
        if isinstance(amount_ml, bool) or not isinstance(amount_ml, int) or amount_ml <= 0:
            raise ValueError(f"Water amount must be a positive number of ml, got {amount_ml!r}")

        moment = now or self._clock()
        day = moment.date()
        time = moment.strftime("%H:%M")
        path = self.session.water_path(day)

        with self._lock:
            previous = self.today(moment)
            optimistic = previous.with_entry(time, amount_ml)
            self._today = optimistic

            def append(current: Any) -> dict:
                base = WaterRecord.zero(day) if current is None else WaterRecord.from_remote(current, day, path)
                return base.with_entry(time, amount_ml).to_remote()

            try:
                stored = self.store.transaction(path, append)
            except (StoreError, MalformedRecordError):
                if self._today is optimistic:
                    self._today = previous
                logger.warning("Adding %d ml failed, local log rolled back", amount_ml)
                raise

            record = WaterRecord.from_remote(stored, day, path)
            self._today = record

        self._update_summary(day, record)
        points = points_for_water_addition(amount_ml, self.config.rewards.ml_per_point)
        total_points = self._award_points(points)

        return WaterAddition(
            record=record,
            amount_ml=amount_ml,
            points_awarded=points,
            total_points=total_points,
        )

    def _update_summary(self, day: date, record: WaterRecord) -> None:
        """Write today's water total into the shared summary.

        A summary still stamped with an earlier day has its step fields
        replaced by this day's step record (zero when there is none).
        """
        day_key = day.isoformat()

        def merge(current: Any) -> dict:
            if isinstance(current, dict) and current.get("date") == day_key:
                summary = dict(current)
            else:
                summary = self._step_summary(day)
            summary["water_ml"] = record.amount_ml
            summary["date"] = day_key
            return summary

        try:
            self.store.transaction(self.session.today_path, merge)
        except StoreError as e:
            logger.warning("Could not update today's water summary: %s", e)

    def _step_summary(self, day: date) -> dict:
        path = self.session.steps_path(day)
        raw = self.store.get(path)
        try:
            steps = DailyRecord.zero(day) if raw is None else DailyRecord.from_remote(raw, day, path)
        except MalformedRecordError as e:
            logger.warning("Ignoring step record in today summary: %s", e)
            steps = DailyRecord.zero(day)
        return steps.summary_fields()

    def _award_points(self, points: int) -> Optional[int]:
        try:
            return self.store.transaction(self.session.points_path, lambda current: int(current or 0) + points)
        except StoreError as e:
            logger.warning("Could not award %d points: %s", points, e)
            return None

    # =========================================================================
    # Realtime updates
    # =========================================================================

    def subscribe(
        self, callback: Optional[Callable[[WaterRecord], None]] = None, now: Optional[datetime] = None
    ) -> Unsubscribe:
        """Follow today's record; each snapshot replaces the local one."""
        self.close()
        day = (now or self._clock()).date()
        path = self.session.water_path(day)
        self._callback = callback

        def on_snapshot(snapshot: Any) -> None:
            try:
                record = WaterRecord.zero(day) if snapshot is None else WaterRecord.from_remote(snapshot, day, path)
            except MalformedRecordError as e:
                logger.warning("Ignoring water snapshot: %s", e)
                return
            with self._lock:
                self._today = record
            if self._callback is not None:
                self._callback(record)

        self._unsubscribe = self.store.on_value(path, on_snapshot)
        return self.close

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
