"""Daily step counter reconciliation.

Turns a device step counter into a per-day count, keeps the local cache and
the remote records consistent, and survives restarts and day rollovers.

Two ways to derive today's steps (Config.steps.strategy):

- midnight_query (default): ask the sensor for the steps between local
  midnight and now. Nothing to drift, device reboots don't matter.
- baseline: remember the cumulative reading at the first sample of the day
  and subtract it. A reading below the baseline (device reboot) adds nothing,
  becomes the new baseline, and the count reached so far is carried over.

Remote writes:
    users/{uid}/steps/{date}   narrow update of the day's record
    users/{uid}/today          narrow update of the step fields; on a rollover
                               also the new day's water total
"""

import logging
import threading
from datetime import date, datetime
from typing import Callable, Optional

from .cache import LocalCache
from .config import STRATEGY_BASELINE, STRATEGY_MIDNIGHT_QUERY, Config
from .errors import MalformedRecordError, SensorUnavailable, StoreError
from .models import DailyRecord, LocalCounterState, SensorAvailability, WaterRecord
from .sensor import StepSensor, probe_availability, query_steps, reading_to_steps
from .session import UserSession
from .store import RealtimeStore, Unsubscribe

logger = logging.getLogger(__name__)

LAST_RESET_KEY = "last_reset_date"
BASELINE_KEY = "baseline_device_steps"
TODAY_STEPS_KEY = "today_steps"
CARRIED_KEY = "carried_steps"

Clock = Callable[[], datetime]


def midnight(moment: datetime) -> datetime:
    """Start of the calendar day containing 'moment'."""
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


class MidnightQueryStrategy:
    """Today's steps straight from the sensor's history since midnight."""

    name = STRATEGY_MIDNIGHT_QUERY

    def __init__(self, sensor: Optional[StepSensor]):
        self.sensor = sensor

    def reset(self) -> None:
        pass

    def today_steps(self, raw_device_count: Optional[int], now: datetime) -> int:
        return max(0, query_steps(self.sensor, midnight(now), now))


class BaselineStrategy:
    """Today's steps as the distance from the first reading of the day.

    When the baseline has to be captured again (a device reboot, or a
    cache that lost it mid-day) the count reached so far is carried, so
    the day never goes backwards.
    """

    name = STRATEGY_BASELINE

    def __init__(self, cache: LocalCache):
        self.cache = cache

    def reset(self) -> None:
        self.cache.delete(BASELINE_KEY)
        self.cache.delete(CARRIED_KEY)

    def _recapture(self, raw_device_count: int, carried: int) -> int:
        self.cache.set(BASELINE_KEY, str(raw_device_count))
        self.cache.set(CARRIED_KEY, str(carried))
        return carried

    def today_steps(self, raw_device_count: Optional[int], now: datetime) -> int:
        if raw_device_count is None:
            raise SensorUnavailable("Baseline counting needs a device reading")

        state = LocalCounterState.from_cache(self.cache.snapshot())
        baseline = state.baseline_device_steps
        if baseline is None:
            return self._recapture(raw_device_count, state.today_steps)

        delta = raw_device_count - baseline
        if delta < 0:
            logger.info(
                "Device step counter went backwards (%d < baseline %d), re-capturing baseline at %d steps",
                raw_device_count,
                baseline,
                state.today_steps,
            )
            return self._recapture(raw_device_count, state.today_steps)
        return state.carried_steps + delta


class DailyCounterStore:
    """Owns today's step count for one user on one device.

    Usage:
        with DailyCounterStore(session, store, LocalCache.default(), sensor).start() as counter:
            counter.get_today_steps()

    Samples are processed one at a time. Sensor and store failures never
    escape: the last known value is kept and the status is exposed through
    'availability' and 'last_write_failed'.
    """

    def __init__(
        self,
        session: UserSession,
        store: RealtimeStore,
        cache: LocalCache,
        sensor: Optional[StepSensor] = None,
        config: Optional[Config] = None,
        clock: Optional[Clock] = None,
    ):
        self.session = session
        self.store = store
        self.cache = cache
        self.sensor = sensor
        self.config = config or Config()
        self._clock = clock or datetime.now

        if self.config.steps.strategy == STRATEGY_BASELINE:
            self.strategy = BaselineStrategy(cache)
        else:
            self.strategy = MidnightQueryStrategy(sensor)

        self.availability = SensorAvailability.UNKNOWN
        self.last_write_failed = False
        self._today: Optional[DailyRecord] = None
        self._lock = threading.RLock()
        self._subscriptions: list[Unsubscribe] = []

    # =========================================================================
    # Day records
    # =========================================================================

    def ensure_day_initialized(self, day: date) -> DailyRecord:
        """Create the zero record for 'day' unless one exists, and return it.

        Runs as a store transaction, so concurrent callers end up with a
        single record and an existing one is never reset.
        """
        path = self.session.steps_path(day)
        zero = DailyRecord.zero(day).to_remote()
        stored = self.store.transaction(path, lambda current: zero if current is None else current)
        return DailyRecord.from_remote(stored, day, path)

    def reconcile_on_day_rollover(self, previous_day: Optional[date], new_day: date) -> None:
        """Start counting for 'new_day'.

        Only local state and the new day's records are touched; the record
        for 'previous_day' stays as it was. The shared today summary is
        restamped with the new day's steps and water so nothing from the
        previous day shows through.
        """
        with self._lock:
            logger.info("Step counter rollover %s -> %s", previous_day, new_day)
            self.cache.set(LAST_RESET_KEY, new_day.isoformat())
            self.cache.set(TODAY_STEPS_KEY, "0")
            self.strategy.reset()
            self._today = DailyRecord.zero(new_day)

            try:
                record = self.ensure_day_initialized(new_day)
                summary = {**record.summary_fields(), "water_ml": self._water_total(new_day)}
                self.store.update(self.session.today_path, summary)
            except (StoreError, MalformedRecordError) as e:
                self.last_write_failed = True
                logger.warning("Could not initialize step record for %s: %s", new_day, e)
                return

            self._today = record
            self.cache.set(TODAY_STEPS_KEY, str(record.steps))

    def _water_total(self, day: date) -> int:
        path = self.session.water_path(day)
        raw = self.store.get(path)
        if raw is None:
            return 0
        try:
            return WaterRecord.from_remote(raw, day, path).amount_ml
        except MalformedRecordError as e:
            logger.warning("Ignoring water record in today summary: %s", e)
            return 0

    def _check_rollover(self, now: datetime) -> date:
        today = now.date()
        state = LocalCounterState.from_cache(self.cache.snapshot())
        if state.last_reset_date != today:
            self.reconcile_on_day_rollover(state.last_reset_date, today)
        return today

    # =========================================================================
    # Samples
    # =========================================================================

    def record_step_sample(
        self, raw_device_count: Optional[int] = None, now: Optional[datetime] = None
    ) -> DailyRecord:
        """Turn a device reading into today's record and persist it.

        Args:
            raw_device_count: Cumulative device reading. Only the baseline
                strategy needs it; the midnight query ignores it.
            now: Sample time. If None, the wall clock is read, and read again
                before persisting so a sample straddling midnight lands on
                the right day.

        Returns:
            Today's record. When the sensor fails, the last known one.
        """
        with self._lock:
            while True:
                moment = now or self._clock()
                today = self._check_rollover(moment)
                try:
                    steps = self.strategy.today_steps(raw_device_count, moment)
                except SensorUnavailable as e:
                    logger.warning("Step sensor unavailable, keeping last known value: %s", e)
                    self.availability = SensorAvailability.UNAVAILABLE
                    return self._current_record(today)

                if now is not None or self._clock().date() == today:
                    break

            self.availability = SensorAvailability.AVAILABLE
            record = DailyRecord.from_steps(
                today,
                steps,
                calories_per_step=self.config.steps.calories_per_step,
                meters_per_step=self.config.steps.meters_per_step,
            )
            self._today = record
            self.cache.set(TODAY_STEPS_KEY, str(record.steps))
            self._persist(record)
            return record

    def _persist(self, record: DailyRecord) -> None:
        try:
            self.store.update(self.session.steps_path(record.date), record.to_remote())
            self.store.update(self.session.today_path, record.summary_fields())
        except StoreError as e:
            self.last_write_failed = True
            logger.warning("Could not save steps for %s, retrying with the next sample: %s", record.date, e)
        else:
            self.last_write_failed = False

    def _current_record(self, today: date) -> DailyRecord:
        if self._today is not None and self._today.date == today:
            return self._today
        state = LocalCounterState.from_cache(self.cache.snapshot())
        steps = state.today_steps if state.last_reset_date == today else 0
        return DailyRecord.from_steps(
            today,
            steps,
            calories_per_step=self.config.steps.calories_per_step,
            meters_per_step=self.config.steps.meters_per_step,
        )

    def get_today_steps(self) -> int:
        """Today's count, 0 until something has been counted today."""
        with self._lock:
            return self._current_record(self._clock().date()).steps

    @property
    def today_record(self) -> DailyRecord:
        with self._lock:
            return self._current_record(self._clock().date())

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> "DailyCounterStore":
        """Check for a rollover, load today's stored value, and watch the sensor."""
        with self._lock:
            today = self._check_rollover(self._clock())
            self._load_persisted(today)

        self.availability = probe_availability(self.sensor)
        if self.availability is not SensorAvailability.AVAILABLE:
            logger.info("Step sensor unavailable, serving stored value for today")
            return self

        try:
            self._subscriptions.append(self.sensor.watch(self._on_sensor_sample))
        except Exception as e:
            # Platform bindings raise whatever their SDK raises.
            logger.warning("Could not subscribe to step sensor: %s", e)
            self.availability = SensorAvailability.UNAVAILABLE
            return self

        if self.strategy.name == STRATEGY_MIDNIGHT_QUERY:
            self.record_step_sample()
        return self

    def _load_persisted(self, today: date) -> None:
        path = self.session.steps_path(today)
        try:
            raw = self.store.get(path)
        except StoreError as e:
            logger.warning("Could not read stored steps for %s: %s", today, e)
            return
        if raw is None:
            return
        try:
            record = DailyRecord.from_remote(raw, today, path)
        except MalformedRecordError as e:
            logger.warning("Ignoring stored steps: %s", e)
            return

        current = self._current_record(today)
        if record.steps >= current.steps:
            self._today = record
            self.cache.set(TODAY_STEPS_KEY, str(record.steps))

    def _on_sensor_sample(self, reading) -> None:
        try:
            steps = reading_to_steps(reading)
        except (SensorUnavailable, TypeError, ValueError) as e:
            logger.warning("Ignoring step reading %r: %s", reading, e)
            return
        self.record_step_sample(steps)

    def close(self) -> None:
        """Release the sensor watch. Safe to call more than once."""
        while self._subscriptions:
            unsubscribe = self._subscriptions.pop()
            unsubscribe()

    def __enter__(self) -> "DailyCounterStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
