"""Device step sensor interface.

The platform binding (pedometer, HealthKit, Health Connect, ...) lives with
the caller; the counter only needs these three operations.
"""

import logging
from datetime import datetime
from typing import Callable, Optional, Protocol

from .errors import SensorUnavailable
from .models import SensorAvailability

logger = logging.getLogger(__name__)


class StepSensor(Protocol):
    """Cumulative device step counter."""

    def is_available(self) -> bool:
        """Whether the device can count steps at all."""
        ...

    def watch(self, callback: Callable[[int], None]) -> Callable[[], None]:
        """Deliver cumulative step readings until the returned callable is invoked."""
        ...

    def get_step_count(self, start: datetime, end: datetime) -> int:
        """Steps counted between 'start' and 'end'."""
        ...


def probe_availability(sensor: Optional[StepSensor]) -> SensorAvailability:
    """Resolve the tri-state availability; failures count as unavailable."""
    if sensor is None:
        return SensorAvailability.UNAVAILABLE
    try:
        available = sensor.is_available()
    except Exception as e:
        # Platform bindings raise whatever their SDK raises.
        logger.warning("Step sensor capability check failed: %s", e)
        return SensorAvailability.UNAVAILABLE
    return SensorAvailability.AVAILABLE if available else SensorAvailability.UNAVAILABLE


def query_steps(sensor: Optional[StepSensor], start: datetime, end: datetime) -> int:
    """Range query with every failure turned into SensorUnavailable."""
    if sensor is None:
        raise SensorUnavailable("No step sensor attached")
    try:
        result = sensor.get_step_count(start, end)
    except SensorUnavailable:
        raise
    except Exception as e:
        raise SensorUnavailable(f"Step count query failed: {e}") from e
    return reading_to_steps(result)


def reading_to_steps(reading) -> int:
    """Accept a bare count or a {"steps": n} sample."""
    if isinstance(reading, dict):
        reading = reading.get("steps")
    if reading is None:
        raise SensorUnavailable("Step reading carried no count")
    return int(reading)
