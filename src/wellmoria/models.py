"""Pydantic models for records kept in the realtime database.

These models provide:
- Type-safe access to per-user fitness records
- Documented defaults for missing fields
- Validation at the store boundary (malformed shapes raise MalformedRecordError)

Remote layout:
    users/{uid}:              profile, goals, points, level
    users/{uid}/steps/{date}: DailyRecord
    users/{uid}/water/{date}: WaterRecord (date comes from the key)
    users/{uid}/today:        TodaySummary
"""

from datetime import date
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from .errors import MalformedRecordError

CALORIES_PER_STEP = 0.04
METERS_PER_STEP = 0.762

DEFAULT_STEP_GOAL = 8000
DEFAULT_WATER_GOAL_ML = 2000

_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


def _describe(exc: ValidationError) -> str:
    """First validation problem as 'field: message'."""
    first = exc.errors()[0]
    loc = ".".join(str(part) for part in first.get("loc", ())) or "record"
    return f"{loc}: {first.get('msg', 'invalid value')}"


def _require_mapping(data: Any, path: str) -> dict:
    if not isinstance(data, dict):
        raise MalformedRecordError(path, f"expected an object, got {type(data).__name__}")
    return data


class SensorAvailability(str, Enum):
    """Step sensor capability, unknown until the check resolves."""

    UNKNOWN = "unknown"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class DailyRecord(BaseModel):
    """Steps attributed to one calendar day, with derived calories and distance."""
    model_config = {"extra": "ignore"}

    date: date
    steps: int = Field(default=0, ge=0)
    calories_burned: float = Field(default=0.0, ge=0)
    distance_km: float = Field(default=0.0, ge=0)

    @classmethod
    def zero(cls, day: date) -> "DailyRecord":
        return cls(date=day)

    @classmethod
    def from_steps(
        cls,
        day: date,
        steps: int,
        calories_per_step: float = CALORIES_PER_STEP,
        meters_per_step: float = METERS_PER_STEP,
    ) -> "DailyRecord":
        """Build a record for a step count, clamping negatives to zero."""
        steps = max(0, int(steps))
        return cls(
            date=day,
            steps=steps,
            calories_burned=steps * calories_per_step,
            distance_km=steps * meters_per_step / 1000,
        )

    @classmethod
    def from_remote(cls, data: Any, day: Optional[date] = None, path: str = "steps") -> "DailyRecord":
        """Parse a stored step record.

        The record's own 'date' field wins; 'day' (usually the key the record
        was stored under) fills in when it is missing.
        """
        payload = _require_mapping(data, path)
        try:
            return cls(
                date=payload.get("date") or day,
                steps=payload.get("steps") or 0,
                calories_burned=payload.get("calories_burned") or 0.0,
                distance_km=payload.get("distance_km") or 0.0,
            )
        except ValidationError as e:
            raise MalformedRecordError(path, _describe(e)) from e

    def to_remote(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "steps": self.steps,
            "calories_burned": self.calories_burned,
            "distance_km": self.distance_km,
        }

    def summary_fields(self) -> dict:
        """Step fields of the 'today' summary node."""
        return self.to_remote()


class WaterLogEntry(BaseModel):
    """One water addition, stored in the order it happened."""
    model_config = {"extra": "ignore"}

    time: str = Field(pattern=_TIME_PATTERN)
    amount: int = Field(gt=0)


class WaterRecord(BaseModel):
    """Water intake for one calendar day.

    amount_ml always equals the sum of the log entries.
    """
    model_config = {"extra": "ignore"}

    date: date
    amount_ml: int = Field(default=0, ge=0)
    log_entries: list[WaterLogEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_total(self) -> "WaterRecord":
        total = sum(entry.amount for entry in self.log_entries)
        if self.amount_ml != total:
            raise ValueError(f"amount_ml {self.amount_ml} does not match logged total {total}")
        return self

    @classmethod
    def zero(cls, day: date) -> "WaterRecord":
        return cls(date=day)

    @classmethod
    def from_remote(cls, data: Any, day: date, path: str = "water") -> "WaterRecord":
        """Parse a stored water record.

        The store may hand back the log as a list or as an index-keyed
        mapping; both are accepted. A missing amount_ml is recomputed
        from the log.
        """
        payload = _require_mapping(data, path)

        entries = payload.get("log_entries") or []
        if isinstance(entries, dict):
            try:
                entries = [entries[k] for k in sorted(entries, key=int)]
            except ValueError as e:
                raise MalformedRecordError(path, "log_entries keys are not indexes") from e
        if not isinstance(entries, list):
            raise MalformedRecordError(path, "log_entries is not a list")

        try:
            log = [WaterLogEntry.model_validate(entry) for entry in entries if entry is not None]
            amount = payload.get("amount_ml")
            if amount is None:
                amount = sum(entry.amount for entry in log)
            return cls(date=day, amount_ml=amount, log_entries=log)
        except ValidationError as e:
            raise MalformedRecordError(path, _describe(e)) from e

    def with_entry(self, time: str, amount: int) -> "WaterRecord":
        """New record with one more addition appended."""
        entry = WaterLogEntry(time=time, amount=amount)
        return WaterRecord(
            date=self.date,
            amount_ml=self.amount_ml + entry.amount,
            log_entries=[*self.log_entries, entry],
        )

    def entries_latest_first(self) -> list[WaterLogEntry]:
        """Log for display, most recent time first."""
        return sorted(self.log_entries, key=lambda e: e.time, reverse=True)

    def to_remote(self) -> dict:
        return {
            "amount_ml": self.amount_ml,
            "log_entries": [{"time": e.time, "amount": e.amount} for e in self.log_entries],
        }


class UserGoals(BaseModel):
    """Daily targets set on the profile."""

    daily_step_goal: int = Field(default=DEFAULT_STEP_GOAL, gt=0)
    daily_water_goal_ml: int = Field(default=DEFAULT_WATER_GOAL_ML, gt=0)


class UserProfile(BaseModel):
    """The users/{uid} node: personal details, goals, points and level."""
    model_config = {"extra": "ignore"}

    full_name: str = ""
    age: Optional[int] = None
    height: Optional[float] = None  # cm
    weight: Optional[float] = None  # kg
    total_points: int = Field(default=0, ge=0)
    current_level: int = Field(default=1, ge=1)
    daily_step_goal: int = Field(default=DEFAULT_STEP_GOAL, gt=0)
    daily_water_goal: int = Field(default=DEFAULT_WATER_GOAL_ML, gt=0)
    created_at: Optional[str] = None

    @property
    def goals(self) -> UserGoals:
        return UserGoals(
            daily_step_goal=self.daily_step_goal,
            daily_water_goal_ml=self.daily_water_goal,
        )

    @property
    def bmi(self) -> Optional[float]:
        """Body mass index rounded to one decimal, None without height and weight."""
        if not self.weight or not self.height:
            return None
        height_m = self.height / 100
        return round(self.weight / (height_m * height_m), 1)

    @property
    def bmi_category(self) -> Optional[str]:
        bmi = self.bmi
        if bmi is None:
            return None
        if bmi < 18.5:
            return "Underweight"
        if bmi < 25:
            return "Normal"
        if bmi < 30:
            return "Overweight"
        return "Obese"

    @classmethod
    def from_remote(cls, data: Any, path: str = "users") -> "UserProfile":
        """Parse the profile node.

        Zero or missing goals fall back to the defaults, as the app always did.
        """
        if data is None:
            return cls()
        payload = _require_mapping(data, path)
        try:
            return cls(
                full_name=payload.get("full_name") or "",
                age=payload.get("age") or None,
                height=payload.get("height") or None,
                weight=payload.get("weight") or None,
                total_points=payload.get("total_points") or 0,
                current_level=payload.get("current_level") or 1,
                daily_step_goal=payload.get("daily_step_goal") or DEFAULT_STEP_GOAL,
                daily_water_goal=payload.get("daily_water_goal") or DEFAULT_WATER_GOAL_ML,
                created_at=payload.get("createdAt"),
            )
        except ValidationError as e:
            raise MalformedRecordError(path, _describe(e)) from e

    def to_remote(self) -> dict:
        data = {
            "full_name": self.full_name,
            "age": self.age,
            "height": self.height,
            "weight": self.weight,
            "total_points": self.total_points,
            "current_level": self.current_level,
            "daily_step_goal": self.daily_step_goal,
            "daily_water_goal": self.daily_water_goal,
            "createdAt": self.created_at,
        }
        return {k: v for k, v in data.items() if v is not None}


class TodaySummary(BaseModel):
    """The users/{uid}/today node shared by Home, Steps and Water."""
    model_config = {"extra": "ignore"}

    summary_date: Optional[date] = None
    steps: int = Field(default=0, ge=0)
    calories_burned: float = Field(default=0.0, ge=0)
    distance_km: float = Field(default=0.0, ge=0)
    water_ml: int = Field(default=0, ge=0)

    @classmethod
    def from_remote(cls, data: Any, path: str = "today") -> "TodaySummary":
        if data is None:
            return cls()
        payload = _require_mapping(data, path)
        try:
            return cls(
                summary_date=payload.get("date") or None,
                steps=payload.get("steps") or 0,
                calories_burned=payload.get("calories_burned") or 0.0,
                distance_km=payload.get("distance_km") or 0.0,
                water_ml=payload.get("water_ml") or 0,
            )
        except ValidationError as e:
            raise MalformedRecordError(path, _describe(e)) from e

    def for_day(self, day: date) -> "TodaySummary":
        """This summary if it belongs to 'day', otherwise an empty one for 'day'."""
        if self.summary_date == day:
            return self
        return TodaySummary(summary_date=day)


class LocalCounterState(BaseModel):
    """Device-local counting state, persisted in the local cache as strings."""

    last_reset_date: Optional[date] = None
    baseline_device_steps: Optional[int] = None
    today_steps: int = 0
    carried_steps: int = 0

    @classmethod
    def from_cache(cls, values: dict) -> "LocalCounterState":
        """Build from raw cache strings; unparseable values are dropped."""

        def _int(value: Optional[str]) -> Optional[int]:
            try:
                return int(value) if value not in (None, "") else None
            except ValueError:
                return None

        last_reset = values.get("last_reset_date")
        try:
            last_reset_date = date.fromisoformat(last_reset) if last_reset else None
        except ValueError:
            last_reset_date = None

        return cls(
            last_reset_date=last_reset_date,
            baseline_device_steps=_int(values.get("baseline_device_steps")),
            today_steps=max(0, _int(values.get("today_steps")) or 0),
            carried_steps=max(0, _int(values.get("carried_steps")) or 0),
        )
