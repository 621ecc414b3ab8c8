"""User profile, goals and points."""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from .config import Config
from .errors import MalformedRecordError
from .models import UserProfile
from .session import UserSession
from .store import RealtimeStore, Unsubscribe

logger = logging.getLogger(__name__)


def _positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{name} must be a positive whole number, got {value!r}")
    return value


class ProfileService:
    """Reads and writes the users/{uid} node."""

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
        self._unsubscribe: Optional[Unsubscribe] = None

    def load(self) -> UserProfile:
        path = self.session.profile_path
        return UserProfile.from_remote(self.store.get(path), path)

    def create(self, full_name: str, age: int, height: float, weight: float) -> UserProfile:
        """Write the onboarding profile: no points, level 1, default goals."""
        profile = UserProfile(
            full_name=full_name,
            age=age,
            height=height,
            weight=weight,
            total_points=0,
            current_level=1,
            daily_step_goal=self.config.goals.daily_step_goal,
            daily_water_goal=self.config.goals.daily_water_goal,
            created_at=self._clock().isoformat(),
        )
        self.store.set(self.session.profile_path, profile.to_remote())
        logger.info("Created profile for %s", self.session.uid)
        return profile

    def update_goals(self, daily_step_goal: Optional[int] = None, daily_water_goal: Optional[int] = None) -> None:
        """Change one or both goals, leaving the rest of the profile alone."""
        fields = {}
        if daily_step_goal is not None:
            fields["daily_step_goal"] = _positive_int("daily_step_goal", daily_step_goal)
        if daily_water_goal is not None:
            fields["daily_water_goal"] = _positive_int("daily_water_goal", daily_water_goal)
        if not fields:
            return
        self.store.update(self.session.profile_path, fields)

    def update_details(
        self,
        full_name: Optional[str] = None,
        age: Optional[int] = None,
        height: Optional[float] = None,
        weight: Optional[float] = None,
    ) -> None:
        fields = {
            key: value
            for key, value in (("full_name", full_name), ("age", age), ("height", height), ("weight", weight))
            if value is not None
        }
        if fields:
            self.store.update(self.session.profile_path, fields)

    def add_points(self, points: int) -> int:
        """Atomically add to total_points and return the new balance."""
        if points < 0:
            raise ValueError("Points can only be added")
        return self.store.transaction(self.session.points_path, lambda current: int(current or 0) + points)

    def subscribe(self, callback: Callable[[UserProfile], None]) -> Unsubscribe:
        """Follow profile changes (goals edited on another screen or device)."""
        self.close()
        path = self.session.profile_path

        def on_snapshot(snapshot: Any) -> None:
            try:
                profile = UserProfile.from_remote(snapshot, path)
            except MalformedRecordError as e:
                logger.warning("Ignoring profile snapshot: %s", e)
                return
            callback(profile)

        self._unsubscribe = self.store.on_value(path, on_snapshot)
        return self.close

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
