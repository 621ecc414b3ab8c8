"""Explicit user context and remote path layout.

Every service takes a UserSession instead of reading an ambient
"current user", so tests can run against synthetic users.
"""

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class UserSession:
    """Signed-in user plus the remote paths that belong to them."""

    uid: str

    def __post_init__(self):
        if not self.uid or "/" in self.uid:
            raise ValueError(f"Invalid user id: {self.uid!r}")

    @property
    def profile_path(self) -> str:
        return f"users/{self.uid}"

    @property
    def today_path(self) -> str:
        return f"users/{self.uid}/today"

    @property
    def points_path(self) -> str:
        return f"users/{self.uid}/total_points"

    @property
    def steps_root(self) -> str:
        return f"users/{self.uid}/steps"

    @property
    def water_root(self) -> str:
        return f"users/{self.uid}/water"

    def steps_path(self, day: date) -> str:
        return f"{self.steps_root}/{day.isoformat()}"

    def water_path(self, day: date) -> str:
        return f"{self.water_root}/{day.isoformat()}"

    def collection_root(self, kind: str) -> str:
        """Root of the per-day collection for 'steps' or 'water'."""
        if kind == "steps":
            return self.steps_root
        if kind == "water":
            return self.water_root
        raise ValueError(f"Unknown collection: {kind!r}")
