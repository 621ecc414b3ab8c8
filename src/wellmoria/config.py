"""Configuration management for the Wellmoria fitness core.

Provides typed configuration with sensible defaults. Config is loaded from
~/.config/wellmoria/config.json (XDG compliant).

Usage:
    config = Config.load()
    counter = DailyCounterStore(session, store, cache, sensor, config=config)
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Optional

from .models import CALORIES_PER_STEP, DEFAULT_STEP_GOAL, DEFAULT_WATER_GOAL_ML, METERS_PER_STEP

logger = logging.getLogger(__name__)

STRATEGY_MIDNIGHT_QUERY = "midnight_query"
STRATEGY_BASELINE = "baseline"
STRATEGIES = (STRATEGY_MIDNIGHT_QUERY, STRATEGY_BASELINE)


def get_config_dir() -> Path:
    """Get config directory (XDG compliant)."""
    if env_dir := os.environ.get("XDG_CONFIG_HOME"):
        return Path(env_dir) / "wellmoria"
    return Path.home() / ".config" / "wellmoria"


@dataclass
class StepConfig:
    """Configuration for daily step counting."""

    strategy: str = STRATEGY_MIDNIGHT_QUERY
    """How today's steps are derived: 'midnight_query' or 'baseline'."""

    calories_per_step: float = CALORIES_PER_STEP
    """Calories burned per step."""

    meters_per_step: float = METERS_PER_STEP
    """Average stride length in meters."""

    def __post_init__(self):
        if self.strategy not in STRATEGIES:
            raise ValueError(f"Unknown step strategy {self.strategy!r}, expected one of {STRATEGIES}")


@dataclass
class GoalConfig:
    """Goals given to new profiles."""

    daily_step_goal: int = DEFAULT_STEP_GOAL
    daily_water_goal: int = DEFAULT_WATER_GOAL_ML


@dataclass
class RewardConfig:
    """Points and level thresholds."""

    ml_per_point: int = 100
    """One point per this many ml of water logged."""

    points_per_level: int = 1000
    """Cumulative points needed per level."""


@dataclass
class StoreConfig:
    """Connection settings for the Firebase Realtime Database."""

    database_url: Optional[str] = None
    """e.g. https://<project>-default-rtdb.firebaseio.com"""

    credentials_file: Optional[str] = None
    """Service account JSON. Falls back to GOOGLE_APPLICATION_CREDENTIALS."""

    def resolved_database_url(self) -> Optional[str]:
        return self.database_url or os.environ.get("FIREBASE_DATABASE_URL")

    def resolved_credentials_file(self) -> Optional[str]:
        return self.credentials_file or os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")


def _merge_section(current, data: dict):
    """Copy of the 'current' section with the known keys from 'data' applied."""
    known = {f.name for f in fields(current)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning("Ignoring unknown %s keys in config: %s", type(current).__name__, ", ".join(unknown))
    return replace(current, **{k: v for k, v in data.items() if k in known})


@dataclass
class Config:
    """Main configuration container."""

    steps: StepConfig = field(default_factory=StepConfig)
    goals: GoalConfig = field(default_factory=GoalConfig)
    rewards: RewardConfig = field(default_factory=RewardConfig)
    store: StoreConfig = field(default_factory=StoreConfig)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Config":
        """Load config from file, using defaults for missing values.

        Args:
            path: Config file path. If None, uses default XDG location.

        Returns:
            Config instance with values from file merged with defaults.

        Raises:
            ValueError: If a section holds an invalid value, such as an
                unknown step strategy.
        """
        if path is None:
            path = get_config_dir() / "config.json"

        config = cls()

        if not path.exists():
            return config

        try:
            with open(path) as f:
                raw = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Could not load config from %s: %s", path, e)
            return config

        if not isinstance(raw, dict):
            logger.warning("Ignoring config %s: not an object", path)
            return config

        for section in fields(config):
            data = raw.get(section.name)
            if data is None:
                continue
            if not isinstance(data, dict):
                logger.warning("Ignoring config section %r: not an object", section.name)
                continue
            setattr(config, section.name, _merge_section(getattr(config, section.name), data))

        return config

    def save(self, path: Optional[Path] = None) -> None:
        """Save current config to file.

        Args:
            path: Config file path. If None, uses default XDG location.
        """
        if path is None:
            path = get_config_dir() / "config.json"

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(asdict(self), f, indent=2)
