"""Tests for the profile service."""

from datetime import datetime

import pytest

from wellmoria.config import Config, GoalConfig
from wellmoria.errors import MalformedRecordError
from wellmoria.profile import ProfileService


@pytest.fixture
def profiles(session, store, clock):
    return ProfileService(session, store, clock=clock)


class TestCreate:
    """Onboarding writes a fresh profile."""

    def test_create(self, profiles, store):
        profile = profiles.create("Sam Lee", 30, 180.0, 81.0)

        assert profile.total_points == 0
        assert profile.current_level == 1
        assert store.get("users/user-1") == {
            "full_name": "Sam Lee",
            "age": 30,
            "height": 180.0,
            "weight": 81.0,
            "total_points": 0,
            "current_level": 1,
            "daily_step_goal": 8000,
            "daily_water_goal": 2000,
            "createdAt": datetime(2024, 1, 2, 9, 0).isoformat(),
        }

    def test_create_uses_configured_goals(self, session, store, clock):
        config = Config(goals=GoalConfig(daily_step_goal=6000, daily_water_goal=1500))

        ProfileService(session, store, config, clock).create("Sam", 30, 180, 81)

        assert store.get("users/user-1/daily_step_goal") == 6000
        assert store.get("users/user-1/daily_water_goal") == 1500


class TestLoad:

    def test_missing_profile_has_defaults(self, profiles):
        profile = profiles.load()

        assert profile.daily_step_goal == 8000
        assert profile.total_points == 0

    def test_malformed_profile(self, profiles, store):
        store.set("users/user-1", {"total_points": -10})

        with pytest.raises(MalformedRecordError):
            profiles.load()


class TestUpdates:
    """Narrow writes to the profile node."""

    def test_update_goals_keeps_other_fields(self, profiles, store):
        store.set("users/user-1", {"full_name": "Sam", "total_points": 40, "today": {"steps": 10}})

        profiles.update_goals(daily_step_goal=10000)

        assert store.get("users/user-1") == {
            "full_name": "Sam",
            "total_points": 40,
            "today": {"steps": 10},
            "daily_step_goal": 10000,
        }

    @pytest.mark.parametrize("goal", [0, -100, 2.5, True, "9000"])
    def test_update_goals_rejects_bad_values(self, profiles, store, goal):
        with pytest.raises(ValueError):
            profiles.update_goals(daily_water_goal=goal)
        assert store.writes == []

    def test_update_goals_without_values_is_noop(self, profiles, store):
        profiles.update_goals()
        assert store.writes == []

    def test_update_details(self, profiles, store):
        store.set("users/user-1", {"full_name": "Sam", "age": 30})

        profiles.update_details(weight=79.5)

        assert store.get("users/user-1") == {"full_name": "Sam", "age": 30, "weight": 79.5}

    def test_add_points(self, profiles, store):
        store.set("users/user-1/total_points", 7)

        assert profiles.add_points(3) == 10
        assert store.get("users/user-1/total_points") == 10

    def test_add_negative_points(self, profiles):
        with pytest.raises(ValueError):
            profiles.add_points(-1)


class TestSubscribe:

    def test_follows_goal_changes(self, profiles, store):
        seen = []
        profiles.subscribe(seen.append)

        profiles.update_goals(daily_step_goal=12000)

        assert [p.daily_step_goal for p in seen] == [8000, 12000]

    def test_malformed_snapshot_is_ignored(self, profiles, store):
        seen = []
        profiles.subscribe(seen.append)

        store.set("users/user-1/current_level", -2)

        assert len(seen) == 1

    def test_close(self, profiles, store):
        stop = profiles.subscribe(lambda profile: None)

        stop()
        profiles.close()

        assert store.listener_count == 0
