"""Tests for the Home dashboard."""

from datetime import date, datetime

import pytest

from conftest import TODAY, FakeClock
from wellmoria.counter import DailyCounterStore
from wellmoria.dashboard import HomeDashboard, build_dashboard
from wellmoria.models import TodaySummary, UserProfile
from wellmoria.water import WaterTracker
from wellmoria.weekly import build_weekly_series


@pytest.fixture
def seeded_store(store):
    store.set(
        "users/user-1",
        {
            "full_name": "Sam",
            "total_points": 1500,
            "current_level": 2,
            "daily_step_goal": 10000,
            "daily_water_goal": 2500,
            "today": {"date": "2024-01-02", "steps": 5000, "calories_burned": 200.0, "water_ml": 1000},
            "steps": {"2024-01-01": {"date": "2024-01-01", "steps": 12000, "calories_burned": 480.0}},
        },
    )
    return store


class TestBuildDashboard:
    """Pure snapshot construction."""

    def test_progress_values(self):
        profile = UserProfile(full_name="Sam", total_points=1500, current_level=2)
        summary = TodaySummary(summary_date=TODAY, steps=4000, water_ml=2500)

        snapshot = build_dashboard(profile, summary, TODAY)

        assert snapshot.step_progress == 0.5
        assert snapshot.step_percentage == 50
        assert snapshot.steps_remaining == 4000
        assert not snapshot.step_goal_met
        assert snapshot.water_goal_met
        assert snapshot.water_percentage == 100
        assert snapshot.level_progress == 0.5
        assert snapshot.next_level_points == 2000
        assert "halfway" in snapshot.headline

    def test_stale_summary_counts_as_empty(self):
        summary = TodaySummary(summary_date=date(2024, 1, 1), steps=9000, water_ml=800)

        snapshot = build_dashboard(UserProfile(), summary, TODAY)

        assert snapshot.steps == 0
        assert snapshot.water_ml == 0

    def test_weekly_totals(self):
        weekly_steps = build_weekly_series(
            "steps", {"2024-01-02": {"date": "2024-01-02", "steps": 1000, "calories_burned": 40.0}}, TODAY, 8000
        )

        snapshot = build_dashboard(UserProfile(), TodaySummary(), TODAY, weekly_steps=weekly_steps)

        assert snapshot.weekly_steps_total == 1000
        assert snapshot.weekly_calories_total == 40.0
        assert snapshot.weekly_water_total == 0

    def test_points_per_level(self):
        profile = UserProfile(total_points=750, current_level=2)

        snapshot = build_dashboard(profile, TodaySummary(), TODAY, points_per_level=500)

        assert snapshot.level_progress == 0.5
        assert snapshot.next_level_points == 1000


class TestHomeDashboard:
    """Live snapshots from store listeners."""

    def test_nothing_emitted_before_start(self, session, seeded_store, clock):
        seen = []
        HomeDashboard(session, seeded_store, seen.append, clock=clock)

        assert seen == []

    def test_start_emits_current_state(self, session, seeded_store, clock):
        seen = []
        home = HomeDashboard(session, seeded_store, seen.append, clock=clock).start()

        snapshot = seen[-1]
        assert snapshot is home.snapshot
        assert snapshot.full_name == "Sam"
        assert snapshot.steps == 5000
        assert snapshot.step_goal == 10000
        assert snapshot.step_percentage == 50
        assert snapshot.water_percentage == 40
        assert snapshot.level_progress == 0.5
        assert snapshot.weekly_steps_total == 12000
        home.close()

    def test_follows_today_changes(self, session, seeded_store, clock):
        home = HomeDashboard(session, seeded_store, clock=clock).start()

        seeded_store.update("users/user-1/today", {"steps": 10000})

        assert home.snapshot.step_goal_met
        assert "reached your step goal" in home.snapshot.headline
        home.close()

    def test_goal_change_reaches_weekly_series(self, session, seeded_store, clock):
        home = HomeDashboard(session, seeded_store, clock=clock).start()

        seeded_store.update("users/user-1", {"daily_water_goal": 1000})

        assert home.snapshot.water_goal == 1000
        assert home.snapshot.water_goal_met
        home.close()

    def test_close_releases_every_listener(self, session, seeded_store, clock):
        seen = []
        with HomeDashboard(session, seeded_store, seen.append, clock=clock) as home:
            home.start()
            assert seeded_store.listener_count == 4

        count = len(seen)
        seeded_store.update("users/user-1/today", {"steps": 1})
        home.close()

        assert seeded_store.listener_count == 0
        assert len(seen) == count

    def test_day_change_resets_today(self, session, seeded_store, clock):
        home = HomeDashboard(session, seeded_store, clock=clock).start()

        clock.set(datetime(2024, 1, 3, 0, 5))
        seeded_store.update("users/user-1/today", {"water_ml": 1200})

        assert home.snapshot.day == date(2024, 1, 3)
        assert home.snapshot.water_ml == 0
        home.close()


class TestDayBoundary:
    """Counter, water and Home agree on what 'today' holds."""

    def test_yesterdays_water_not_shown_after_rollover(self, session, store, cache, sensor):
        clock = FakeClock(datetime(2024, 1, 1, 20, 0))
        WaterTracker(session, store, clock=clock).add_water(1500)
        counter = DailyCounterStore(session, store, cache, sensor, clock=clock).start()

        clock.set(datetime(2024, 1, 2, 7, 0))
        sensor.counts[TODAY] = 10
        counter.record_step_sample()
        home = HomeDashboard(session, store, clock=clock).start()

        assert home.snapshot.day == TODAY
        assert home.snapshot.steps == 10
        assert home.snapshot.water_ml == 0
        home.close()
        counter.close()

    def test_first_water_of_day_does_not_show_yesterdays_steps(self, session, store):
        clock = FakeClock(datetime(2024, 1, 1, 22, 0))
        store.set("users/user-1/today", {"date": "2024-01-01", "steps": 9100, "water_ml": 2000})

        clock.set(datetime(2024, 1, 2, 8, 0))
        WaterTracker(session, store, clock=clock).add_water(250)
        home = HomeDashboard(session, store, clock=clock).start()

        assert home.snapshot.steps == 0
        assert home.snapshot.water_ml == 250
        home.close()
