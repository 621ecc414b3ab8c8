"""Tests for the seven-day series.

These tests verify:
1. Exactly seven points, oldest first, ending today
2. Missing days are zero-filled
3. Every day carries the goal given at build time
4. The live aggregator follows store changes
"""

from datetime import date, datetime, timedelta

import pytest

from conftest import TODAY
from wellmoria.errors import MalformedRecordError
from wellmoria.weekly import WeeklyAggregator, build_weekly_series


def _steps(day: str, steps: int) -> dict:
    return {"date": day, "steps": steps, "calories_burned": steps * 0.04, "distance_km": steps * 0.000762}


class TestBuildWeeklySeries:
    """Pure series construction."""

    @pytest.mark.parametrize("count", range(0, 8))
    def test_always_seven_ascending_points(self, count):
        records = {
            (TODAY - timedelta(days=i)).isoformat(): _steps((TODAY - timedelta(days=i)).isoformat(), 1000 + i)
            for i in range(count)
        }

        series = build_weekly_series("steps", records, TODAY, 8000)

        dates = [p.date for p in series.points]
        assert len(series.points) == 7
        assert dates == sorted(dates)
        assert dates[-1] == TODAY
        assert dates[0] == date(2023, 12, 27)

    def test_zero_fills_missing_days(self):
        records = {"2024-01-02": _steps("2024-01-02", 4000), "2023-12-29": _steps("2023-12-29", 9000)}

        series = build_weekly_series("steps", records, TODAY, 8000)

        assert series.values == [0, 0, 9000, 0, 0, 0, 4000]
        assert series.total == 13000
        assert series.goals_met == 1

    def test_labels_are_short_weekdays(self):
        series = build_weekly_series("steps", None, TODAY, 8000)

        # 2024-01-02 is a Tuesday
        assert series.labels == ["Wed", "Thu", "Fri", "Sat", "Sun", "Mon", "Tue"]

    def test_goal_is_todays_goal_for_every_day(self):
        series = build_weekly_series("water", {}, TODAY, 2500)

        assert {p.goal for p in series.points} == {2500}

    def test_water_series(self):
        records = {
            "2024-01-01": {"amount_ml": 2100, "log_entries": [{"time": "09:00", "amount": 2100}]},
            "2024-01-02": {"amount_ml": 500, "log_entries": [{"time": "08:00", "amount": 500}]},
        }

        series = build_weekly_series("water", records, TODAY, 2000)

        assert series.values[-2:] == [2100, 500]
        assert series.total == 2600
        assert series.goals_met == 1

    def test_records_outside_window_are_ignored(self):
        records = {"2023-12-20": _steps("2023-12-20", 30000), "2024-01-03": _steps("2024-01-03", 30000)}

        series = build_weekly_series("steps", records, TODAY, 8000)

        assert series.total == 0

    def test_total_calories(self):
        records = {"2024-01-02": _steps("2024-01-02", 1000), "2024-01-01": _steps("2024-01-01", 500)}

        series = build_weekly_series("steps", records, TODAY, 8000)

        assert series.total_calories == pytest.approx(60.0)
        assert series.average == 214

    def test_malformed_record_raises(self):
        with pytest.raises(MalformedRecordError):
            build_weekly_series("steps", {"2024-01-02": {"steps": -5}}, TODAY, 8000)

    def test_malformed_snapshot_raises(self):
        with pytest.raises(MalformedRecordError):
            build_weekly_series("steps", ["not", "a", "mapping"], TODAY, 8000)

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            build_weekly_series("sleep", {}, TODAY, 8)


class TestWeeklyAggregator:
    """Live series over store listeners."""

    def test_follows_store_changes(self, session, store, clock):
        seen = []
        aggregator = WeeklyAggregator(session, store, "steps", 8000, clock, seen.append).start()

        store.update("users/user-1/steps/2024-01-02", _steps("2024-01-02", 3000))

        assert aggregator.series.values[-1] == 3000
        assert [s.total for s in seen] == [0, 3000]

    def test_set_goal_rebuilds(self, session, store, clock):
        aggregator = WeeklyAggregator(session, store, "water", 2000, clock).start()

        series = aggregator.set_goal(3000)

        assert {p.goal for p in series.points} == {3000}

    def test_keeps_last_good_series(self, session, store, clock):
        aggregator = WeeklyAggregator(session, store, "steps", 8000, clock).start()
        store.set("users/user-1/steps/2024-01-02", _steps("2024-01-02", 1500))

        store.set("users/user-1/steps/2024-01-01", {"date": "2024-01-01", "steps": -3})

        assert aggregator.series.values[-1] == 1500

    def test_refresh_after_midnight(self, session, store, clock):
        store.set("users/user-1/steps/2024-01-02", _steps("2024-01-02", 1500))
        aggregator = WeeklyAggregator(session, store, "steps", 8000, clock).start()

        clock.set(datetime(2024, 1, 3, 0, 1))
        series = aggregator.refresh()

        assert series.points[-1].date == date(2024, 1, 3)
        assert series.values[-2:] == [1500, 0]

    def test_close_releases_listener(self, session, store, clock):
        aggregator = WeeklyAggregator(session, store, "steps", 8000, clock).start()

        aggregator.close()
        aggregator.close()

        assert store.listener_count == 0
