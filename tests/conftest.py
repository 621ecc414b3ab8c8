"""Shared test fixtures for wellmoria tests."""

from datetime import date, datetime, timedelta

import pytest

from wellmoria.cache import LocalCache
from wellmoria.config import Config, StepConfig
from wellmoria.session import UserSession
from wellmoria.store import MemoryStore


class FakeSensor:
    """Step sensor double.

    'counts' maps a day to the steps the range query reports for it;
    'emit' pushes a cumulative reading to every watcher.
    """

    def __init__(self, available=True):
        self.available = available
        self.counts = {}
        self.fail_queries = False
        self.callbacks = []
        self.queries = []

    def is_available(self):
        if isinstance(self.available, Exception):
            raise self.available
        return self.available

    def watch(self, callback):
        self.callbacks.append(callback)
        return lambda: self.callbacks.remove(callback)

    def get_step_count(self, start, end):
        self.queries.append((start, end))
        if self.fail_queries:
            raise RuntimeError("sensor offline")
        return self.counts.get(start.date(), 0)

    def emit(self, steps):
        for callback in list(self.callbacks):
            callback({"steps": steps})


class FakeClock:
    """Callable clock; 'times' are handed out in order, the last one repeats."""

    def __init__(self, *times):
        self.times = list(times)

    def __call__(self):
        if len(self.times) > 1:
            return self.times.pop(0)
        return self.times[0]

    def set(self, moment):
        self.times = [moment]

    def advance(self, **kwargs):
        self.times = [self.times[-1] + timedelta(**kwargs)]


TODAY = date(2024, 1, 2)
YESTERDAY = date(2024, 1, 1)


@pytest.fixture
def session():
    return UserSession("user-1")


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def cache(tmp_path):
    return LocalCache(tmp_path / "counter-cache.json")


@pytest.fixture
def sensor():
    return FakeSensor()


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 2, 9, 0))


@pytest.fixture
def baseline_config():
    return Config(steps=StepConfig(strategy="baseline"))
