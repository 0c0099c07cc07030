from datetime import datetime, timedelta, timezone

import pytest

from laundry_tracker.engine import LoadLifecycleEngine
from laundry_tracker.run_migrations import run_migrations
from laundry_tracker.seed import add_hotel, add_user

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "laundry.db")
    run_migrations(path, verbose=False)
    add_hotel(path, "hotel-1", "Grand Plaza", "1 Main St", manager_id="mgr-1")
    add_hotel(path, "hotel-2", "Seaside Inn")
    add_user(path, "admin-1", "Ada Admin", "admin")
    add_user(path, "mgr-1", "Mona Manager", "hotel_manager", assigned_hotels=["hotel-1"])
    add_user(path, "mgr-2", "Omar Manager", "hotel_manager", assigned_hotels=["hotel-2"])
    add_user(path, "drv-1", "Dan Driver", "driver")
    return path


@pytest.fixture
def clock():
    return FakeClock(START)


@pytest.fixture
def engine(db_path, clock):
    return LoadLifecycleEngine(db_path, clock=clock)
