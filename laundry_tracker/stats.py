"""
Dashboard aggregates: headline counts for admins and a per-day picked vs.
dropped series over a date range.
"""
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from . import quantities as qty
from .directory import Directory
from .lifecycle import as_utc
from .overdue import is_overdue
from .schemas import ACTIVE_STATUSES, ActivityPoint, AdminStats
from .store import LoadStore


def admin_stats(store: LoadStore, directory: Directory, now: datetime) -> AdminStats:
    now = as_utc(now)
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    loads = store.query()
    return AdminStats(
        hotels=directory.count_hotels(),
        drivers=directory.count_role("driver"),
        active_loads=sum(1 for l in loads if l.status in ACTIVE_STATUSES),
        collections_today=sum(1 for l in loads if as_utc(l.collected_at) >= start_of_day),
        overdue_loads=sum(1 for l in loads if is_overdue(l, now)),
    )


def activity_series(store: LoadStore, start: date, end: date,
                    hotel_id: Optional[str] = None, driver_id: Optional[str] = None) -> List[ActivityPoint]:
    if end < start:
        start, end = end, start
    days: Dict[date, ActivityPoint] = {}
    d = start
    while d <= end:
        days[d] = ActivityPoint(date=d.isoformat(), picked=0, dropped=0, load_ids=[])
        d += timedelta(days=1)

    def touch(day: date, load_id: str, picked: int = 0, dropped: int = 0):
        point = days.get(day)
        if point is None:
            return
        point.picked += picked
        point.dropped += dropped
        if load_id not in point.load_ids:
            point.load_ids.append(load_id)

    for load in store.query(hotel_id=hotel_id, driver_id=driver_id):
        touch(as_utc(load.collected_at).date(), load.id, picked=qty.total(qty.to_mapping(load.items)))
        if load.dropped_at and load.dropped_items:
            touch(as_utc(load.dropped_at).date(), load.id,
                  dropped=qty.total(qty.to_mapping(load.dropped_items)))
    return list(days.values())
