from datetime import datetime
from typing import Callable, Iterable, List

from .lifecycle import as_utc
from .schemas import Load, TERMINAL_STATUSES

def is_overdue(load: Load, now: datetime) -> bool:
    """Past its due date and not yet approved (fully or partially). Evaluated per read, never stored."""
    if load.due_date is None or load.status in TERMINAL_STATUSES:
        return False
    return as_utc(load.due_date) < as_utc(now)

def needing_delay_alert(loads: Iterable[Load], now: datetime,
                        already_alerted: Callable[[str], bool]) -> List[Load]:
    return [l for l in loads if is_overdue(l, now) and not already_alerted(l.id)]
