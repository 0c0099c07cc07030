"""
Load Lifecycle Engine

Runs each actor action (collect, acknowledge pickup, drop, approve) as one
atomic read-modify-write against the store, then fans out the notifications
that the new state calls for. Notification delivery happens after the commit
and is best-effort: a failed delivery is logged and never undoes or fails the
transition.
"""
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from . import lifecycle
from . import notifications as notify
from . import quantities as qty
from .directory import Directory
from .errors import NotificationDeliveryError
from .overdue import is_overdue, needing_delay_alert
from .schemas import Load, LoadView, Notification, PendingDrop, DROPPABLE_STATUSES
from .store import DB, LoadStore

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LoadLifecycleEngine:

    def __init__(self, db_path: str = DB, clock: Optional[Callable[[], datetime]] = None,
                 store: Optional[LoadStore] = None, directory: Optional[Directory] = None):
        self.db_path = db_path
        self.clock = clock or utcnow
        self.store = store or LoadStore(db_path)
        self.directory = directory or Directory(db_path)
        self.sink = notify.NotificationSink(self.store)

    def _now(self) -> datetime:
        return lifecycle.as_utc(self.clock())

    # ----- notification plumbing -----

    def _audience(self, load: Load, actor_id: Optional[str] = None) -> notify.Audience:
        return notify.Audience(
            hotel_name=self.directory.hotel_name(load.hotel_id),
            driver_id=load.driver_id,
            driver_name=self.directory.user_name(actor_id or load.driver_id),
            manager_uids=self.directory.manager_uids(load.hotel_id),
            admin_uids=self.directory.admin_uids(),
        )

    def _notify(self, load: Load, derive: Callable[[Load, notify.Audience], List[Notification]],
                actor_id: Optional[str] = None) -> List[Notification]:
        now = self._now()
        try:
            events = derive(load, self._audience(load, actor_id))
        except Exception:
            # the transition is already committed
            logger.exception("Could not build notifications for load %s", load.id)
            return []
        return self.sink.deliver(e.model_copy(update={"created_at": now}) for e in events)

    def _view(self, load: Load, now: datetime) -> LoadView:
        return LoadView(**load.model_dump(), overdue=is_overdue(load, now))

    # ----- transitions -----

    def collect(self, driver_id: str, hotel_id: str, items: Iterable,
                notes: Optional[str] = None) -> LoadView:
        self.directory.get_hotel(hotel_id)
        self.directory.get_user(driver_id)
        now = self._now()
        load = lifecycle.collect(hotel_id, driver_id, items, now, notes=notes)
        with self.store.transaction() as conn:
            self.store.create(load, conn=conn)
        logger.info("Load %s collected at hotel %s by %s: %s", load.id, hotel_id, driver_id,
                    qty.summarize(qty.to_mapping(load.items)))
        return self._view(load, now)

    def acknowledge_pickup(self, load_id: str, manager_id: str, due_date: Optional[datetime],
                           remark: Optional[str] = None) -> LoadView:
        now = self._now()
        with self.store.transaction() as conn:
            load = lifecycle.acknowledge_pickup(self.store.get(load_id, conn=conn), due_date, now, remark=remark)
            self.store.update(load, conn=conn)
        logger.info("Load %s pickup acknowledged by %s, due %s", load.id, manager_id, load.due_date)
        self._notify(load, notify.pickup_acknowledged_events)
        return self._view(load, now)

    def mark_processing(self, load_id: str, admin_id: str) -> LoadView:
        now = self._now()
        with self.store.transaction() as conn:
            load = lifecycle.mark_processing(self.store.get(load_id, conn=conn))
            self.store.update(load, conn=conn)
        logger.info("Load %s set to processing by %s", load.id, admin_id)
        return self._view(load, now)

    def drop(self, load_id: str, driver_id: str, items: Iterable) -> LoadView:
        now = self._now()
        requested = qty.to_mapping(items)
        with self.store.transaction() as conn:
            before = self.store.get(load_id, conn=conn)
            load = lifecycle.drop(before, requested, now)
            self.store.update(load, conn=conn)
        logger.info("Load %s %s -> %s by %s (remaining: %s)", load.id, before.status, load.status, driver_id,
                    qty.summarize(qty.to_mapping(load.remaining_items)) or "none")
        self._notify(load, notify.drop_events, actor_id=driver_id)
        return self._view(load, now)

    def approve(self, load_id: str, manager_id: str, items: Iterable,
                notes: Optional[str] = None) -> LoadView:
        now = self._now()
        confirmed = qty.to_mapping(items)
        with self.store.transaction() as conn:
            load = lifecycle.approve(self.store.get(load_id, conn=conn), confirmed, manager_id, now, notes=notes)
            self.store.update(load, conn=conn)
        logger.info("Load %s %s by %s", load.id, load.status, manager_id)
        self._notify(load, notify.approval_events)
        return self._view(load, now)

    # ----- reads -----

    def check_overdue(self, loads: Iterable[Load], now: Optional[datetime] = None) -> List[Notification]:
        """
        Fire the one-time load_delayed broadcast for overdue loads.

        The "already alerted?" check and the inserts share one immediate
        transaction, so concurrent queries cannot both fire for the same load.
        Each load is re-read inside that transaction; a stale snapshot that
        has since been approved does not fire.
        """
        now = now or self._now()
        loads = [l for l in loads if is_overdue(l, now)]
        if not loads:
            return []
        fired: List[Notification] = []
        try:
            with self.store.transaction() as conn:
                current = [self.store.get(l.id, conn=conn) for l in loads]
                due = needing_delay_alert(
                    current, now, lambda load_id: self.store.notification_exists(load_id, "load_delayed", conn=conn))
                for load in due:
                    logger.warning("Load %s is overdue (due %s, status %s)", load.id, load.due_date, load.status)
                    for event in notify.delayed_events(load, self._audience(load), now):
                        fired.append(self.sink.write(event.model_copy(update={"created_at": now}), conn=conn))
        except (NotificationDeliveryError, sqlite3.Error) as e:
            logger.error("Delayed-load alerts not recorded: %s", e)
            return []
        except Exception:
            logger.exception("Delayed-load alerts not recorded")
            return []
        return fired

    def get_load(self, load_id: str) -> LoadView:
        now = self._now()
        load = self.store.get(load_id)
        self.check_overdue([load], now)
        return self._view(load, now)

    def list_loads(self, hotel_id: Optional[str] = None, driver_id: Optional[str] = None,
                   statuses: Optional[Iterable[str]] = None) -> List[LoadView]:
        now = self._now()
        loads = self.store.query(hotel_id=hotel_id, driver_id=driver_id, statuses=statuses)
        self.check_overdue(loads, now)
        return [self._view(l, now) for l in loads]

    def pending_drops(self, driver_id: str) -> List[PendingDrop]:
        now = self._now()
        loads = self.store.query(driver_id=driver_id, statuses=DROPPABLE_STATUSES)
        self.check_overdue(loads, now)
        return [PendingDrop(**self._view(l, now).model_dump(),
                            outstanding_items=qty.to_items(lifecycle.outstanding(l)))
                for l in loads]

    def pending_approvals(self, hotel_id: str) -> List[LoadView]:
        now = self._now()
        loads = self.store.query(hotel_id=hotel_id, statuses=["dropped"])
        self.check_overdue(loads, now)
        loads.sort(key=lambda l: l.dropped_at or l.collected_at, reverse=True)
        return [self._view(l, now) for l in loads]

    def notifications_for(self, uid: str, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        return self.store.notifications_for(uid, unread_only=unread_only, limit=limit)

    def mark_notification_read(self, notification_id: str) -> None:
        self.store.mark_read(notification_id)

    def mark_all_read(self, uid: str) -> int:
        return self.store.mark_all_read(uid)
