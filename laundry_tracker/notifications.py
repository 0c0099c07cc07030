"""
Notification derivation and delivery.

Derivation turns a load that just went through a transition into the
notification records each actor should receive. Delivery writes them to the
notifications table on a best-effort basis: a failed write is logged and
skipped, and it never reaches the caller of the transition.
"""
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional

from . import quantities as qty
from .errors import NotificationDeliveryError
from .schemas import Load, Notification

logger = logging.getLogger(__name__)


@dataclass
class Audience:
    """Who hears about a load, resolved from the directory before fan-out."""
    hotel_name: str
    driver_id: str
    driver_name: str
    manager_uids: List[str] = field(default_factory=list)
    admin_uids: List[str] = field(default_factory=list)


def _unique(uids: Iterable[str]) -> List[str]:
    seen, out = set(), []
    for uid in uids:
        if uid and uid not in seen:
            seen.add(uid)
            out.append(uid)
    return out


def _fan_out(load: Load, uids: Iterable[str], type_: str, title: str, body: str,
             role: Optional[str] = None) -> List[Notification]:
    return [Notification(target_uid=uid, target_role=role, type=type_, title=title, body=body,
                         load_id=load.id, hotel_id=load.hotel_id)
            for uid in _unique(uids)]


def pickup_acknowledged_events(load: Load, audience: Audience) -> List[Notification]:
    body = f"{audience.hotel_name} confirmed your pickup. Due back {load.due_date:%b %d, %Y}."
    if load.pickup_remark:
        body += f" Remark: {load.pickup_remark}"
    return _fan_out(load, [load.driver_id], "load_collected", "📋 Pickup Acknowledged", body, role="driver")


def drop_events(load: Load, audience: Audience) -> List[Notification]:
    if load.status == "partially_dropped":
        remaining = qty.to_mapping(load.remaining_items)
        body = (f"⚠️ Partial drop by {audience.driver_name} at {audience.hotel_name}. "
                f"Remaining: {qty.summarize(remaining)}")
        events = _fan_out(load, audience.manager_uids, "load_partial", "⚠️ Partial Drop", body,
                          role="hotel_manager")
        already = {e.target_uid for e in events}
        events += _fan_out(load, [u for u in audience.admin_uids if u not in already],
                           "load_partial", "⚠️ Partial Drop", body, role="admin")
        return events

    pieces = qty.total(qty.to_mapping(load.dropped_items))
    events = _fan_out(
        load, audience.manager_uids, "load_dropped", "📦 Load Dropped for Approval",
        f"{audience.driver_name} dropped all {pieces} pieces at {audience.hotel_name}. Please approve.",
        role="hotel_manager")
    already = {e.target_uid for e in events}
    events += _fan_out(
        load, [u for u in audience.admin_uids if u not in already], "load_dropped",
        f"📦 Load Dropped at {audience.hotel_name}",
        f"{audience.driver_name} dropped all {pieces} pieces. Awaiting hotel approval.",
        role="admin")
    return events


def approval_events(load: Load, audience: Audience) -> List[Notification]:
    if load.status == "partial":
        missing = qty.summarize(qty.to_mapping(load.remaining_items), "{type} ({quantity} remaining)")
        events = _fan_out(load, [load.driver_id], "load_partial", "⚠️ Load Partially Approved",
                          f"{audience.hotel_name} found missing items: {missing}", role="driver")
        events += _fan_out(load, [u for u in audience.admin_uids if u != load.driver_id], "load_partial",
                           f"⚠️ Partial Approval at {audience.hotel_name}",
                           f"Missing items: {missing}. Driver: {audience.driver_name}", role="admin")
        return events

    pieces = qty.total(qty.to_mapping(load.items))
    events = _fan_out(load, [load.driver_id], "load_approved", "✅ Load Fully Approved",
                      f"{audience.hotel_name} confirmed all items received. Great job!", role="driver")
    events += _fan_out(load, [u for u in audience.admin_uids if u != load.driver_id], "load_approved",
                       f"✅ Load Approved at {audience.hotel_name}",
                       f"All {pieces} items confirmed by hotel manager.", role="admin")
    return events


def delayed_events(load: Load, audience: Audience, now: datetime) -> List[Notification]:
    late_by = now - load.due_date
    days = max(late_by.days, 0)
    late = f"{days} day{'s' if days != 1 else ''}" if days else "less than a day"
    body = (f"Load picked up by {audience.driver_name} on {load.collected_at:%b %d} was due "
            f"{load.due_date:%b %d, %Y} and is still {load.status.replace('_', ' ')} ({late} late).")
    return _fan_out(load, audience.admin_uids, "load_delayed",
                    f"🕐 Load Overdue at {audience.hotel_name}", body, role="admin")


class NotificationSink:
    """Writes notification records through the store, one at a time."""

    def __init__(self, store):
        self.store = store

    def write(self, event: Notification, conn=None) -> Notification:
        try:
            return self.store.insert_notification(event, conn=conn)
        except sqlite3.Error as e:
            raise NotificationDeliveryError(
                f"Could not record {event.type} for {event.target_uid}: {e}") from e

    def deliver(self, events: Iterable[Notification]) -> List[Notification]:
        """Best effort: every failed write is logged and skipped."""
        delivered = []
        for event in events:
            try:
                delivered.append(self.write(event))
            except NotificationDeliveryError as e:
                logger.error("Notification delivery failed (load=%s): %s", event.load_id, e.message)
            except Exception:
                logger.exception("Notification delivery failed (load=%s)", event.load_id)
        return delivered
