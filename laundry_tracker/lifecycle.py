"""
Load state transitions.

Every function here is pure: it takes the current Load plus the actor's input
and returns the next Load, or raises before anything changes. Persistence and
notification fan-out are layered on top by the engine.
"""
import uuid
from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional

from . import quantities as qty
from .errors import PreconditionError, ValidationError
from .schemas import Load
from .validate import can_transition, describe


def new_load_id() -> str:
    return f"load-{uuid.uuid4().hex[:12]}"


def as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _require(load: Load, action: str) -> None:
    ok, reason = can_transition(load, action)
    if not ok:
        raise PreconditionError(describe(reason, load, action), reason=reason)


def outstanding(load: Load) -> qty.Quantities:
    """Pieces not yet handed back, per type: items - dropped_items."""
    return qty.shortfall(qty.to_mapping(load.items), qty.to_mapping(load.dropped_items))


def collect(hotel_id: str, driver_id: str, items: Iterable, now: datetime,
            notes: Optional[str] = None, load_id: Optional[str] = None) -> Load:
    picked = qty.positive(qty.to_mapping(items))
    if not picked:
        raise ValidationError("Add at least one item with a quantity above zero",
                              reason="no_items")
    return Load(
        id=load_id or new_load_id(),
        hotel_id=hotel_id,
        driver_id=driver_id,
        status="collected",
        items=qty.to_items(picked),
        collected_at=as_utc(now),
        notes=notes,
    )


def acknowledge_pickup(load: Load, due_date: Optional[datetime], now: datetime,
                       remark: Optional[str] = None) -> Load:
    _require(load, "acknowledge")
    if due_date is None:
        raise ValidationError("A due date is required to acknowledge pickup", reason="missing_due_date")
    due_date = as_utc(due_date)
    if due_date.date() < as_utc(now).date():
        raise ValidationError(f"Due date {due_date.date().isoformat()} is in the past",
                              reason="due_date_in_past")
    return load.model_copy(update={
        "pickup_acknowledged": True,
        "due_date": due_date,
        "pickup_remark": remark,
    })


def mark_processing(load: Load) -> Load:
    _require(load, "processing")
    return load.model_copy(update={"status": "processing"})


def drop(load: Load, requested: Mapping[str, int], now: datetime) -> Load:
    """
    Hand back some or all outstanding pieces.

    Requests are clamped to what is still outstanding, so dropped_items can
    never exceed items no matter what the caller asks for. A drop that would
    move nothing is rejected.
    """
    _require(load, "drop")
    dropping = qty.clamp(requested, outstanding(load))
    if qty.total(dropping) == 0:
        raise ValidationError("All requested drop quantities are zero; drop at least one item",
                              reason="all_quantities_zero")

    items = qty.to_mapping(load.items)
    dropped = qty.merge(qty.to_mapping(load.dropped_items), dropping)
    remaining = qty.shortfall(items, dropped)
    return load.model_copy(update={
        "status": "partially_dropped" if remaining else "dropped",
        "dropped_items": qty.to_items(dropped),
        "remaining_items": qty.to_items(remaining),
        "dropped_at": as_utc(now),
    })


def approve(load: Load, confirmed: Mapping[str, int], manager_id: str, now: datetime,
            notes: Optional[str] = None) -> Load:
    """Record what the hotel actually received; any shortfall makes the load partial."""
    _require(load, "approve")
    items = qty.to_mapping(load.items)
    received = qty.clamp(confirmed, items)
    missing = qty.shortfall(items, received)
    return load.model_copy(update={
        "status": "partial" if missing else "approved",
        "approved_items": qty.to_items(received),
        "remaining_items": qty.to_items(missing),
        "approved_at": as_utc(now),
        "approved_by": manager_id,
        "approval_notes": notes,
    })
