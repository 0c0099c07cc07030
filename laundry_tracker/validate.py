from .schemas import Load, DROPPABLE_STATUSES, TERMINAL_STATUSES

# action -> statuses it may start from
ALLOWED_FROM = {
    "acknowledge": ("collected",),
    "processing": ("collected",),
    "drop": DROPPABLE_STATUSES,
    "approve": ("dropped",),
}

def can_transition(load: Load, action: str) -> tuple[bool, str]:
    if action not in ALLOWED_FROM:
        return False, "unknown_action"
    if load.status in TERMINAL_STATUSES:
        return False, "load_closed"
    if action == "acknowledge" and load.pickup_acknowledged:
        return False, "already_acknowledged"
    if load.status not in ALLOWED_FROM[action]:
        # e.g. approve on a collected load -> "status_not_dropped"
        if len(ALLOWED_FROM[action]) == 1:
            return False, f"status_not_{ALLOWED_FROM[action][0]}"
        return False, "status_not_droppable"
    return True, "ok"

def describe(reason: str, load: Load, action: str) -> str:
    messages = {
        "load_closed": f"Load {load.id} is already {load.status}; no further {action} is possible",
        "already_acknowledged": f"Pickup for load {load.id} was already acknowledged",
        "status_not_collected": f"Load {load.id} is {load.status}; {action} requires status collected",
        "status_not_dropped": f"Load {load.id} is {load.status}; approval requires a fully dropped load",
        "status_not_droppable": f"Load {load.id} is {load.status} and cannot be dropped",
    }
    return messages.get(reason, f"Cannot {action} load {load.id}: {reason}")
