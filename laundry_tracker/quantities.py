"""
Item-quantity arithmetic.

Quantities are handled as mappings of item type -> pieces. Every helper
returns a new mapping and leaves its inputs untouched; insertion order follows
the first argument so item lists keep the order they were collected in.
"""
from typing import Dict, Iterable, List, Mapping, Optional

from .schemas import LoadItem

Quantities = Dict[str, int]


def to_mapping(items: Optional[Iterable]) -> Quantities:
    """Fold LoadItem-like objects (or dicts) into type -> quantity, summing repeated types."""
    if isinstance(items, Mapping):
        return {t: int(q) for t, q in items.items()}
    out: Quantities = {}
    for item in items or []:
        if isinstance(item, dict):
            t, q = item["type"], item["quantity"]
        else:
            t, q = item.type, item.quantity
        out[t] = out.get(t, 0) + int(q)
    return out


def to_items(quantities: Mapping[str, int]) -> List[LoadItem]:
    return [LoadItem(type=t, quantity=q) for t, q in quantities.items()]


def positive(quantities: Mapping[str, int]) -> Quantities:
    return {t: q for t, q in quantities.items() if q > 0}


def merge(base: Mapping[str, int], delta: Mapping[str, int]) -> Quantities:
    out = dict(base)
    for t, q in delta.items():
        out[t] = out.get(t, 0) + q
    return out


def shortfall(expected: Mapping[str, int], actual: Mapping[str, int]) -> Quantities:
    """expected - actual per type, keeping only positive differences."""
    out: Quantities = {}
    for t, q in expected.items():
        diff = q - actual.get(t, 0)
        if diff > 0:
            out[t] = diff
    return out


def clamp(requested: Mapping[str, int], limits: Mapping[str, int]) -> Quantities:
    """Bound each request to [0, limit]; types without a limit clamp to zero and are dropped."""
    out: Quantities = {}
    for t, limit in limits.items():
        q = requested.get(t, 0)
        out[t] = max(0, min(int(q), limit))
    return out


def total(quantities: Mapping[str, int]) -> int:
    return sum(quantities.values())


def summarize(quantities: Mapping[str, int], template: str = "{type} ×{quantity}") -> str:
    return ", ".join(template.format(type=t, quantity=q) for t, q in quantities.items())
