from laundry_tracker import quantities as qty
from laundry_tracker.schemas import LoadItem


def test_to_mapping_sums_repeated_types():
    items = [LoadItem(type="Towel", quantity=3), {"type": "Towel", "quantity": 2},
             LoadItem(type="Napkin", quantity=1)]
    assert qty.to_mapping(items) == {"Towel": 5, "Napkin": 1}


def test_to_mapping_handles_missing_and_mappings():
    assert qty.to_mapping(None) == {}
    assert qty.to_mapping({"Towel": "4"}) == {"Towel": 4}


def test_merge_does_not_mutate_inputs():
    base = {"Towel": 4}
    merged = qty.merge(base, {"Towel": 2, "Bedsheet": 1})
    assert merged == {"Towel": 6, "Bedsheet": 1}
    assert base == {"Towel": 4}


def test_shortfall_keeps_only_positive_differences():
    assert qty.shortfall({"Towel": 10, "Bedsheet": 5}, {"Towel": 10, "Bedsheet": 2}) == {"Bedsheet": 3}
    assert qty.shortfall({"Towel": 1}, {"Towel": 4}) == {}


def test_clamp_bounds_to_limits():
    clamped = qty.clamp({"Towel": 99, "Bedsheet": -2, "Ghost": 5}, {"Towel": 10, "Bedsheet": 5})
    assert clamped == {"Towel": 10, "Bedsheet": 0}


def test_summarize_and_total():
    q = {"Towel": 6, "Napkin": 2}
    assert qty.total(q) == 8
    assert qty.summarize(q) == "Towel ×6, Napkin ×2"
    assert qty.summarize(q, "{type} ({quantity} remaining)") == "Towel (6 remaining), Napkin (2 remaining)"


def test_to_items_keeps_order_and_zero_entries():
    items = qty.to_items({"Towel": 0, "Napkin": 2})
    assert [(i.type, i.quantity) for i in items] == [("Towel", 0), ("Napkin", 2)]
