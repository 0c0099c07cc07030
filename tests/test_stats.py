from datetime import timedelta

from laundry_tracker import stats


def test_admin_stats(engine, clock):
    a = engine.collect("drv-1", "hotel-1", [{"type": "Towel", "quantity": 4}])
    engine.acknowledge_pickup(a.id, "mgr-1", clock.now)
    b = engine.collect("drv-1", "hotel-2", [{"type": "Towel", "quantity": 2}])
    engine.drop(b.id, "drv-1", {"Towel": 2})
    clock.advance(days=1)
    engine.collect("drv-1", "hotel-1", [{"type": "Napkin", "quantity": 9}])

    result = stats.admin_stats(engine.store, engine.directory, clock.now)
    assert result.hotels == 2
    assert result.drivers == 1
    assert result.active_loads == 2
    assert result.collections_today == 1
    assert result.overdue_loads == 1


def test_activity_series(engine, clock):
    load = engine.collect("drv-1", "hotel-1", [{"type": "Towel", "quantity": 10}])
    clock.advance(days=1)
    engine.drop(load.id, "drv-1", {"Towel": 4})
    day0 = clock.now.date() - timedelta(days=1)

    points = stats.activity_series(engine.store, day0, day0 + timedelta(days=2))
    assert [p.date for p in points] == [(day0 + timedelta(days=i)).isoformat() for i in range(3)]
    assert (points[0].picked, points[0].dropped) == (10, 0)
    assert (points[1].picked, points[1].dropped) == (0, 4)
    assert points[0].load_ids == [load.id] and points[1].load_ids == [load.id]
    assert points[2].load_ids == []


def test_activity_series_filters_and_swapped_range(engine):
    engine.collect("drv-1", "hotel-2", [{"type": "Towel", "quantity": 3}])
    today = engine.clock().date()
    points = stats.activity_series(engine.store, today, today - timedelta(days=1), hotel_id="hotel-1")
    assert len(points) == 2
    assert sum(p.picked for p in points) == 0
    assert stats.activity_series(engine.store, today, today, hotel_id="hotel-2")[0].picked == 3
