"""
Scenario: normal flow and concurrent assignment.

Valid sequence: pending -> obat_siap -> assigned_courier -> in_transit -> delivered.
Expect one tracking entry per step, the fee computed at courier assignment, and the
delivered order closed to any further transition.
"""
import asyncio

import pytest
from _helper import (
    ADMIN_ID,
    COURIER_ID,
    OTHER_COURIER_ID,
    STAFF_ID,
    statuses_oldest_first,
)

from meddelivery.errors import ConcurrentModification, InvalidTransition
from meddelivery.order_state import OrderStatus, is_valid_walk

EXPECTED_SEQUENCE = [
    OrderStatus.PENDING,
    OrderStatus.OBAT_SIAP,
    OrderStatus.ASSIGNED_COURIER,
    OrderStatus.IN_TRANSIT,
    OrderStatus.DELIVERED,
]


async def test_normal_flow(lifecycle, db, order):
    ready = await lifecycle.transition(order.id, OrderStatus.OBAT_SIAP, STAFF_ID)
    assert ready.status is OrderStatus.OBAT_SIAP
    assert ready.assigned_courier_id is None
    assert ready.delivery_fee is None

    assigned = await lifecycle.transition(
        order.id, OrderStatus.ASSIGNED_COURIER, ADMIN_ID, assigned_courier_id=COURIER_ID
    )
    assert assigned.assigned_courier_id == COURIER_ID
    assert assigned.delivery_distance == pytest.approx(1.16)
    assert assigned.delivery_fee == 7320
    assert assigned.delivery_fee >= 5000

    in_transit = await lifecycle.transition(
        order.id,
        OrderStatus.IN_TRANSIT,
        COURIER_ID,
        latitude=-6.2050,
        longitude=106.8420,
        notes="Package picked up",
    )
    delivered = await lifecycle.transition(order.id, OrderStatus.DELIVERED, COURIER_ID, notes="Received by family")
    assert delivered.status is OrderStatus.DELIVERED
    # Courier and fee carried through the later steps
    assert delivered.assigned_courier_id == COURIER_ID
    assert delivered.delivery_fee == assigned.delivery_fee
    assert delivered.updated_at >= in_transit.updated_at >= assigned.updated_at

    entries = [e async for e in db.tracking.list_by_order(order.id)]
    assert [e.status for e in reversed(entries)] == EXPECTED_SEQUENCE
    assert entries[0].status is delivered.status
    assert [e.updated_by for e in reversed(entries)] == [ADMIN_ID, STAFF_ID, ADMIN_ID, COURIER_ID, COURIER_ID]
    transit_entry = entries[1]
    assert (transit_entry.latitude, transit_entry.longitude) == (-6.2050, 106.8420)
    assert transit_entry.notes == "Package picked up"

    for target in OrderStatus:
        with pytest.raises(InvalidTransition):
            await lifecycle.transition(order.id, target, ADMIN_ID)
    assert len([e async for e in db.tracking.list_by_order(order.id)]) == len(EXPECTED_SEQUENCE)


async def test_history_is_restartable(lifecycle, db, order):
    await lifecycle.transition(order.id, OrderStatus.OBAT_SIAP, STAFF_ID)
    history = db.tracking.list_by_order(order.id)
    first = [e.id async for e in history]
    second = [e.id async for e in history]
    assert first == second
    assert len(first) == 2
    assert is_valid_walk(await statuses_oldest_first(history))


async def test_concurrent_assignment_one_wins(lifecycle, db, order):
    await lifecycle.transition(order.id, OrderStatus.OBAT_SIAP, STAFF_ID)
    entries_before = len(db.tracking_rows)

    results = await asyncio.gather(
        lifecycle.transition(order.id, OrderStatus.ASSIGNED_COURIER, ADMIN_ID, assigned_courier_id=COURIER_ID),
        lifecycle.transition(order.id, OrderStatus.ASSIGNED_COURIER, ADMIN_ID, assigned_courier_id=OTHER_COURIER_ID),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], ConcurrentModification)
    assert len(db.tracking_rows) == entries_before + 1

    stored = await db.orders.get(order.id)
    assert stored.assigned_courier_id == winners[0].assigned_courier_id
    latest = [e async for e in db.tracking.list_by_order(order.id)][0]
    assert latest.status is stored.status
