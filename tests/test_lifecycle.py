import asyncio

import pytest

from snappy_serve.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from snappy_serve.domain import OrderItem, OrderStatus, can_transition
from snappy_serve.services.lifecycle import OrderLifecycleEngine, coerce_items, parse_status
from snappy_serve.services.storage import InMemoryBillRepository, InMemoryOrderRepository

CHAI = [{"id": "tea-1", "name": "Masala Chai", "price": 30, "quantity": 2}]


def make_engine(**kwargs):
    return OrderLifecycleEngine(InMemoryOrderRepository(), InMemoryBillRepository(), **kwargs)


async def ready_order(engine, items=CHAI, **kwargs):
    order = await engine.create_order(items, **kwargs)
    await engine.transition(order.id, OrderStatus.PREPARING)
    await engine.transition(order.id, OrderStatus.READY)
    return order


def test_transition_table():
    assert can_transition(OrderStatus.PENDING, OrderStatus.PREPARING)
    assert can_transition(OrderStatus.READY, OrderStatus.COMPLETED)
    assert can_transition(OrderStatus.READY, OrderStatus.BILL_REQUESTED)
    assert can_transition(OrderStatus.BILL_REQUESTED, OrderStatus.COMPLETED)
    assert not can_transition(OrderStatus.PENDING, OrderStatus.READY)
    assert not can_transition(OrderStatus.READY, OrderStatus.PENDING)
    assert not can_transition(OrderStatus.PREPARING, OrderStatus.PREPARING)
    assert not any(can_transition(OrderStatus.COMPLETED, s) for s in OrderStatus)


def test_create_order_is_always_pending():
    async def scenario():
        engine = make_engine()
        order = await engine.create_order(CHAI, table_number=5, customer_name="Ann")
        return order, await engine.get_order(order.id)

    order, stored = asyncio.run(scenario())
    assert order.status == OrderStatus.PENDING
    assert stored.status == OrderStatus.PENDING
    assert stored.total_amount == 60
    assert stored.id.startswith("ORD-")
    assert stored.customer_name == "Ann"


def test_create_order_defaults_customer_to_guest():
    order = asyncio.run(make_engine().create_order(CHAI))
    assert order.customer_name == "Guest"
    assert order.table_number is None


def test_create_order_keeps_client_total():
    order = asyncio.run(make_engine().create_order(CHAI, total_amount=55))
    assert order.total_amount == 55


@pytest.mark.parametrize("items", [None, [], "tea"])
def test_create_order_requires_items(items):
    with pytest.raises(ValidationError):
        asyncio.run(make_engine().create_order(items))


@pytest.mark.parametrize("table", [0, 41, -3])
def test_create_order_rejects_out_of_range_table(table):
    with pytest.raises(ValidationError):
        asyncio.run(make_engine().create_order(CHAI, table_number=table))


def test_coerce_items_rejects_bad_lines():
    with pytest.raises(ValidationError):
        coerce_items([{"name": "Chai", "price": -1}])
    with pytest.raises(ValidationError):
        coerce_items([{"name": "Chai", "quantity": 0}])
    with pytest.raises(ValidationError):
        coerce_items([{"price": 10}])

    items = coerce_items([{"name": "Chai"}, OrderItem(name="Samosa", price=20)])
    assert items[0] == OrderItem(name="Chai", price=0, quantity=1)
    assert items[1].price == 20


def test_parse_status():
    assert parse_status("ready") == OrderStatus.READY
    assert parse_status(OrderStatus.PENDING) == OrderStatus.PENDING
    with pytest.raises(ValidationError):
        parse_status("COOKING")


def test_full_lifecycle_bumps_version():
    async def scenario():
        engine = make_engine()
        order = await engine.create_order(CHAI)
        await engine.transition(order.id, "PREPARING")
        return await engine.transition(order.id, "READY")

    order = asyncio.run(scenario())
    assert order.status == OrderStatus.READY
    assert order.version == 2
    assert order.updated_at is not None


def test_illegal_transition_is_rejected_and_state_kept():
    async def scenario():
        engine = make_engine()
        order = await engine.create_order(CHAI)
        with pytest.raises(InvalidTransitionError) as exc_info:
            await engine.transition(order.id, OrderStatus.READY)
        return exc_info.value, await engine.get_order(order.id)

    error, order = asyncio.run(scenario())
    assert error.current == "PENDING"
    assert error.requested == "READY"
    assert order.status == OrderStatus.PENDING
    assert order.version == 0


def test_unknown_order():
    engine = make_engine()
    with pytest.raises(NotFoundError):
        asyncio.run(engine.get_order("ORD-NOPE"))
    with pytest.raises(NotFoundError):
        asyncio.run(engine.transition("ORD-NOPE", "PREPARING"))
    with pytest.raises(NotFoundError):
        asyncio.run(engine.generate_bill("ORD-NOPE"))


def test_generate_bill_completes_order():
    async def scenario():
        engine = make_engine()
        order = await ready_order(engine, table_number=5, customer_name="Ann")
        bill, created = await engine.generate_bill(order.id)
        return bill, created, await engine.get_order(order.id)

    bill, created, order = asyncio.run(scenario())
    assert created is True
    assert (bill.subtotal, bill.tax, bill.service, bill.total) == (60, 3, 1, 64)
    assert bill.order_id == order.id
    assert bill.table_number == 5
    assert bill.customer_name == "Ann"
    assert order.status == OrderStatus.COMPLETED


def test_generate_bill_is_idempotent():
    async def scenario():
        engine = make_engine()
        order = await ready_order(engine)
        first = await engine.generate_bill(order.id)
        second = await engine.generate_bill(order.id)
        return first, second, await engine.list_bills(), await engine.get_order(order.id)

    (first, created), (second, created_again), bills, order = asyncio.run(scenario())
    assert created is True
    assert created_again is False
    assert second == first
    assert len(bills) == 1
    # billed once: PREPARING, READY, COMPLETED
    assert order.version == 3


def test_concurrent_bill_generation_creates_one_bill():
    async def scenario():
        engine = make_engine()
        order = await ready_order(engine)
        results = await asyncio.gather(*[engine.generate_bill(order.id) for _ in range(5)])
        return results, await engine.list_bills(), await engine.get_order(order.id)

    results, bills, order = asyncio.run(scenario())
    assert sum(created for _, created in results) == 1
    assert len({bill.id for bill, _ in results}) == 1
    assert len(bills) == 1
    assert order.status == OrderStatus.COMPLETED
    assert order.version == 3


def test_bill_from_bill_requested():
    async def scenario():
        engine = make_engine()
        order = await ready_order(engine)
        requested = await engine.request_bill(order.id)
        bill, _ = await engine.generate_bill(order.id)
        return requested, bill

    requested, bill = asyncio.run(scenario())
    assert requested.status == OrderStatus.BILL_REQUESTED
    assert bill.total == 64


@pytest.mark.parametrize("steps", [[], ["PREPARING"]])
def test_bill_before_ready_is_rejected(steps):
    async def scenario():
        engine = make_engine()
        order = await engine.create_order(CHAI)
        for step in steps:
            await engine.transition(order.id, step)
        with pytest.raises(InvalidTransitionError):
            await engine.generate_bill(order.id)
        return await engine.list_bills()

    assert asyncio.run(scenario()) == []


def test_completed_without_bill_cannot_be_billed():
    async def scenario():
        engine = make_engine()
        order = await ready_order(engine)
        await engine.transition(order.id, "COMPLETED")
        with pytest.raises(NotFoundError):
            await engine.generate_bill(order.id)

    asyncio.run(scenario())


def test_ad_hoc_bill():
    async def scenario():
        engine = make_engine()
        return await engine.create_ad_hoc_bill(
            [{"name": "Samosa", "price": 20, "quantity": 5}], table_number=3,
        )

    bill = asyncio.run(scenario())
    assert bill.order_id is None
    assert (bill.subtotal, bill.tax, bill.service, bill.total) == (100, 5, 2, 107)


def test_kitchen_queue_puts_bill_requests_first():
    ticks = iter(range(1000, 2000, 10))

    async def scenario():
        engine = make_engine(clock=lambda: next(ticks))
        first = await engine.create_order(CHAI)
        second = await ready_order(engine)
        third = await engine.create_order(CHAI)
        done = await ready_order(engine)
        await engine.request_bill(second.id)
        await engine.generate_bill(done.id)
        return [first.id, second.id, third.id], await engine.kitchen_queue()

    (first, second, third), queue = asyncio.run(scenario())
    assert [o.id for o in queue] == [second, first, third]
