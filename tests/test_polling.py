import asyncio
import logging

import httpx
import pytest

from snappy_serve.clients import (
    ApiError,
    CafeApiClient,
    CustomerClient,
    KitchenClient,
    LoggingNotifier,
    SubscriptionHub,
)
from snappy_serve.clients.customer import order_key
from snappy_serve.domain import OrderStatus
from snappy_serve.services import get_invalidation_bus
from snappy_serve.services.invalidation import InMemoryInvalidationBus, InvalidationEvent

CHAI = [{"id": "tea-1", "name": "Masala Chai", "price": 30, "quantity": 2}]


async def wait_for(predicate, timeout=3.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


def asgi_client():
    from snappy_serve.main import app

    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://cafe")


class Counter:
    def __init__(self, fail_first=0):
        self.calls = 0
        self.fail_first = fail_first

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.fail_first:
            raise httpx.ConnectError("kitchen offline")
        return self.calls


def test_one_poll_loop_per_key():
    async def scenario():
        hub = SubscriptionHub()
        fetch = Counter()
        first, second = [], []
        sub_a = hub.subscribe("orders", fetch, 0.01, first.append)
        sub_b = hub.subscribe("orders", Counter(), 0.01, second.append)
        await wait_for(lambda: len(second) >= 2)
        keys_while_polling = hub.keys

        sub_a.unsubscribe()
        still_polling = hub.keys
        sub_b.unsubscribe()
        return fetch, first, second, keys_while_polling, still_polling, hub.keys

    fetch, first, second, polling, still_polling, after = asyncio.run(scenario())
    assert polling == ["orders"]
    assert still_polling == ["orders"]
    assert after == []
    # both subscribers were fed by the first subscriber's fetcher
    assert set(second) <= set(range(1, fetch.calls + 1))
    assert first[0] == 1


def test_refresh_fetches_out_of_band():
    async def scenario():
        hub = SubscriptionHub()
        fetch = Counter()
        values = []
        hub.subscribe("menu", fetch, 60, values.append)
        await wait_for(lambda: values == [1])
        hub.refresh("menu")
        await wait_for(lambda: values == [1, 2])
        await hub.close()
        return hub.keys

    assert asyncio.run(scenario()) == []


def test_failed_poll_is_retried_next_tick(caplog):
    caplog.set_level(logging.DEBUG, logger="snappy_serve.clients.polling")

    async def scenario():
        hub = SubscriptionHub()
        values = []
        hub.subscribe("order:ORD-1", Counter(fail_first=2), 0.01, values.append)
        await wait_for(lambda: values)
        await hub.close()
        return values

    assert asyncio.run(scenario())[0] == 3
    assert "retrying next tick" in caplog.text


def test_unparseable_poll_result_is_retried_next_tick(caplog):
    calls = []

    async def fetch():
        calls.append(1)
        if len(calls) == 1:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return len(calls)

    async def scenario():
        hub = SubscriptionHub()
        values = []
        hub.subscribe("order:ORD-1", fetch, 0.01, values.append)
        await wait_for(lambda: len(values) >= 2)
        keys = hub.keys
        await hub.close()
        return values, keys

    with caplog.at_level(logging.ERROR, logger="snappy_serve.clients.polling"):
        values, keys = asyncio.run(scenario())

    assert values[:2] == [2, 3]
    assert keys == ["order:ORD-1"]
    assert "unusable data" in caplog.text


def test_subscriber_may_leave_from_its_callback():
    async def scenario():
        hub = SubscriptionHub()
        values = []

        def once(value):
            values.append(value)
            subscription.unsubscribe()

        subscription = hub.subscribe("order:ORD-1", Counter(), 0.01, once)
        await wait_for(lambda: "order:ORD-1" not in hub.keys)
        await asyncio.sleep(0.05)
        return values

    assert asyncio.run(scenario()) == [1]


def test_bound_invalidation_triggers_refetch():
    async def scenario():
        hub = SubscriptionHub()
        bus = InMemoryInvalidationBus()
        hub.attach_bus(bus)
        hub.bind_invalidation(InvalidationEvent.MENU_UPDATED, "menu")
        values = []
        hub.subscribe("menu", Counter(), 60, values.append)
        await wait_for(lambda: values == [1])

        await bus.publish(InvalidationEvent.REPORTS_UPDATED)
        await asyncio.sleep(0.02)
        unchanged = list(values)

        await bus.publish(InvalidationEvent.MENU_UPDATED)
        await wait_for(lambda: values == [1, 2])
        await hub.close()
        return unchanged, bus._subscribers

    unchanged, subscribers = asyncio.run(scenario())
    assert unchanged == [1]
    assert subscribers == []


def test_watch_markers_refreshes_on_advance_only():
    markers = iter([{"menu-updated": 1}, {"menu-updated": 1}, {"menu-updated": 2}])

    async def fetch_markers():
        return next(markers, {"menu-updated": 2})

    async def scenario():
        hub = SubscriptionHub()
        hub.bind_invalidation(InvalidationEvent.MENU_UPDATED, "menu")
        fetch = Counter()
        hub.subscribe("menu", fetch, 60, lambda value: None)
        await wait_for(lambda: fetch.calls == 1)
        hub.watch_markers(fetch_markers, 0.01)
        await wait_for(lambda: fetch.calls == 2)
        await asyncio.sleep(0.05)
        await hub.close()
        return fetch.calls

    assert asyncio.run(scenario()) == 2


def test_api_errors_carry_the_envelope():
    async def scenario():
        async with asgi_client() as http:
            api = CafeApiClient(client=http)
            with pytest.raises(ApiError) as exc_info:
                await api.get_order("ORD-NOPE")
            return exc_info.value

    error = asyncio.run(scenario())
    assert error.status_code == 404
    assert error.error_type == "NotFoundError"
    assert "ORD-NOPE" in error.message


def test_customer_follows_order_until_completed():
    async def scenario():
        async with asgi_client() as http:
            api = CafeApiClient(client=http)
            hub = SubscriptionHub()
            notifier = LoggingNotifier()
            customer = CustomerClient(api, hub, notifier=notifier, order_poll_seconds=0.01)
            kitchen = KitchenClient(api, hub, poll_seconds=0.01)

            order_id = await customer.place_order(CHAI, table_number=5, customer_name="Ann")
            kitchen.start()
            await wait_for(lambda: [o.id for o in kitchen.queue] == [order_id])

            await kitchen.advance(order_id, OrderStatus.PENDING)
            await wait_for(lambda: customer.statuses.get(order_id) == OrderStatus.PREPARING)
            await kitchen.advance(order_id, OrderStatus.PREPARING)
            await wait_for(lambda: customer.statuses.get(order_id) == OrderStatus.READY)

            result = await kitchen.generate_bill(order_id)
            await wait_for(lambda: order_key(order_id) not in hub.keys)
            await wait_for(lambda: kitchen.queue == [])
            await hub.close()
            return result, notifier.sent

    result, sent = asyncio.run(scenario())
    assert result.created is True
    assert result.bill.total == 64
    assert [n.title for n in sent] == [
        "Order status: PREPARING",
        "Order Accepted! 👨‍🍳",
        "Order status: READY",
        "Order Ready! ✅",
        "Order status: COMPLETED",
    ]
    assert sent[3].require_interaction is True
    assert sent[1].tag == "order-preparing"


def test_kitchen_queue_and_refresh():
    async def scenario():
        async with asgi_client() as http:
            api = CafeApiClient(client=http)
            hub = SubscriptionHub()
            kitchen = KitchenClient(api, hub, poll_seconds=60)

            first = await api.create_order(CHAI, table_number=1)
            second = await api.create_order(CHAI, table_number=2)
            for status in ("PREPARING", "READY", "BILL_REQUESTED"):
                await api.update_status(second, status)

            kitchen.start()
            await wait_for(lambda: len(kitchen.orders) == 2)
            queue = [o.id for o in kitchen.queue]

            await kitchen.refresh()
            markers = await api.invalidation_markers()
            await hub.close()
            return [second, first], queue, markers

    expected, queue, markers = asyncio.run(scenario())
    assert queue == expected
    assert "reports-updated" in markers


def test_menu_refetches_on_menu_updated():
    async def scenario():
        async with asgi_client() as http:
            api = CafeApiClient(client=http)
            hub = SubscriptionHub()
            hub.attach_bus(get_invalidation_bus())
            customer = CustomerClient(api, hub, menu_poll_seconds=60)
            menus = []
            customer.browse_menu(on_menu=menus.append)
            await wait_for(lambda: len(menus) == 1)

            await http.post("/menu", json={"name": "Lassi", "category": "Drinks", "price": 45})
            await wait_for(lambda: len(menus) == 2)
            customer.stop()
            await hub.close()
            return menus

    menus = asyncio.run(scenario())
    assert "Drinks" not in menus[0]
    assert menus[1]["Drinks"][0].name == "Lassi"


def test_active_orders_share_the_order_poll():
    async def scenario():
        async with asgi_client() as http:
            api = CafeApiClient(client=http)
            hub = SubscriptionHub()
            customer = CustomerClient(api, hub, order_poll_seconds=0.01, active_orders_poll_seconds=0.01)
            order_id = await api.create_order(CHAI)

            seen = []
            customer.track_order(order_id, on_update=seen.append)
            customer.track_active_orders([order_id], on_update=seen.append)
            await wait_for(lambda: len(seen) >= 2)
            keys = hub.keys
            customer.stop()
            after = hub.keys
            await hub.close()
            return order_id, keys, after

    order_id, keys, after = asyncio.run(scenario())
    assert keys == [order_key(order_id)]
    assert after == []
