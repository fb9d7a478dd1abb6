import asyncio

import pytest
from fastapi.testclient import TestClient

import snappy_serve.services as services
import snappy_serve.services.storage.mirror as mirror_module
from snappy_serve.core.config import get_settings
from snappy_serve.core.exceptions import StartupError
from snappy_serve.domain import OrderStatus
from snappy_serve.services import get_lifecycle_engine, get_menu_catalog, hydrate_from_mirror, reset_services
from snappy_serve.services.storage import BILLS, MENU, ORDERS, SQLAlchemyDocumentMirror
from test_store import RecordingMirror, make_bill, make_order


async def unreachable(timeout):
    raise asyncio.TimeoutError()


def test_connect_timeout_is_a_startup_error(monkeypatch):
    monkeypatch.setattr(mirror_module, "init_db", unreachable)

    with pytest.raises(StartupError):
        asyncio.run(SQLAlchemyDocumentMirror().connect(timeout=0.1))


def test_app_refuses_to_start_without_its_mirror(monkeypatch):
    monkeypatch.setenv("MIRROR_ENABLED", "true")
    monkeypatch.setattr(mirror_module, "init_db", unreachable)
    get_settings.cache_clear()
    reset_services()

    from snappy_serve.main import app

    with pytest.raises(StartupError):
        with TestClient(app):
            pass


def test_hydrate_from_mirror(monkeypatch):
    mirror = RecordingMirror()
    order = make_order("ORD-1")
    order.status = OrderStatus.READY
    mirror.documents[(ORDERS, "ORD-1")] = order.to_document()
    mirror.documents[(BILLS, "BILL-9")] = make_bill("BILL-9", order_id="ORD-0").to_document()
    mirror.documents[(MENU, "tea-1")] = {"id": "tea-1", "name": "Chai", "category": "Tea", "price": 15}
    monkeypatch.setattr(services, "get_document_mirror", lambda: mirror)

    async def scenario():
        counts = await hydrate_from_mirror()
        engine = get_lifecycle_engine()
        bill, created = await engine.generate_bill("ORD-1")
        return counts, bill, created, await engine.list_bills()

    counts, bill, created, bills = asyncio.run(scenario())
    assert counts == {ORDERS: 1, BILLS: 1, MENU: 1}
    assert created is True
    assert bill.total == 64
    assert len(bills) == 2
    assert get_menu_catalog().get("tea-1").price == 15
    assert len(get_menu_catalog()) == 1


def test_hydrate_without_mirror_is_a_no_op():
    assert asyncio.run(hydrate_from_mirror()) == {}
