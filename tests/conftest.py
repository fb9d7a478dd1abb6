import os

os.environ["ENV_MODE"] = "development"
os.environ["DEBUG"] = "false"
os.environ["MIRROR_ENABLED"] = "false"
os.environ["BILL_EXPORT_ENABLED"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from snappy_serve.core.config import get_settings  # noqa: E402
from snappy_serve.services import reset_services  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_services():
    get_settings.cache_clear()
    reset_services()
    yield
    reset_services()


@pytest.fixture
def client():
    from snappy_serve.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def chai_order():
    return {
        "tableNumber": 5,
        "customerName": "Ann",
        "items": [{"id": "tea-1", "name": "Masala Chai", "price": 30, "quantity": 2}],
        "totalAmount": 60,
    }
