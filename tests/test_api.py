from snappy_serve.services import get_invalidation_bus


def place(client, payload):
    response = client.post("/orders", json=payload)
    assert response.status_code == 200, response.text
    return response.json()["orderId"]


def advance(client, order_id, *statuses):
    for status in statuses:
        response = client.patch(f"/orders/{order_id}", json={"status": status})
        assert response.status_code == 200, response.text
    return response.json()["order"]


def test_health(client):
    data = client.get("/health").json()

    assert data["status"] == "operational"
    assert data["mirror"] == "disabled"
    assert data["invalidation_bus"] == "memory: healthy"


def test_ann_orders_two_chai_and_pays_64(client, chai_order):
    order_id = place(client, chai_order)

    order = client.get(f"/orders/{order_id}").json()
    assert order["status"] == "PENDING"
    assert order["totalAmount"] == 60
    assert order["tableNumber"] == 5
    assert order["customerName"] == "Ann"

    assert advance(client, order_id, "PREPARING", "READY")["status"] == "READY"

    response = client.post(f"/orders/{order_id}/bill")
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["created"] is True
    bill = data["bill"]
    assert (bill["subtotal"], bill["tax"], bill["service"], bill["total"]) == (60, 3, 1, 64)
    assert bill["orderId"] == order_id

    assert client.get(f"/orders/{order_id}").json()["status"] == "COMPLETED"
    assert client.get(f"/bills/{bill['id']}").json() == bill


def test_items_and_total_round_trip(client, chai_order):
    chai_order["items"].append({"id": "snack-1", "name": "Samosa", "price": 20.5, "quantity": 1})
    chai_order["totalAmount"] = 80.5
    order_id = place(client, chai_order)

    order = client.get(f"/orders/{order_id}").json()
    assert order["items"] == chai_order["items"]
    assert order["totalAmount"] == 80.5


def test_client_status_is_ignored(client, chai_order):
    chai_order["status"] = "COMPLETED"
    order_id = place(client, chai_order)

    assert client.get(f"/orders/{order_id}").json()["status"] == "PENDING"


def test_total_is_computed_when_missing(client, chai_order):
    del chai_order["totalAmount"]
    order_id = place(client, chai_order)

    assert client.get(f"/orders/{order_id}").json()["totalAmount"] == 60


def test_empty_order_is_rejected(client, chai_order):
    chai_order["items"] = []
    response = client.post("/orders", json=chai_order)

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "ValidationError",
        "detail": "No items in order",
    }


def test_malformed_body_uses_error_envelope(client, chai_order):
    chai_order["items"][0]["quantity"] = 0
    response = client.post("/orders", json=chai_order)

    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"
    assert response.json()["success"] is False


def test_table_number_out_of_range(client, chai_order):
    chai_order["tableNumber"] = 41
    response = client.post("/orders", json=chai_order)

    assert response.status_code == 400


def test_unknown_order_is_404(client):
    assert client.get("/orders/ORD-NOPE").status_code == 404
    assert client.patch("/orders/ORD-NOPE", json={"status": "PREPARING"}).status_code == 404
    response = client.post("/orders/ORD-NOPE/bill")
    assert response.status_code == 404
    assert response.json()["error"] == "NotFoundError"


def test_illegal_transition_is_409(client, chai_order):
    order_id = place(client, chai_order)
    response = client.patch(f"/orders/{order_id}", json={"status": "READY"})

    assert response.status_code == 409
    assert response.json()["error"] == "InvalidTransitionError"
    assert client.get(f"/orders/{order_id}").json()["status"] == "PENDING"


def test_unknown_status_is_400(client, chai_order):
    order_id = place(client, chai_order)
    response = client.patch(f"/orders/{order_id}", json={"status": "COOKING"})

    assert response.status_code == 400


def test_status_is_case_insensitive(client, chai_order):
    order_id = place(client, chai_order)
    response = client.patch(f"/orders/{order_id}", json={"status": "preparing"})

    assert response.status_code == 200
    assert client.get(f"/orders/{order_id}").json()["status"] == "PREPARING"


def test_bill_before_ready_is_409(client, chai_order):
    order_id = place(client, chai_order)

    assert client.post(f"/orders/{order_id}/bill").status_code == 409
    assert client.get("/bills").json() == []


def test_second_bill_returns_the_first(client, chai_order):
    order_id = place(client, chai_order)
    advance(client, order_id, "PREPARING", "READY")

    first = client.post(f"/orders/{order_id}/bill").json()
    second = client.post("/bills", json={"orderId": order_id}).json()

    assert second["created"] is False
    assert second["bill"] == first["bill"]
    assert len(client.get("/bills").json()) == 1
    assert client.get("/reports/daily").json()["totalRevenue"] == 64


def test_ad_hoc_bill(client):
    response = client.post("/bills", json={
        "tableNumber": 2,
        "customerName": "Ravi",
        "items": [{"name": "Aloo Paratha", "price": 60, "quantity": 2}],
    })

    assert response.status_code == 200
    bill = response.json()["bill"]
    assert bill["orderId"] is None
    assert (bill["subtotal"], bill["tax"], bill["service"], bill["total"]) == (120, 6, 2, 128)


def test_kitchen_queue(client, chai_order):
    first = place(client, chai_order)
    second = place(client, chai_order)
    done = place(client, chai_order)
    advance(client, second, "PREPARING", "READY", "BILL_REQUESTED")
    advance(client, done, "PREPARING", "READY", "COMPLETED")

    queue = [o["id"] for o in client.get("/orders/queue").json()]
    assert queue == [second, first]
    assert len(client.get("/orders").json()) == 3


def test_bill_publishes_reports_updated(client, chai_order):
    events = []
    get_invalidation_bus().subscribe(lambda event, at: events.append(event.value))

    order_id = place(client, chai_order)
    advance(client, order_id, "PREPARING", "READY")
    client.post(f"/orders/{order_id}/bill")
    client.post(f"/orders/{order_id}/bill")

    assert events == ["reports-updated"]
    assert "reports-updated" in client.get("/invalidations").json()


def test_publish_invalidation(client):
    response = client.post("/invalidations", json={"event": "menu-updated"})

    assert response.status_code == 200
    at = response.json()["at"]
    assert client.get("/invalidations").json() == {"menu-updated": at}
    assert client.post("/invalidations", json={"event": "nope"}).status_code == 400
