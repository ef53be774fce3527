from config import settings
from constants import TAX_AND_SHIPPING_STL_ID


def _payload(**details):
    order_details = {"price": 40.0, "delivery_type": "express", "drop_off_location": "Kikuyu"}
    order_details.update(details)
    return {
        "customerData": {
            "first_name": "Ada",
            "last_name": "Lovelace",
            "email": "ada@example.com",
            "phone": "0700 123 456",
            "delivery_address": "12 Analytical Way",
        },
        "stlFiles": [
            {
                "stl_file": "file-a",
                "material": "pla",
                "color": "blue",
                "scale": 100,
                "cost": 15.0,
            },
            {
                "stl_file": "file-b",
                "material": "PETG",
                "colour": "Orange",
                "scale": 100,
                "cost": 16.5,
                "file_size": 0,
            },
        ],
        "orderDetails": order_details,
    }


def _create(client, **details):
    response = client.post("/api/orders", json=_payload(**details))
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_create_order_returns_receipt(client, store):
    response = client.post("/api/orders", json=_payload())

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Order created successfully with 3 item(s)"
    receipt = body["data"]
    assert receipt["order_id"].startswith("ORD_")
    assert receipt["customer_name"] == "Ada Lovelace"
    assert receipt["customer_email"] == "ada@example.com"
    assert receipt["total"] == 40.0
    assert receipt["order_count"] == 3
    assert receipt["status"] == "order_made"
    assert receipt["delivery_type"] == "express"
    assert receipt["partial"] is False
    assert [item["stl_id"] for item in receipt["stl_files"]] == ["file-a", "file-b"]
    lines = store.rows(settings.orders_table)
    assert receipt["id"] in {line["id"] for line in lines}
    assert {line["drop_off_location"] for line in lines} == {"Kikuyu"}


def test_create_order_validation_envelope(client, store):
    payload = _payload()
    payload["stlFiles"][1]["material"] = "titanium"
    del payload["customerData"]["email"]

    response = client.post("/api/orders", json=payload)

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "validation_error"
    fields = {item["field"] for item in body["error"]["fields"]}
    assert fields == {"customerData.email", "stlFiles[1].material"}
    assert store.calls == []


def test_type_errors_are_reported_with_rule_violations(client, store):
    payload = _payload()
    payload["stlFiles"][0]["scale"] = "huge"
    payload["stlFiles"][0]["material"] = "titanium"
    payload["stlFiles"][1]["quantity"] = 1.5
    payload["orderDetails"] = {}
    del payload["customerData"]["last_name"]

    response = client.post("/api/orders", json=payload)

    assert response.status_code == 400
    errors = {item["field"]: item["message"] for item in response.json()["error"]["fields"]}
    assert errors == {
        "customerData.last_name": "Field is required",
        "stlFiles[0].material": "Must be one of: pla, abs, petg, nylon",
        "stlFiles[0].scale": "Must be a number",
        "stlFiles[1].quantity": "Must be a whole number",
        "orderDetails.price": "Field is required",
        "orderDetails.delivery_type": "Field is required",
    }
    assert store.calls == []


def test_numeric_strings_are_accepted(client, store):
    payload = _payload(price="40")
    payload["stlFiles"][0]["scale"] = "100"
    payload["stlFiles"][0]["quantity"] = "1"

    response = client.post("/api/orders", json=payload)

    assert response.status_code == 201
    assert response.json()["data"]["total"] == 40.0


def test_malformed_body_uses_validation_envelope(client):
    payload = _payload()
    payload["stlFiles"] = "not-a-list"

    response = client.post("/api/orders", json=payload)

    assert response.status_code == 400
    fields = [item["field"] for item in response.json()["error"]["fields"]]
    assert fields == ["stlFiles"]


def test_create_order_fails_when_nothing_is_created(client, store):
    store.fail_when("create", settings.stls_table)

    response = client.post("/api/orders", json=_payload())

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "No orders were created"
    assert body["error"]["code"] == "upstream_error"


def test_partial_checkout_is_reported_as_success(client, store):
    store.fail_when(
        "create", settings.stls_table, match=lambda fields: fields["stl_file"] == "file-b"
    )

    response = client.post("/api/orders", json=_payload())

    assert response.status_code == 201
    receipt = response.json()["data"]
    assert receipt["partial"] is True
    assert receipt["failures"] == [
        {"index": 1, "stage": "stl", "message": "store unavailable"}
    ]


def test_read_order_group_with_details(client, store):
    receipt = _create(client)

    response = client.get(f"/api/orders/{receipt['order_id']}")

    assert response.status_code == 200
    group = response.json()["data"]
    assert group["order_id"] == receipt["order_id"]
    assert group["line_count"] == 3
    assert group["total"] == 40.0
    by_stl = {line["stl_id"]: line for line in group["lines"]}
    residual = by_stl.pop(TAX_AND_SHIPPING_STL_ID)
    assert residual["stl"] is None
    for line in by_stl.values():
        assert line["customer"]["email"] == "ada@example.com"
        assert line["stl"]["stl_order"] == receipt["order_id"]
    assert {line["stl"]["material"] for line in by_stl.values()} == {"pla", "PETG"}


def test_reading_an_order_group_has_no_side_effects(client, store):
    receipt = _create(client)
    before = {name: store.rows(name) for name in list(store.collections)}

    first = client.get(f"/api/orders/{receipt['order_id']}").json()
    second = client.get(f"/api/orders/{receipt['order_id']}").json()

    assert first == second
    assert {name: store.rows(name) for name in list(store.collections)} == before


def test_unknown_order_group_is_not_found(client):
    response = client.get("/api/orders/ORD_0_NOPE00")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "not_found"


def test_read_customer_orders(client):
    receipt = _create(client)

    response = client.get(f"/api/orders/customer/{receipt['customer_id']}")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["customer"]["id"] == receipt["customer_id"]
    assert data["total"] == 3
    colours = {
        line["stl"]["colour"] for line in data["orders"] if line["stl"] is not None
    }
    assert colours == {"blue", "Orange"}


def test_customer_orders_for_unknown_customer(client):
    response = client.get("/api/orders/customer/missing")

    assert response.status_code == 404


def test_update_line_status(client, store):
    receipt = _create(client)

    response = client.patch(
        f"/api/orders/lines/{receipt['id']}/status", json={"status": "printing"}
    )

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "printing"
    line = next(row for row in store.rows(settings.orders_table) if row["id"] == receipt["id"])
    assert line["status"] == "printing"


def test_update_line_status_rejects_unknown_status(client):
    receipt = _create(client)

    response = client.patch(
        f"/api/orders/lines/{receipt['id']}/status", json={"status": "teleported"}
    )

    assert response.status_code == 400
    assert response.json()["error"]["fields"][0]["field"] == "status"


def test_update_status_of_missing_line(client):
    response = client.patch("/api/orders/lines/missing/status", json={"status": "pending"})

    assert response.status_code == 404


def test_list_orders_filters_and_paginates(client):
    _create(client)
    receipt = _create(client)
    client.patch(f"/api/orders/lines/{receipt['id']}/status", json={"status": "shipped"})

    everything = client.get("/api/orders", params={"limit": 4}).json()["data"]
    shipped = client.get("/api/orders", params={"status": "shipped"}).json()["data"]

    assert everything["total"] == 6
    assert len(everything["items"]) == 4
    assert shipped["total"] == 1
    assert shipped["items"][0]["id"] == receipt["id"]


def test_order_group_lines_follow_submission_order(client, store):
    receipt = _create(client)
    lines = store.table(settings.orders_table)
    reversed_rows = list(lines.items())[::-1]
    lines.clear()
    lines.update(reversed_rows)

    group = client.get(f"/api/orders/{receipt['order_id']}").json()["data"]

    assert [line["line_number"] for line in group["lines"]] == [1, 2, 3]
    assert [line["stl"]["stl_file"] for line in group["lines"][:2]] == ["file-a", "file-b"]
    assert group["lines"][2]["stl_id"] == TAX_AND_SHIPPING_STL_ID
