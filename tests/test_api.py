from sahar.main import app
from sahar.models import Customer, Order, OrderItem


def test_app_routes_are_registered():
    paths = {getattr(r, "path", "") for r in app.routes}
    assert {"/pos/{terminal}/checkout", "/reports/dashboard", "/admin/reconcile"} <= paths


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200 and r.text == "OK"


def test_pos_requires_login(client, menu):
    client.cookies.clear()
    assert client.get("/pos/menu").status_code == 401


def test_login_bad_input_is_400(client, users):
    r = client.post("/auth/login", data={"email": "nope", "password": "admin123"})
    assert r.status_code == 400
    assert r.json() == {"ok": False, "error": "Please enter a valid email address"}


def test_session_and_logout(client, cashier_headers):
    r = client.get("/auth/session", headers=cashier_headers)
    assert r.json()["role"] == "user"
    client.post("/auth/logout", headers=cashier_headers)
    client.cookies.clear()
    assert client.get("/auth/session", headers=cashier_headers).status_code == 401


def test_menu_listing(client, menu, cashier_headers):
    r = client.get("/pos/menu", headers=cashier_headers, params={"category": "cold"})
    body = r.json()
    assert body["categories"][0] == "All"
    assert [i["name_en"] for i in body["items"]] == ["Mojito"]
    assert body["items"][0]["effective_price"] == 45


def test_register_checkout_flow(client, backend, menu, cashier_headers):
    h = cashier_headers
    client.post("/pos/t1/cart/add", headers=h, data={"menu_item_id": menu["Latte"].id, "sugar": "Medium"})
    client.post("/pos/t1/cart/add", headers=h, data={"menu_item_id": menu["Croissant"].id})
    client.post("/pos/t1/cart/add", headers=h, data={"menu_item_id": menu["Tea"].id})
    cart = client.delete("/pos/t1/cart/2", headers=h).json()
    assert cart["total"] == 75

    r = client.post("/pos/t1/customer", headers=h, data={"phone": "01012345678", "name": "Sara"})
    assert r.json()["found"] is False
    client.post("/pos/t1/payment", headers=h, data={"method": "Cash"})

    r = client.post("/pos/t1/checkout", headers=h)
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] and body["summary"] == "1x Latte (Sugar: Medium), 1x Croissant "
    assert body["cart"]["lines"] == []

    (o,) = backend.select(Order)
    assert (o.customer_name, o.phone, o.total_amount) == ("Sara", "01012345678", 75)
    assert len(backend.select(OrderItem)) == 2
    assert backend.first(Customer).total_orders == 1

    # known customer is found on the next sale
    r = client.post("/pos/t1/customer", headers=h, data={"phone": "01012345678"})
    assert r.json()["found"] is True and r.json()["customer_name"] == "Sara"


def test_checkout_item_failure_is_502_and_keeps_cart(client, backend, menu, cashier_headers):
    h = cashier_headers
    client.post("/pos/t2/cart/add", headers=h, data={"menu_item_id": menu["Tea"].id})
    backend.fail_on.add(("insert", "order_items"))
    r = client.post("/pos/t2/checkout", headers=h)
    assert r.status_code == 502
    assert not r.json()["ok"]
    assert len(r.json()["cart"]["lines"]) == 1
    assert len(backend.select(Order)) == 1


def test_empty_checkout_is_noop(client, backend, menu, cashier_headers):
    r = client.post("/pos/t3/checkout", headers=cashier_headers)
    assert r.status_code == 200 and r.json()["ok"]
    assert backend.select(Order) == []


def test_unknown_payment_method(client, menu, cashier_headers):
    r = client.post("/pos/t1/payment", headers=cashier_headers, data={"method": "Bitcoin"})
    assert r.status_code == 400


def test_kitchen_board_and_status(client, backend, menu, cashier_headers):
    o = backend.insert_one(Order, {
        "customer_name": "Sara", "total_amount": 45, "is_paid": True,
        "order_summary": "1x Latte (Sugar: Zero) extra hot, 2x Tea ",
    })
    backend.insert_one(OrderItem, {"order_id": o.order_id, "menu_item_id": menu["Tea"].id, "quantity": 2})
    board = client.get("/kitchen/orders", headers=cashier_headers).json()
    (card,) = board["orders"]
    assert card["items"] == [
        {"qty": "1", "name": "Latte", "note": "(Sugar: Zero) extra hot"},
        {"qty": "2", "name": "Tea", "note": ""},
    ]
    assert card["next"] == ["Preparing", "Cancelled"]

    summary = client.get("/kitchen/summary", headers=cashier_headers).json()
    assert summary == [{"name": "Tea", "total_qty": 2}]

    bad = client.post(f"/kitchen/orders/{o.order_id}/status", headers=cashier_headers, data={"status": "Delivered"})
    assert bad.status_code == 409
    ok = client.post(f"/kitchen/orders/{o.order_id}/status", headers=cashier_headers, data={"status": "Preparing"})
    assert ok.status_code == 200
    assert backend.get(Order, o.order_id).status == "Preparing"


def test_web_order_confirm_and_cancel(client, backend, cashier_headers):
    a, b = backend.insert(Order, [
        {"customer_name": "Web A", "total_amount": 50, "order_type": "website", "is_paid": False},
        {"customer_name": "Web B", "total_amount": 60, "order_type": "website", "is_paid": False},
    ])
    pending = client.get("/orders/web", headers=cashier_headers).json()
    assert [p["customer_name"] for p in pending] == ["Web A", "Web B"]

    client.post(f"/orders/web/{a.order_id}/confirm", headers=cashier_headers)
    client.post(f"/orders/web/{b.order_id}/cancel", headers=cashier_headers)
    assert client.get("/orders/web", headers=cashier_headers).json() == []
    assert backend.get(Order, a.order_id).status == "New" and backend.get(Order, a.order_id).is_paid
    assert backend.get(Order, b.order_id).status == "Cancelled"

    found = client.get("/orders", headers=cashier_headers, params={"search": "web b"}).json()
    assert [o["order_id"] for o in found] == [b.order_id]


def test_admin_routes_need_manager(client, menu, cashier_headers, admin_headers):
    assert client.get("/admin/inventory", headers=cashier_headers).status_code == 403
    assert client.get("/admin/inventory", headers=admin_headers).status_code == 200


def test_admin_expense_validation_is_400(client, admin_headers):
    r = client.post("/admin/expenses", headers=admin_headers, data={"amount": "-5", "description": "x"})
    assert r.status_code == 400
    assert r.json()["ok"] is False


def test_admin_menu_create_and_toggle(client, backend, admin_headers):
    r = client.post("/admin/menu", headers=admin_headers, data={"name_ar": "Cake", "price": "35", "category": "bakery"})
    assert r.status_code == 200
    item = r.json()["item"]
    assert item["effective_price"] == 35
    client.post(f"/admin/menu/{item['id']}/availability", headers=admin_headers, data={"available": "false"})
    menu = client.get("/admin/menu", headers=admin_headers).json()
    assert [m["is_available"] for m in menu if m["id"] == item["id"]] == [False]


def test_reports_endpoints(client, menu, admin_headers):
    assert client.get("/reports/dashboard", headers=admin_headers).json()["orders_count"] == 0
    assert client.get("/reports/finance", headers=admin_headers, params={"time_range": "weekly"}).status_code == 200
    assert client.get("/reports/dashboard", headers=admin_headers, params={"period": "decade"}).status_code == 400


def test_backend_outage_is_502(client, backend, menu, admin_headers):
    backend.fail_on.add(("insert", "expenses"))
    r = client.post("/admin/expenses", headers=admin_headers,
                    data={"amount": "5", "description": "Gas", "recorded_by": "Admin"})
    assert r.status_code == 502
    assert r.json()["ok"] is False
