import pytest
from fastapi.testclient import TestClient

import routes.auth
from database import get_store
from main import app

PASSWORD = "recycle-123"
TOMORROW = "2026-03-16T10:00:00"


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def signup(client, name, email, role="end-user", subtype="generator"):
    body = {"name": name, "email": email, "role": role, "password": PASSWORD}
    if subtype:
        body["subtype"] = subtype
    res = client.post("/api/auth/signup", json=body)
    assert res.status_code == 201, res.text
    data = res.json()
    return data["user"], {"Authorization": f"Bearer {data['access_token']}"}


@pytest.fixture
def admin_auth(client, monkeypatch):
    monkeypatch.setattr(routes.auth, "ADMIN_EMAIL", "ops@trash2trade.com")
    return signup(client, "Ops", "ops@trash2trade.com", subtype=None)


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_signup_login_and_me(client):
    user, headers = signup(client, "Asha", "asha@trash2trade.com")
    assert user["green_coins"] == 0

    res = client.post("/api/auth/token", json={"email": "asha@trash2trade.com", "password": PASSWORD})
    assert res.status_code == 200
    assert res.json()["user"]["id"] == user["id"]

    assert client.get("/api/auth/me", headers=headers).json()["email"] == "asha@trash2trade.com"


def test_wrong_password_is_forbidden(client):
    signup(client, "Asha", "asha@trash2trade.com")
    res = client.post("/api/auth/token", json={"email": "asha@trash2trade.com", "password": "nope-nope-nope"})
    assert res.status_code == 403
    assert res.json()["error"]["code"] == "UNAUTHORIZED"


def test_admin_cannot_self_register(client):
    res = client.post(
        "/api/auth/signup",
        json={"name": "Eve", "email": "eve@trash2trade.com", "role": "admin", "password": PASSWORD},
    )
    assert res.status_code == 403


def test_bootstrap_admin(admin_auth):
    user, _ = admin_auth
    assert user["role"] == "admin"


def test_missing_token_is_rejected(client):
    assert client.get("/api/auth/me").status_code in (401, 403)
    assert client.get("/api/auth/me", headers={"Authorization": "Bearer junk"}).status_code == 401


def test_duplicate_signup_maps_to_400(client):
    signup(client, "Asha", "asha@trash2trade.com")
    res = client.post(
        "/api/auth/signup",
        json={"name": "Asha", "email": "asha@trash2trade.com", "subtype": "generator", "password": PASSWORD},
    )
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION"


def test_pickup_flow_over_http(client):
    owner, owner_h = signup(client, "Asha", "asha@trash2trade.com")
    c1, c1_h = signup(client, "Ravi", "ravi@trash2trade.com", role="collector", subtype=None)
    _, c2_h = signup(client, "Sunil", "sunil@trash2trade.com", role="collector", subtype=None)

    res = client.post(
        "/api/pickups",
        headers=owner_h,
        json={"waste_type": "plastic", "quantity": 5, "address": "4 Lake View", "scheduled_date": TOMORROW},
    )
    assert res.status_code == 201, res.text
    request = res.json()
    assert request["estimated_value"] == 75.0
    assert request["green_coins_award"] == 38

    board = client.get("/api/pickups/browse?sort=payment", headers=c1_h).json()
    assert board["count"] == 1
    assert board["high_priority"] == 1

    assert client.post(f"/api/pickups/{request['id']}/accept", headers=c1_h).status_code == 200

    lost = client.post(f"/api/pickups/{request['id']}/accept", headers=c2_h)
    assert lost.status_code == 409
    assert lost.json()["error"]["code"] == "INVALID_STATE"

    cancel = client.post(f"/api/pickups/{request['id']}/cancel", headers=owner_h)
    assert cancel.status_code == 409

    done = client.post(f"/api/pickups/{request['id']}/complete", headers=c1_h, json={"actual_price": 75})
    assert done.status_code == 200
    assert done.json()["status"] == "completed"

    history = client.get(f"/api/pickups/{request['id']}/history", headers=owner_h).json()
    assert history["history"] == ["pending", "assigned", "completed"]

    stats = client.get("/api/stats/me", headers=owner_h).json()
    assert stats["green_coins"] == 38

    collector_stats = client.get(f"/api/stats/collector/{c1['id']}", headers=c1_h).json()
    assert collector_stats["total_earnings"] == 75.0

    overdraw = client.post("/api/users/me/redeem", headers=owner_h, json={"amount": 1000})
    assert overdraw.status_code == 409
    assert overdraw.json()["error"]["code"] == "INSUFFICIENT_BALANCE"
    assert client.get("/api/auth/me", headers=owner_h).json()["green_coins"] == 38


def test_collector_cannot_create_pickup(client):
    _, headers = signup(client, "Ravi", "ravi@trash2trade.com", role="collector", subtype=None)
    res = client.post(
        "/api/pickups",
        headers=headers,
        json={"waste_type": "paper", "quantity": 1, "address": "Depot", "scheduled_date": TOMORROW},
    )
    assert res.status_code == 403


def test_bad_pickup_payload_is_422(client):
    _, headers = signup(client, "Asha", "asha@trash2trade.com")
    res = client.post(
        "/api/pickups",
        headers=headers,
        json={"waste_type": "plastic", "quantity": -2, "address": "x", "scheduled_date": TOMORROW},
    )
    assert res.status_code == 422


def test_unknown_pickup_is_404(client):
    _, headers = signup(client, "Asha", "asha@trash2trade.com")
    res = client.get("/api/pickups/does-not-exist", headers=headers)
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "NOT_FOUND"


def test_marketplace_flow_over_http(client):
    seller, seller_h = signup(client, "Meera", "meera@trash2trade.com", subtype="diy-seller")
    _, buyer_h = signup(client, "Kabir", "kabir@trash2trade.com")

    res = client.post(
        "/api/products",
        headers=seller_h,
        json={"title": "Bottle lamp", "price": 300, "category": "home-decor"},
    )
    assert res.status_code == 201
    product = res.json()

    listing = client.get("/api/products?q=lamp").json()
    assert listing["total"] == 1
    assert listing["items"][0]["seller"]["name"] == "Meera"

    order = client.post("/api/orders", headers=buyer_h, json={"product_id": product["id"]}).json()
    assert order["total_amount"] == 300.0
    assert order["platform_fee"] == 15.0
    assert order["seller_amount"] == 285.0

    again = client.post("/api/orders", headers=buyer_h, json={"product_id": product["id"]})
    assert again.status_code == 409
    assert client.get("/api/products").json()["total"] == 0

    confirmed = client.post(f"/api/orders/{order['id']}/status", headers=seller_h, json={"status": "confirmed"})
    assert confirmed.json()["status"] == "confirmed"

    sales = client.get("/api/orders/sales", headers=seller_h).json()
    assert [o["id"] for o in sales] == [order["id"]]

    seller_stats = client.get(f"/api/stats/seller/{seller['id']}", headers=seller_h).json()
    assert seller_stats["items_sold"] == 1


def test_admin_routes(client, admin_auth):
    _, admin_h = admin_auth
    user, user_h = signup(client, "Asha", "asha@trash2trade.com")

    assert client.get("/api/stats/admin", headers=user_h).status_code == 403
    assert client.get("/api/stats/admin", headers=admin_h).json()["total_users"] == 1

    res = client.post(f"/api/users/{user['id']}/green-coins", headers=admin_h, json={"delta": 25, "reason": "welcome"})
    assert res.json()["green_coins"] == 25

    verified = client.post(f"/api/users/{user['id']}/verify", headers=admin_h, json={"verified": True})
    assert verified.json()["is_verified"] is True

    snapshot = client.get("/api/admin/snapshot", headers=admin_h).json()
    assert len(snapshot["users"]) == 2

    restored = client.post("/api/admin/snapshot/restore", headers=admin_h, json=snapshot)
    assert restored.status_code == 200
    assert restored.json()["users"] == 2

    assert client.post("/api/admin/snapshot/save", headers=admin_h).status_code == 200


def test_users_can_only_read_themselves(client):
    _, asha_h = signup(client, "Asha", "asha@trash2trade.com")
    kabir, _ = signup(client, "Kabir", "kabir@trash2trade.com")
    assert client.get(f"/api/users/{kabir['id']}", headers=asha_h).status_code == 403


def test_offset_dates_are_stored_as_utc_and_ranked(client):
    _, owner_h = signup(client, "Asha", "asha@trash2trade.com")
    _, collector_h = signup(client, "Ravi", "ravi@trash2trade.com", role="collector", subtype=None)

    for when in ("2026-03-16T04:30:00+05:30", "2026-03-17T10:00:00Z"):
        res = client.post(
            "/api/pickups",
            headers=owner_h,
            json={"waste_type": "paper", "quantity": 2, "address": "MG Road", "scheduled_date": when},
        )
        assert res.status_code == 201, res.text

    mine = client.get("/api/pickups/mine", headers=owner_h).json()
    assert sorted(r["scheduled_date"] for r in mine) == ["2026-03-15T23:00:00", "2026-03-17T10:00:00"]

    board = client.get("/api/pickups/browse?sort=urgency", headers=collector_h)
    assert board.status_code == 200, board.text
    assert [r["urgency"] for r in board.json()["requests"]] == ["high", "medium"]
