import pytest
from fastapi.testclient import TestClient

from marketplace.models.item import ItemType
from marketplace.services.review_ledger import ReviewLedger

PASSWORD = "StrongPass1"

BASE_ITEM = {
    "name": "Blue Train",
    "description": "1957 Blue Note pressing",
    "price": 45.5,
    "seller": "Second Spin Records",
    "image": "https://images.example.com/blue-train.jpg",
}


def _login_admin(make_user, login):
    make_user("admin", is_admin=True, password=PASSWORD)
    login("admin", PASSWORD)


@pytest.mark.parametrize(
    "item_type, type_fields",
    [
        ("vinyl", {"age": 67}),
        ("antique_furniture", {"age": 120, "material": "oak"}),
        ("gps_sports_watch", {"battery_life": 95}),
        ("running_shoes", {"size": 42.5, "material": "mesh"}),
    ],
)
def test_admin_creates_each_item_type(client: TestClient, make_user, login, item_type, type_fields):
    _login_admin(make_user, login)

    response = client.post(
        "/api/v1/items/",
        json={**BASE_ITEM, "item_type": item_type, **type_fields},
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["item_type"] == item_type
    assert data["attributes"] == type_fields
    assert data["rating"] == 0
    assert data["review_count"] == 0
    assert data["reviews"] == []


def test_create_item_missing_type_field(client: TestClient, make_user, login):
    _login_admin(make_user, login)

    response = client.post(
        "/api/v1/items/",
        json={**BASE_ITEM, "item_type": "antique_furniture", "age": 120},
    )

    assert response.status_code == 422
    assert response.json()["success"] is False


def test_create_item_unknown_type(client: TestClient, make_user, login):
    _login_admin(make_user, login)

    response = client.post("/api/v1/items/", json={**BASE_ITEM, "item_type": "lamp"})

    assert response.status_code == 422


def test_create_item_requires_admin(client: TestClient, make_user, login):
    payload = {**BASE_ITEM, "item_type": "vinyl", "age": 67}

    assert client.post("/api/v1/items/", json=payload).status_code == 401

    make_user("alice", password=PASSWORD)
    login("alice", PASSWORD)
    response = client.post("/api/v1/items/", json=payload)

    assert response.status_code == 403
    assert response.json()["message"] == "Admin privileges required"


def test_list_items_filters_and_paginates(client: TestClient, make_item):
    make_item("Kind of Blue", price=30.0)
    make_item("Blue Train", price=45.0)
    make_item("Oak Dresser", item_type=ItemType.ANTIQUE_FURNITURE, attributes={"age": 120, "material": "oak"}, price=900.0)

    response = client.get("/api/v1/items/", params={"type": "vinyl", "sort_by": "price", "order": "asc"})

    assert response.status_code == 200
    body = response.json()
    assert [item["name"] for item in body["data"]] == ["Kind of Blue", "Blue Train"]
    assert body["meta"]["total"] == 2

    response = client.get("/api/v1/items/", params={"min_price": 40, "limit": 1, "page": 2, "sort_by": "price"})
    body = response.json()
    assert body["meta"] == {"total": 2, "page": 2, "limit": 1, "total_pages": 2}
    assert [item["name"] for item in body["data"]] == ["Blue Train"]


def test_list_items_by_min_rating(client: TestClient, db_session, make_user, make_item):
    liked = make_item("Kind of Blue")
    make_item("Blue Train")
    make_user("alice")
    ReviewLedger.submit(db_session, liked.id, "alice", 9)

    response = client.get("/api/v1/items/", params={"min_rating": 5})

    assert [item["name"] for item in response.json()["data"]] == ["Kind of Blue"]


def test_list_items_rejects_unknown_sort_field(client: TestClient):
    response = client.get("/api/v1/items/", params={"sort_by": "seller"})

    assert response.status_code == 400


def test_get_item_includes_reviews(client: TestClient, db_session, make_user, make_item):
    item = make_item()
    make_user("alice")
    ReviewLedger.submit(db_session, item.id, "alice", 7, "warm sound")

    response = client.get(f"/api/v1/items/{item.id}")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["rating"] == 7.0
    assert data["reviews"][0]["comment"] == "warm sound"


def test_get_unknown_item(client: TestClient):
    response = client.get("/api/v1/items/999")

    assert response.status_code == 404
    assert response.json()["message"] == "Item not found"


def test_update_item_keeps_type(client: TestClient, make_user, login, make_item):
    item = make_item()
    _login_admin(make_user, login)

    response = client.put(
        f"/api/v1/items/{item.id}",
        json={"price": 35.0, "item_type": "running_shoes", "attributes": {"age": 61}},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["price"] == 35.0
    assert data["item_type"] == "vinyl"
    assert data["attributes"] == {"age": 61}


def test_update_item_validates_attributes(client: TestClient, make_user, login, make_item):
    item = make_item()
    _login_admin(make_user, login)

    response = client.put(f"/api/v1/items/{item.id}", json={"attributes": {"age": -1}})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid item data"


def test_update_item_without_changes(client: TestClient, make_user, login, make_item):
    item = make_item()
    _login_admin(make_user, login)

    response = client.put(f"/api/v1/items/{item.id}", json={})

    assert response.status_code == 400


def test_delete_item_cascades_to_reviewers(client: TestClient, db_session, make_user, login, make_item):
    item = make_item()
    make_user("alice")
    ReviewLedger.submit(db_session, item.id, "alice", 6)
    _login_admin(make_user, login)

    response = client.delete(f"/api/v1/items/{item.id}")

    assert response.status_code == 200
    assert response.json()["data"] == {"affected_users": ["alice"]}
    assert client.get(f"/api/v1/items/{item.id}").status_code == 404

    profile = client.get("/api/v1/users/alice").json()["data"]
    assert profile["reviews"] == []
    assert profile["review_count"] == 0


def test_delete_all_items(client: TestClient, make_user, login, make_item):
    make_item("Kind of Blue")
    make_item("Blue Train")
    _login_admin(make_user, login)

    response = client.delete("/api/v1/items/")

    assert response.json()["data"] == {"deleted_count": 2}
    assert client.get("/api/v1/items/").json()["meta"]["total"] == 0
