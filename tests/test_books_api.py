"""Integration tests for the /api/v1/books endpoints via TestClient."""

import pytest

from services.notifications import BookCreated, BookInventoryUpdated
from tests.conftest import ADMIN_AUTH, USER_AUTH

BOOKS = "/api/v1/books"


def _payload(**overrides):
    payload = {
        "title": "Kotlin in Action",
        "author": "Dmitry Jemerov",
        "genre": "Programming",
        "isbn": "9781617293290",
        "price": 40.0,
        "quantity": 10,
    }
    payload.update(overrides)
    return payload


def _create(client, **overrides):
    response = client.post(BOOKS, json=_payload(**overrides), auth=ADMIN_AUTH)
    assert response.status_code == 201, response.text
    return response.json()


class TestAccessControl:
    def test_health_is_public(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_read_requires_authentication(self, client):
        response = client.get(BOOKS)
        assert response.status_code == 401
        assert response.json()["status"] == 401

    def test_wrong_password(self, client):
        response = client.get(BOOKS, auth=("admin", "wrong"))
        assert response.status_code == 401

    def test_user_can_read(self, client):
        _create(client)
        response = client.get(BOOKS, auth=USER_AUTH)
        assert response.status_code == 200
        assert len(response.json()) == 1

    @pytest.mark.parametrize(
        "method,path,kwargs",
        [
            ("post", BOOKS, {"json": _payload()}),
            ("put", f"{BOOKS}/1", {"json": {"title": "x"}}),
            ("patch", f"{BOOKS}/1/inventory", {"params": {"quantityChange": 1}}),
            ("delete", f"{BOOKS}/1", {}),
        ],
    )
    def test_user_cannot_write(self, client, method, path, kwargs):
        response = getattr(client, method)(path, auth=USER_AUTH, **kwargs)
        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "Forbidden"
        assert body["path"] == path

    def test_bearer_token_from_login(self, client):
        login = client.post("/auth/login", json={"username": "admin", "password": "adminpass"})
        assert login.status_code == 200
        token = login.json()["access_token"]
        assert login.json()["user"]["username"] == "admin"

        response = client.post(BOOKS, json=_payload(), headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 201

    def test_login_rejects_bad_credentials(self, client):
        response = client.post("/auth/login", json={"username": "admin", "password": "nope"})
        assert response.status_code == 401

    def test_invalid_bearer_token(self, client):
        response = client.get(BOOKS, headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_me(self, client):
        response = client.get("/auth/me", auth=USER_AUTH)
        assert response.status_code == 200
        assert response.json() == {"username": "user", "roles": ["user"]}


class TestCreateEndpoint:
    def test_create_returns_book(self, client, listener):
        body = _create(client)

        assert body["id"] is not None
        assert body["isbn"] == "9781617293290"
        assert body["quantity"] == 10
        assert len(listener.of_type(BookCreated)) == 1

    def test_duplicate_isbn_conflict(self, client):
        _create(client)
        response = client.post(BOOKS, json=_payload(title="Other"), auth=ADMIN_AUTH)

        assert response.status_code == 409
        assert "9781617293290" in response.json()["message"]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"title": "   "},
            {"title": "t" * 256},
            {"author": ""},
            {"genre": "g" * 51},
            {"isbn": "123456789"},
            {"isbn": "12345678901234"},
            {"price": -1},
            {"quantity": -1},
            {"quantity": 2**31},
        ],
    )
    def test_invalid_payload_is_bad_request(self, client, overrides):
        response = client.post(BOOKS, json=_payload(**overrides), auth=ADMIN_AUTH)

        assert response.status_code == 400
        assert response.json()["error"] == "Validation Error"

    def test_missing_field_is_bad_request(self, client):
        payload = _payload()
        del payload["price"]
        response = client.post(BOOKS, json=payload, auth=ADMIN_AUTH)
        assert response.status_code == 400


class TestReadEndpoints:
    def test_get_by_id(self, client):
        created = _create(client)
        response = client.get(f"{BOOKS}/{created['id']}", auth=USER_AUTH)

        assert response.status_code == 200
        assert response.json() == created

    def test_get_missing_is_not_found(self, client):
        response = client.get(f"{BOOKS}/999", auth=USER_AUTH)

        assert response.status_code == 404
        assert response.json()["error"] == "Not Found"

    def test_get_by_isbn(self, client):
        created = _create(client)
        response = client.get(f"{BOOKS}/isbn/9781617293290", auth=USER_AUTH)

        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

    def test_get_by_unknown_isbn(self, client):
        response = client.get(f"{BOOKS}/isbn/0000000000", auth=USER_AUTH)
        assert response.status_code == 404

    def test_non_integer_id_is_bad_request(self, client):
        response = client.get(f"{BOOKS}/abc", auth=USER_AUTH)
        assert response.status_code == 400

    def test_search(self, client):
        _create(client, title="Kotlin in Action", isbn="1111111111")
        _create(client, title="Dune", author="Frank Herbert", genre="Science Fiction", isbn="2222222222")

        response = client.get(f"{BOOKS}/search", params={"title": "DUNE"}, auth=USER_AUTH)
        assert [b["isbn"] for b in response.json()] == ["2222222222"]

        response = client.get(f"{BOOKS}/search", params={"title": " ", "author": ""}, auth=USER_AUTH)
        assert len(response.json()) == 2

        response = client.get(f"{BOOKS}/search", params={"genre": "programming", "isbn": "2222222222"}, auth=USER_AUTH)
        assert response.json() == []


class TestUpdateEndpoints:
    def test_partial_update(self, client):
        created = _create(client)
        response = client.put(f"{BOOKS}/{created['id']}", json={"price": 35.5}, auth=ADMIN_AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["price"] == 35.5
        assert body["title"] == created["title"]

    def test_update_missing(self, client):
        response = client.put(f"{BOOKS}/999", json={"title": "New"}, auth=ADMIN_AUTH)
        assert response.status_code == 404

    def test_update_negative_price(self, client):
        created = _create(client)
        response = client.put(f"{BOOKS}/{created['id']}", json={"price": -3}, auth=ADMIN_AUTH)

        assert response.status_code == 400
        assert response.json()["message"] == "Price cannot be negative."

    def test_update_blank_title(self, client):
        created = _create(client)
        response = client.put(f"{BOOKS}/{created['id']}", json={"title": ""}, auth=ADMIN_AUTH)
        assert response.status_code == 400

    def test_inventory_adjustment(self, client, listener):
        created = _create(client)
        response = client.patch(f"{BOOKS}/{created['id']}/inventory", params={"quantityChange": -3}, auth=ADMIN_AUTH)

        assert response.status_code == 200
        assert response.json()["quantity"] == 7
        event = listener.of_type(BookInventoryUpdated)[-1]
        assert (event.old_quantity, event.new_quantity) == (10, 7)

    def test_inventory_below_zero(self, client):
        created = _create(client)
        response = client.patch(f"{BOOKS}/{created['id']}/inventory", params={"quantityChange": -20}, auth=ADMIN_AUTH)

        assert response.status_code == 400
        assert client.get(f"{BOOKS}/{created['id']}", auth=USER_AUTH).json()["quantity"] == 10

    def test_inventory_missing_book(self, client):
        response = client.patch(f"{BOOKS}/999/inventory", params={"quantityChange": 1}, auth=ADMIN_AUTH)
        assert response.status_code == 404

    def test_inventory_requires_quantity_change(self, client):
        created = _create(client)
        response = client.patch(f"{BOOKS}/{created['id']}/inventory", auth=ADMIN_AUTH)
        assert response.status_code == 400

    @pytest.mark.parametrize("change", [10**30, -(10**30), 2**31, -(2**31) - 1])
    def test_inventory_change_out_of_range(self, client, change):
        created = _create(client)
        response = client.patch(f"{BOOKS}/{created['id']}/inventory", params={"quantityChange": change}, auth=ADMIN_AUTH)

        assert response.status_code == 400
        assert response.json()["error"] == "Validation Error"
        assert client.get(f"{BOOKS}/{created['id']}", auth=USER_AUTH).json()["quantity"] == 10

    def test_inventory_overflowing_stock(self, client):
        created = _create(client, quantity=2**31 - 1)
        response = client.patch(f"{BOOKS}/{created['id']}/inventory", params={"quantityChange": 1}, auth=ADMIN_AUTH)

        assert response.status_code == 400
        assert client.get(f"{BOOKS}/{created['id']}", auth=USER_AUTH).json()["quantity"] == 2**31 - 1

    def test_id_out_of_range(self, client):
        assert client.get(f"{BOOKS}/{10**30}", auth=USER_AUTH).status_code == 400
        assert client.patch(f"{BOOKS}/{10**30}/inventory", params={"quantityChange": 1}, auth=ADMIN_AUTH).status_code == 400
        assert client.delete(f"{BOOKS}/{10**30}", auth=ADMIN_AUTH).status_code == 400


class TestDeleteEndpoint:
    def test_delete(self, client):
        created = _create(client)

        response = client.delete(f"{BOOKS}/{created['id']}", auth=ADMIN_AUTH)
        assert response.status_code == 204

        assert client.get(f"{BOOKS}/{created['id']}", auth=USER_AUTH).status_code == 404

    def test_delete_missing(self, client):
        response = client.delete(f"{BOOKS}/999", auth=ADMIN_AUTH)
        assert response.status_code == 404
