import pytest

from conftest import add_to_cart


def _subtotal(cart):
    return round(sum(i["price"] * i["quantity"] for i in cart["items"]), 2)


def test_get_cart_creates_empty_cart(client, auth_headers):
    resp = client.get("/cart", headers=auth_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["items"] == []
    assert data["subtotal"] == 0

    again = client.get("/cart", headers=auth_headers).json()["data"]
    assert again["id"] == data["id"]


def test_cart_requires_auth(client):
    assert client.get("/cart").status_code == 401
    assert client.post("/cart/items", json={"product_id": 1}).status_code == 401


def test_add_item(client, auth_headers, make_product):
    product = make_product(price="19.99")
    resp = add_to_cart(client, auth_headers, product["id"], 2)
    assert resp.status_code == 200
    cart = resp.json()["data"]
    assert len(cart["items"]) == 1
    item = cart["items"][0]
    assert item["quantity"] == 2
    assert item["price"] == 19.99
    assert item["product"]["name"] == product["name"]
    assert cart["subtotal"] == pytest.approx(39.98)


def test_add_same_product_twice_merges(client, auth_headers, make_product):
    product = make_product(stock=10)
    add_to_cart(client, auth_headers, product["id"], 2)
    cart = add_to_cart(client, auth_headers, product["id"], 2).json()["data"]
    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 4
    assert cart["subtotal"] == pytest.approx(40.0)


def test_add_item_default_quantity(client, auth_headers, make_product):
    product = make_product()
    resp = client.post("/cart/items", json={"product_id": product["id"]}, headers=auth_headers)
    assert resp.json()["data"]["items"][0]["quantity"] == 1


def test_add_item_rejects_zero_quantity(client, auth_headers, make_product):
    product = make_product()
    resp = add_to_cart(client, auth_headers, product["id"], 0)
    assert resp.status_code == 400


@pytest.mark.parametrize("quantity", [10_001, 10**20])
def test_add_item_rejects_oversized_quantity(client, auth_headers, make_product, quantity):
    product = make_product(stock=None)
    resp = add_to_cart(client, auth_headers, product["id"], quantity)
    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert client.get("/cart", headers=auth_headers).json()["data"]["items"] == []


def test_add_item_rejects_out_of_range_product_id(client, auth_headers):
    resp = add_to_cart(client, auth_headers, 10**20)
    assert resp.status_code == 400


def test_add_missing_product(client, auth_headers):
    resp = add_to_cart(client, auth_headers, 999)
    assert resp.status_code == 404
    assert resp.json()["error"] == "product not found"


def test_add_inactive_product(client, auth_headers, make_product):
    product = make_product(status="archived")
    resp = add_to_cart(client, auth_headers, product["id"])
    assert resp.status_code == 400
    assert resp.json()["error"] == "product not active"


def test_add_more_than_stock(client, auth_headers, make_product):
    product = make_product(stock=3)
    resp = add_to_cart(client, auth_headers, product["id"], 4)
    assert resp.status_code == 400
    assert resp.json()["error"] == "insufficient stock"


def test_add_checks_combined_quantity(client, auth_headers, make_product):
    product = make_product(stock=3)
    assert add_to_cart(client, auth_headers, product["id"], 2).status_code == 200
    resp = add_to_cart(client, auth_headers, product["id"], 2)
    assert resp.status_code == 400
    cart = client.get("/cart", headers=auth_headers).json()["data"]
    assert cart["items"][0]["quantity"] == 2


def test_untracked_stock_has_no_limit(client, auth_headers, make_product):
    product = make_product(stock=None)
    resp = add_to_cart(client, auth_headers, product["id"], 500)
    assert resp.status_code == 200


def test_update_item_quantity(client, auth_headers, make_product):
    product = make_product(price="2.50")
    item = add_to_cart(client, auth_headers, product["id"], 1).json()["data"]["items"][0]
    resp = client.put(f"/cart/items/{item['id']}", json={"quantity": 3}, headers=auth_headers)
    assert resp.status_code == 200
    cart = resp.json()["data"]
    assert cart["items"][0]["quantity"] == 3
    assert cart["subtotal"] == 7.5


def test_update_item_rechecks_stock(client, auth_headers, make_product):
    product = make_product(stock=2)
    item = add_to_cart(client, auth_headers, product["id"], 1).json()["data"]["items"][0]
    resp = client.put(f"/cart/items/{item['id']}", json={"quantity": 5}, headers=auth_headers)
    assert resp.status_code == 400


def test_update_item_rejects_oversized_quantity(client, auth_headers, make_product):
    product = make_product(stock=None)
    item = add_to_cart(client, auth_headers, product["id"], 1).json()["data"]["items"][0]
    resp = client.put(f"/cart/items/{item['id']}", json={"quantity": 10**20}, headers=auth_headers)
    assert resp.status_code == 400
    assert client.get("/cart", headers=auth_headers).json()["data"]["items"][0]["quantity"] == 1


def test_update_item_with_out_of_range_id(client, auth_headers):
    resp = client.put("/cart/items/99999999999999999999999", json={"quantity": 1}, headers=auth_headers)
    assert resp.status_code == 400


def test_update_item_of_another_user(client, auth_headers, other_headers, make_product):
    product = make_product()
    item = add_to_cart(client, auth_headers, product["id"]).json()["data"]["items"][0]
    resp = client.put(f"/cart/items/{item['id']}", json={"quantity": 2}, headers=other_headers)
    assert resp.status_code == 404
    assert resp.json()["error"] == "cart item not found"


def test_remove_item(client, auth_headers, make_product):
    first = make_product(price="1.00")
    second = make_product(price="4.00")
    add_to_cart(client, auth_headers, first["id"], 1)
    cart = add_to_cart(client, auth_headers, second["id"], 2).json()["data"]
    item_id = next(i["id"] for i in cart["items"] if i["product_id"] == first["id"])

    resp = client.delete(f"/cart/items/{item_id}", headers=auth_headers)
    cart = resp.json()["data"]
    assert [i["product_id"] for i in cart["items"]] == [second["id"]]
    assert cart["subtotal"] == 8.0


def test_remove_item_of_another_user(client, auth_headers, other_headers, make_product):
    product = make_product()
    item = add_to_cart(client, auth_headers, product["id"]).json()["data"]["items"][0]
    resp = client.delete(f"/cart/items/{item['id']}", headers=other_headers)
    assert resp.status_code == 404
    assert len(client.get("/cart", headers=auth_headers).json()["data"]["items"]) == 1


def test_clear_cart_keeps_cart_row(client, auth_headers, make_product):
    product = make_product()
    cart_id = add_to_cart(client, auth_headers, product["id"], 3).json()["data"]["id"]
    resp = client.delete("/cart", headers=auth_headers)
    cart = resp.json()["data"]
    assert cart["id"] == cart_id
    assert cart["items"] == []
    assert cart["subtotal"] == 0


def test_subtotal_tracks_every_mutation(client, auth_headers, make_product):
    a = make_product(price="3.33")
    b = make_product(price="7.10")
    cart = add_to_cart(client, auth_headers, a["id"], 3).json()["data"]
    assert cart["subtotal"] == pytest.approx(_subtotal(cart))
    cart = add_to_cart(client, auth_headers, b["id"], 2).json()["data"]
    assert cart["subtotal"] == pytest.approx(_subtotal(cart))
    item_a = next(i for i in cart["items"] if i["product_id"] == a["id"])
    cart = client.put(f"/cart/items/{item_a['id']}", json={"quantity": 1}, headers=auth_headers).json()["data"]
    assert cart["subtotal"] == pytest.approx(_subtotal(cart))
    cart = client.delete(f"/cart/items/{item_a['id']}", headers=auth_headers).json()["data"]
    assert cart["subtotal"] == pytest.approx(_subtotal(cart))
    assert cart["subtotal"] == pytest.approx(14.2)


def test_carts_are_per_user(client, auth_headers, other_headers, make_product):
    product = make_product()
    add_to_cart(client, auth_headers, product["id"])
    other = client.get("/cart", headers=other_headers).json()["data"]
    assert other["items"] == []
