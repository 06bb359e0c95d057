import config
from conftest import add_to_cart


def _review(client, headers, product_id, **body):
    payload = {"rating": 4, "title": "Nice", "comment": "Would buy again"}
    payload.update(body)
    return client.post(f"/products/{product_id}/reviews", json=payload, headers=headers)


def test_create_and_list_reviews(client, auth_headers, make_product):
    product = make_product()
    resp = _review(client, auth_headers, product["id"], rating=5)
    assert resp.status_code == 201
    review = resp.json()["data"]
    assert review["rating"] == 5
    assert review["status"] == "approved"
    assert review["verified"] is False
    assert review["user_name"] == "Alice"

    listed = client.get(f"/products/{product['id']}/reviews").json()["data"]
    assert [r["id"] for r in listed] == [review["id"]]


def test_second_review_is_rejected(client, auth_headers, make_product):
    product = make_product()
    _review(client, auth_headers, product["id"])
    resp = _review(client, auth_headers, product["id"], rating=1)
    assert resp.status_code == 400
    assert resp.json()["error"] == "already reviewed this product"
    assert len(client.get(f"/products/{product['id']}/reviews").json()["data"]) == 1


def test_rating_must_be_between_one_and_five(client, auth_headers, make_product):
    product = make_product()
    assert _review(client, auth_headers, product["id"], rating=0).status_code == 400
    assert _review(client, auth_headers, product["id"], rating=6).status_code == 400


def test_review_unknown_product(client, auth_headers):
    assert _review(client, auth_headers, 404).status_code == 404
    assert client.get("/products/404/reviews").status_code == 404


def test_review_requires_auth(client, make_product):
    product = make_product()
    assert client.post(f"/products/{product['id']}/reviews", json={"rating": 3}).status_code == 401


def test_review_after_purchase_is_verified(client, auth_headers, make_product):
    product = make_product()
    add_to_cart(client, auth_headers, product["id"])
    client.post("/orders", headers=auth_headers)
    review = _review(client, auth_headers, product["id"]).json()["data"]
    assert review["verified"] is True


def test_pending_reviews_are_not_listed(client, auth_headers, make_product, monkeypatch):
    monkeypatch.setattr(config, "REVIEW_DEFAULT_STATUS", "pending")
    product = make_product()
    assert _review(client, auth_headers, product["id"]).status_code == 201
    assert client.get(f"/products/{product['id']}/reviews").json()["data"] == []


def test_product_detail_aggregates_ratings(client, auth_headers, other_headers, make_product):
    product = make_product()
    _review(client, auth_headers, product["id"], rating=5)
    _review(client, other_headers, product["id"], rating=2)
    data = client.get(f"/products/{product['id']}").json()["data"]
    assert data["review_count"] == 2
    assert data["avg_rating"] == 3.5
    assert len(data["reviews"]) == 2


def test_delete_own_review(client, auth_headers, make_product):
    product = make_product()
    review = _review(client, auth_headers, product["id"]).json()["data"]
    resp = client.delete(f"/reviews/{review['id']}", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "review deleted"}
    assert client.get(f"/products/{product['id']}/reviews").json()["data"] == []


def test_cannot_delete_someone_elses_review(client, auth_headers, other_headers, make_product):
    product = make_product()
    review = _review(client, auth_headers, product["id"]).json()["data"]
    resp = client.delete(f"/reviews/{review['id']}", headers=other_headers)
    assert resp.status_code == 404
    assert len(client.get(f"/products/{product['id']}/reviews").json()["data"]) == 1
