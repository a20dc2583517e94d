import uuid

from .conftest import auth_header

PRODUCT_FORM = {
    "name": "Laptop",
    "price": "99900",
    "description": "Fast and light",
    "category": "Laptops",
    "seller": "Acme",
    "stock": "5",
}


def _create(client, token, **overrides):
    data = dict(PRODUCT_FORM, **overrides)
    files = [("images", ("a.jpg", b"jpeg-bytes", "image/jpeg"))]
    return client.post("/api/v1/product/admin/product/new", data=data, files=files, headers=auth_header(token))


def test_products_listing_is_public(client, admin, make_product):
    user, _ = admin
    for n in range(13):
        make_product(user, name=f"Phone {n}")

    response = client.get("/api/v1/product/products", params={"keyword": "PHONE", "page": 2})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["productCount"] == 13
    assert body["resPerPage"] == 12
    assert body["filteredProductsCount"] == 1


def test_admin_creates_product_with_images(client, admin, image_store):
    user, token = admin

    response = _create(client, token)

    assert response.status_code == 200, response.text
    product = response.json()["product"]
    assert product["price"] == 99900
    assert product["numOfReviews"] == 0
    assert product["userId"] == str(user.id)
    assert product["images"][0]["publicId"] == image_store.uploaded[0]


def test_regular_user_cannot_create_product(client, customer):
    _, token = customer
    response = _create(client, token)
    assert response.status_code == 403


def test_create_product_validates_form(client, admin):
    _, token = admin

    response = _create(client, token, name="", price="12.5", stock="-1")

    assert response.status_code == 422
    errors = response.json()["errors"]
    assert set(errors) == {"name", "price", "stock"}


def test_single_product_and_missing_product(client, admin, make_product):
    user, _ = admin
    product = make_product(user)

    response = client.get(f"/api/v1/product/product/{product.id}")
    assert response.status_code == 200
    assert response.json()["product"]["name"] == "Apple"

    response = client.get(f"/api/v1/product/product/{uuid.uuid4()}")
    assert response.status_code == 404


def test_admin_updates_and_deletes_product(client, admin, image_store):
    _, token = admin
    product_id = _create(client, token).json()["product"]["id"]

    response = client.put(
        f"/api/v1/product/admin/product/{product_id}",
        data=dict(PRODUCT_FORM, name="Laptop Pro", stock="9"),
        headers=auth_header(token),
    )
    assert response.status_code == 200, response.text
    assert response.json()["product"]["name"] == "Laptop Pro"
    assert response.json()["product"]["stock"] == 9

    response = client.get("/api/v1/product/admin/products", headers=auth_header(token))
    assert [p["id"] for p in response.json()["products"]] == [product_id]

    response = client.delete(f"/api/v1/product/admin/product/{product_id}", headers=auth_header(token))
    assert response.json() == {"success": True, "message": "product deleted successfully"}
    assert image_store.destroyed == image_store.uploaded


def test_review_flow(client, customer, admin, make_product):
    user, token = customer
    product = make_product(admin[0])

    response = client.put(
        "/api/v1/product/review",
        data={"rating": "4", "comment": "Nice", "productId": str(product.id)},
        headers=auth_header(token),
    )
    assert response.status_code == 200, response.text
    review = response.json()["review"]
    assert review["rating"] == 4
    assert review["userId"] == str(user.id)

    response = client.get("/api/v1/product/reviews", params={"id": str(product.id)}, headers=auth_header(token))
    assert [r["id"] for r in response.json()["reviews"]] == [review["id"]]

    single = client.get(f"/api/v1/product/product/{product.id}").json()["product"]
    assert (single["numOfReviews"], single["ratings"]) == (1, 4)

    response = client.delete(
        "/api/v1/product/reviews",
        params={"productId": str(product.id), "id": review["id"]},
        headers=auth_header(token),
    )
    assert response.status_code == 200
    single = client.get(f"/api/v1/product/product/{product.id}").json()["product"]
    assert (single["numOfReviews"], single["ratings"]) == (0, 0)


def test_review_validation(client, customer):
    _, token = customer

    response = client.put(
        "/api/v1/product/review",
        data={"rating": "9", "comment": "", "productId": "nope"},
        headers=auth_header(token),
    )

    assert response.status_code == 422
    assert set(response.json()["errors"]) == {"rating", "comment", "productId"}


def test_reviews_require_authentication(client, make_product, admin):
    product = make_product(admin[0])
    response = client.get("/api/v1/product/reviews", params={"id": str(product.id)})
    assert response.status_code == 401
