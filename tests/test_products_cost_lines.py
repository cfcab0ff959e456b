import pytest
from sqlalchemy import select

from costbook.models.cost_line import ProductMaterial
from costbook.models.product import Product


def _register(client, *, email: str, full_name: str = "Owner"):
    return client.post(
        "/auth/register",
        json={"email": email, "full_name": full_name, "password": "password123"},
    )


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _owner_token(client, email: str = "maker@example.com") -> str:
    res = _register(client, email=email)
    assert res.status_code == 200, res.text
    return res.json()["access_token"]


def _create_product(client, token: str, **overrides) -> dict:
    payload = {
        "name": "Teak side table",
        "unit": "pcs",
        "scrap_value": 10.0,
        "opening_stock": 5,
        "selling_price": 250.0,
        "target_margin_percent": 35,
    }
    payload.update(overrides)
    res = client.post("/products", json=payload, headers=_auth_headers(token))
    assert res.status_code == 200, res.text
    return res.json()


def test_protected_routes_require_token(test_context):
    client, _ = test_context

    res = client.get("/products")
    assert res.status_code == 401
    assert res.json()["error"]["code"] == "unauthorized"


def test_create_product_sets_current_stock_from_opening_stock(test_context):
    client, _ = test_context
    token = _owner_token(client)

    product = _create_product(client, token)

    assert product["opening_stock"] == pytest.approx(5)
    assert product["current_stock"] == pytest.approx(5)
    assert product["is_active"] is True
    assert product["materials"] == []
    assert product["cost_breakdown"]["total_product_cost"] == pytest.approx(0)
    assert product["cost_breakdown"]["net_cost"] == pytest.approx(-10)
    assert product["cost_breakdown"]["profit"] == pytest.approx(260)

    movements_res = client.get(f"/stock/movements/{product['id']}", headers=_auth_headers(token))
    assert movements_res.status_code == 200, movements_res.text
    assert movements_res.json()["items"] == []


def test_create_product_validation(test_context):
    client, _ = test_context
    token = _owner_token(client)
    headers = _auth_headers(token)

    short_name = client.post("/products", json={"name": "A", "unit": "pcs"}, headers=headers)
    assert short_name.status_code == 422
    assert short_name.json()["error"]["code"] == "validation_error"

    negative_scrap = client.post(
        "/products", json={"name": "Chair", "unit": "pcs", "scrap_value": -1}, headers=headers
    )
    assert negative_scrap.status_code == 422

    margin_over_100 = client.post(
        "/products", json={"name": "Chair", "unit": "pcs", "target_margin_percent": 120}, headers=headers
    )
    assert margin_over_100.status_code == 422
    fields = {item["field"] for item in margin_over_100.json()["error"]["details"]}
    assert "target_margin_percent" in fields


def test_cost_lines_roll_up_into_breakdown(test_context):
    client, _ = test_context
    token = _owner_token(client)
    headers = _auth_headers(token)
    product = _create_product(client, token)
    product_id = product["id"]

    material_res = client.post(
        f"/products/{product_id}/materials",
        json={"material_name": "Teak plank", "quantity": 2.5, "unit": "m", "unit_cost": 40.0},
        headers=headers,
    )
    assert material_res.status_code == 200, material_res.text
    assert material_res.json()["total_cost"] == pytest.approx(100.0)

    job_res = client.post(
        f"/products/{product_id}/job-work",
        json={"description": "Polishing", "cost": 30.0},
        headers=headers,
    )
    assert job_res.status_code == 200, job_res.text

    additional_res = client.post(
        f"/products/{product_id}/additional-costs",
        json={"cost_type": "Transport", "description": "Delivery", "cost": 20.0},
        headers=headers,
    )
    assert additional_res.status_code == 200, additional_res.text

    breakdown_res = client.get(f"/products/{product_id}/cost-breakdown", headers=headers)
    assert breakdown_res.status_code == 200, breakdown_res.text
    breakdown = breakdown_res.json()
    assert breakdown["materials_total"] == pytest.approx(100.0)
    assert breakdown["job_work_total"] == pytest.approx(30.0)
    assert breakdown["additional_costs_total"] == pytest.approx(20.0)
    assert breakdown["total_product_cost"] == pytest.approx(150.0)
    assert breakdown["net_cost"] == pytest.approx(140.0)
    assert breakdown["profit"] == pytest.approx(110.0)
    assert breakdown["margin_percent"] == pytest.approx(44.0)

    second_res = client.get(f"/products/{product_id}/cost-breakdown", headers=headers)
    assert second_res.json() == breakdown

    detail_res = client.get(f"/products/{product_id}", headers=headers)
    assert detail_res.status_code == 200, detail_res.text
    detail = detail_res.json()
    assert len(detail["materials"]) == 1
    assert len(detail["job_work"]) == 1
    assert len(detail["additional_costs"]) == 1
    assert detail["cost_breakdown"] == breakdown


def test_out_of_range_amounts_are_validation_errors(test_context):
    client, session_local = test_context
    token = _owner_token(client)
    headers = _auth_headers(token)
    product_id = _create_product(client, token)["id"]

    huge_cost = client.post(
        f"/products/{product_id}/materials",
        json={"material_name": "Teak plank", "quantity": 1, "unit": "m", "unit_cost": "1e30"},
        headers=headers,
    )
    assert huge_cost.status_code == 422, huge_cost.text
    assert huge_cost.json()["error"]["code"] == "validation_error"
    assert huge_cost.json()["error"]["details"][0]["field"] == "unit_cost"

    fractional_cents = client.post(
        f"/products/{product_id}/materials",
        json={"material_name": "Teak plank", "quantity": 1, "unit": "m", "unit_cost": "12.345"},
        headers=headers,
    )
    assert fractional_cents.status_code == 422

    huge_price = client.post(
        "/products", json={"name": "Chair", "unit": "pcs", "selling_price": "1e30"}, headers=headers
    )
    assert huge_price.status_code == 422

    db = session_local()
    try:
        assert db.execute(select(ProductMaterial)).scalars().all() == []
    finally:
        db.close()


def test_material_update_recomputes_total_and_breakdown(test_context):
    client, session_local = test_context
    token = _owner_token(client)
    headers = _auth_headers(token)
    product_id = _create_product(client, token, scrap_value=0, selling_price=None)["id"]

    line = client.post(
        f"/products/{product_id}/materials",
        json={"material_name": "Brass hinge", "quantity": 2, "unit": "pcs", "unit_cost": 12.4},
        headers=headers,
    ).json()
    assert line["total_cost"] == pytest.approx(24.8)

    update_res = client.patch(
        f"/products/{product_id}/materials/{line['id']}",
        json={"quantity": 5},
        headers=headers,
    )
    assert update_res.status_code == 200, update_res.text
    assert update_res.json()["total_cost"] == pytest.approx(62.0)

    price_res = client.patch(
        f"/products/{product_id}/materials/{line['id']}",
        json={"unit_cost": 10},
        headers=headers,
    )
    assert price_res.json()["total_cost"] == pytest.approx(50.0)

    db = session_local()
    try:
        stored = db.execute(select(ProductMaterial).where(ProductMaterial.id == line["id"])).scalar_one()
        assert float(stored.total_cost) == pytest.approx(50.0)
    finally:
        db.close()

    breakdown = client.get(f"/products/{product_id}/cost-breakdown", headers=headers).json()
    assert breakdown["materials_total"] == pytest.approx(50.0)
    assert breakdown["profit"] is None
    assert breakdown["margin_percent"] is None

    negative_res = client.patch(
        f"/products/{product_id}/materials/{line['id']}",
        json={"unit_cost": -1},
        headers=headers,
    )
    assert negative_res.status_code == 422


def test_delete_cost_lines(test_context):
    client, _ = test_context
    token = _owner_token(client)
    headers = _auth_headers(token)
    product_id = _create_product(client, token)["id"]

    job = client.post(
        f"/products/{product_id}/job-work", json={"description": "Carving", "cost": 45}, headers=headers
    ).json()
    delete_res = client.delete(f"/products/{product_id}/job-work/{job['id']}", headers=headers)
    assert delete_res.status_code == 204

    again_res = client.delete(f"/products/{product_id}/job-work/{job['id']}", headers=headers)
    assert again_res.status_code == 404
    assert again_res.json()["error"]["code"] == "not_found"

    breakdown = client.get(f"/products/{product_id}/cost-breakdown", headers=headers).json()
    assert breakdown["job_work_total"] == pytest.approx(0)


def test_product_update_cannot_touch_stock(test_context):
    client, _ = test_context
    token = _owner_token(client)
    headers = _auth_headers(token)
    product_id = _create_product(client, token)["id"]

    stock_res = client.patch(f"/products/{product_id}", json={"current_stock": 999}, headers=headers)
    assert stock_res.status_code == 422

    update_res = client.patch(
        f"/products/{product_id}",
        json={"selling_price": 300, "description": "Oiled finish"},
        headers=headers,
    )
    assert update_res.status_code == 200, update_res.text
    body = update_res.json()
    assert body["selling_price"] == pytest.approx(300)
    assert body["description"] == "Oiled finish"
    assert body["current_stock"] == pytest.approx(5)


def test_delete_product_deactivates_and_hides_from_list(test_context):
    client, session_local = test_context
    token = _owner_token(client)
    headers = _auth_headers(token)
    product_id = _create_product(client, token)["id"]
    _create_product(client, token, name="Walnut stool")

    delete_res = client.delete(f"/products/{product_id}", headers=headers)
    assert delete_res.status_code == 204

    list_res = client.get("/products", headers=headers)
    assert list_res.status_code == 200, list_res.text
    names = [item["name"] for item in list_res.json()["items"]]
    assert names == ["Walnut stool"]

    all_res = client.get("/products", params={"include_inactive": True}, headers=headers)
    assert all_res.json()["pagination"]["total"] == 2

    db = session_local()
    try:
        product = db.execute(select(Product).where(Product.id == product_id)).scalar_one()
        assert product.is_active is False
    finally:
        db.close()

    detail_res = client.get(f"/products/{product_id}", headers=headers)
    assert detail_res.status_code == 200
    assert detail_res.json()["is_active"] is False


def test_list_products_search_and_pagination(test_context):
    client, _ = test_context
    token = _owner_token(client)
    headers = _auth_headers(token)
    for name in ("Oak chair", "Oak table", "Pine shelf"):
        _create_product(client, token, name=name)

    search_res = client.get("/products", params={"search": "oak"}, headers=headers)
    assert search_res.status_code == 200, search_res.text
    assert search_res.json()["pagination"]["total"] == 2

    page_res = client.get("/products", params={"limit": 2, "offset": 0}, headers=headers)
    pagination = page_res.json()["pagination"]
    assert pagination == {"total": 3, "limit": 2, "offset": 0, "count": 2, "has_next": True}


def test_products_are_scoped_to_their_owner(test_context):
    client, _ = test_context
    owner_token = _owner_token(client, "owner-a@example.com")
    other_token = _owner_token(client, "owner-b@example.com")
    product_id = _create_product(client, owner_token)["id"]

    res = client.get(f"/products/{product_id}", headers=_auth_headers(other_token))
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "not_found"

    line_res = client.post(
        f"/products/{product_id}/job-work",
        json={"description": "Sneaky", "cost": 1},
        headers=_auth_headers(other_token),
    )
    assert line_res.status_code == 404
