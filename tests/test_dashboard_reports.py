from datetime import date, datetime, timezone

import pytest

from costbook.services.dashboard_service import get_trends


def _register(client, *, email: str, full_name: str = "Owner"):
    return client.post(
        "/auth/register",
        json={"email": email, "full_name": full_name, "password": "password123"},
    )


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _seed_business(client) -> tuple[str, str]:
    token = _register(client, email="reports@example.com").json()["access_token"]
    headers = _auth_headers(token)

    product_res = client.post(
        "/products",
        json={"name": "Leather wallet", "unit": "pcs", "scrap_value": 5, "opening_stock": 10, "selling_price": 100},
        headers=headers,
    )
    assert product_res.status_code == 200, product_res.text
    product_id = product_res.json()["id"]

    client.post(
        f"/products/{product_id}/materials",
        json={"material_name": "Hide", "quantity": 2, "unit": "sqft", "unit_cost": 20},
        headers=headers,
    )
    client.post(f"/products/{product_id}/job-work", json={"description": "Stitching", "cost": 10}, headers=headers)

    sale_res = client.post(
        "/stock/sales",
        json={"product_id": product_id, "quantity": 4, "unit_price": 100},
        headers=headers,
    )
    assert sale_res.status_code == 200, sale_res.text

    overhead_res = client.post(
        "/overheads",
        json={
            "category": "Variable",
            "subcategory": "Electricity",
            "description": "Power bill",
            "amount": 120,
            "expense_date": datetime.now(timezone.utc).date().isoformat(),
        },
        headers=headers,
    )
    assert overhead_res.status_code == 200, overhead_res.text
    return token, product_id


def test_dashboard_kpis(test_context):
    client, _ = test_context
    token, product_id = _seed_business(client)

    res = client.get("/dashboard/kpis", headers=_auth_headers(token))
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["total_products"] == 1
    assert body["total_product_cost"] == pytest.approx(50)
    assert body["total_net_cost"] == pytest.approx(45)
    assert body["total_overheads"] == pytest.approx(120)
    assert body["total_sales"] == pytest.approx(400)
    assert body["sales_count"] == 1
    assert body["quantity_sold"] == pytest.approx(4)
    assert body["cost_of_goods_sold"] == pytest.approx(180)
    assert body["net_profit"] == pytest.approx(100)
    assert body["profit_margin_percent"] == pytest.approx(25)
    assert {item["type"] for item in body["recent_activities"]} == {"product", "overhead", "sale"}
    assert body["low_stock_alerts"] == [
        {"product_id": product_id, "name": "Leather wallet", "current_stock": 6.0}
    ]


def test_dashboard_kpis_for_new_user(test_context):
    client, _ = test_context
    token = _register(client, email="empty@example.com").json()["access_token"]

    res = client.get("/dashboard/kpis", headers=_auth_headers(token))
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["total_products"] == 0
    assert body["total_sales"] == pytest.approx(0)
    assert body["profit_margin_percent"] == pytest.approx(0)
    assert body["recent_activities"] == []


def test_dashboard_trends_and_quick_stats(test_context):
    client, _ = test_context
    token, _ = _seed_business(client)
    headers = _auth_headers(token)
    this_month = datetime.now(timezone.utc).strftime("%Y-%m")

    trends_res = client.get("/dashboard/trends", params={"months": 3}, headers=headers)
    assert trends_res.status_code == 200, trends_res.text
    trends = trends_res.json()
    assert trends["months"] == 3
    assert len(trends["items"]) == 3
    latest = trends["items"][-1]
    assert latest["month"] == this_month
    assert latest["sales_total"] == pytest.approx(400)
    assert latest["sales_count"] == 1
    assert latest["overheads_total"] == pytest.approx(120)
    assert latest["products_created"] == 1

    default_res = client.get("/dashboard/trends", headers=headers)
    assert len(default_res.json()["items"]) == 6

    bad_res = client.get("/dashboard/trends", params={"months": 0}, headers=headers)
    assert bad_res.status_code == 422

    stats_res = client.get("/dashboard/quick-stats", headers=headers)
    assert stats_res.status_code == 200, stats_res.text
    stats = stats_res.json()
    assert stats["today_sales_total"] == pytest.approx(400)
    assert stats["today_sales_count"] == 1
    assert stats["month_overheads_total"] == pytest.approx(120)
    assert stats["low_stock_count"] == 1
    assert stats["products_created_last_7_days"] == 1


def test_trend_buckets_cross_year_boundary(test_context):
    client, session_local = test_context
    token = _register(client, email="trends@example.com").json()["access_token"]
    user_id = client.get("/auth/me", headers=_auth_headers(token)).json()["id"]

    db = session_local()
    try:
        trends = get_trends(db, user_id, 4, today=date(2026, 2, 15))
    finally:
        db.close()

    assert [item["month"] for item in trends["items"]] == ["2025-11", "2025-12", "2026-01", "2026-02"]
    assert all(item["sales_total"] == 0 for item in trends["items"])


def test_product_cost_report(test_context):
    client, _ = test_context
    token, product_id = _seed_business(client)

    res = client.get(f"/reports/product-cost/{product_id}", headers=_auth_headers(token))
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["product"]["name"] == "Leather wallet"
    assert body["product"]["current_stock"] == pytest.approx(6)
    assert [line["material_name"] for line in body["materials"]] == ["Hide"]
    assert body["materials"][0]["total_cost"] == pytest.approx(40)
    assert [line["description"] for line in body["job_work"]] == ["Stitching"]
    assert body["additional_costs"] == []
    assert body["breakdown"]["net_cost"] == pytest.approx(45)
    assert body["breakdown"]["profit"] == pytest.approx(55)
    assert body["breakdown"]["margin_percent"] == pytest.approx(55)

    missing = client.get("/reports/product-cost/not-a-product", headers=_auth_headers(token))
    assert missing.status_code == 404


def test_overheads_report(test_context):
    client, _ = test_context
    token, _ = _seed_business(client)

    res = client.get("/reports/overheads", params={"category": "Variable"}, headers=_auth_headers(token))
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["category"] == "Variable"
    assert len(body["items"]) == 1
    assert body["summary"]["total_amount"] == pytest.approx(120)
    assert body["summary"]["by_category"][0]["share_percent"] == pytest.approx(100)

    fixed = client.get("/reports/overheads", params={"category": "Fixed"}, headers=_auth_headers(token)).json()
    assert fixed["items"] == []
    assert fixed["summary"]["total_amount"] == pytest.approx(0)


def test_profitability_report(test_context):
    client, _ = test_context
    token, product_id = _seed_business(client)

    res = client.get("/reports/profitability", headers=_auth_headers(token))
    assert res.status_code == 200, res.text
    body = res.json()
    assert len(body["items"]) == 1
    item = body["items"][0]
    assert item["product_id"] == product_id
    assert item["quantity_sold"] == pytest.approx(4)
    assert item["sales_total"] == pytest.approx(400)
    assert item["average_unit_price"] == pytest.approx(100)
    assert item["unit_net_cost"] == pytest.approx(45)
    assert item["cost_of_goods_sold"] == pytest.approx(180)
    assert item["profit"] == pytest.approx(220)
    assert item["margin_percent"] == pytest.approx(55)
    assert body["total_profit"] == pytest.approx(220)
    assert body["overall_margin_percent"] == pytest.approx(55)

    past = client.get(
        "/reports/profitability",
        params={"start_date": "2020-01-01", "end_date": "2020-12-31"},
        headers=_auth_headers(token),
    ).json()
    assert past["items"] == []
    assert past["overall_margin_percent"] == pytest.approx(0)

    inverted = client.get(
        "/reports/profitability",
        params={"start_date": "2020-12-31", "end_date": "2020-01-01"},
        headers=_auth_headers(token),
    )
    assert inverted.status_code == 400
