from decimal import Decimal

import pytest
from sqlalchemy import select

from costbook.models.product import Product
from costbook.services.cost_line_service import material_total
from costbook.services.cost_rollup import breakdowns_for_products, compute_breakdown, get_cost_breakdown


def _breakdown(materials=(), job_work=(), additional=(), scrap="0", selling_price=None):
    return compute_breakdown(
        material_totals=[Decimal(v) for v in materials],
        job_work_costs=[Decimal(v) for v in job_work],
        additional_costs=[Decimal(v) for v in additional],
        scrap_value=Decimal(scrap),
        selling_price=Decimal(selling_price) if selling_price is not None else None,
    )


def test_breakdown_sums_every_line_kind_and_subtracts_scrap():
    result = _breakdown(
        materials=["100.00", "25.50"],
        job_work=["30.00"],
        additional=["12.25", "2.25"],
        scrap="10.00",
        selling_price="250.00",
    )

    assert result.materials_total == Decimal("125.50")
    assert result.job_work_total == Decimal("30.00")
    assert result.additional_costs_total == Decimal("14.50")
    assert result.total_product_cost == Decimal("170.00")
    assert result.net_cost == Decimal("160.00")
    assert result.profit == Decimal("90.00")
    assert result.margin_percent == Decimal("36.00")


def test_breakdown_without_lines_is_zero():
    result = _breakdown()

    assert result.total_product_cost == Decimal("0.00")
    assert result.net_cost == Decimal("0.00")
    assert result.profit is None
    assert result.margin_percent is None


def test_net_cost_goes_negative_when_scrap_exceeds_cost():
    result = _breakdown(materials=["20.00"], scrap="35.00", selling_price="10.00")

    assert result.net_cost == Decimal("-15.00")
    assert result.profit == Decimal("25.00")
    assert result.margin_percent == Decimal("250.00")


@pytest.mark.parametrize(
    ("selling_price", "expected_margin"),
    [
        ("0", Decimal("0.00")),
        ("100.00", Decimal("50.00")),
        ("50.00", Decimal("0.00")),
        ("40.00", Decimal("-25.00")),
    ],
)
def test_margin_against_selling_price(selling_price, expected_margin):
    result = _breakdown(materials=["50.00"], selling_price=selling_price)

    assert result.net_cost == Decimal("50.00")
    assert result.margin_percent == expected_margin


def test_margin_is_rounded_to_cents():
    result = _breakdown(materials=["10.00"], selling_price="30.00")

    assert result.margin_percent == Decimal("66.67")


def test_material_total_rounds_half_up():
    assert material_total(Decimal("2.5"), Decimal("40.00")) == Decimal("100.00")
    assert material_total(Decimal("0.333"), Decimal("0.15")) == Decimal("0.05")
    assert material_total(Decimal("3"), Decimal("0")) == Decimal("0.00")


def test_quantity_change_moves_total_by_delta_times_unit_cost():
    unit_cost = Decimal("12.40")
    before = _breakdown(materials=[str(material_total(Decimal("2"), unit_cost))], job_work=["5.00"])
    after = _breakdown(materials=[str(material_total(Decimal("5"), unit_cost))], job_work=["5.00"])

    assert after.total_product_cost - before.total_product_cost == Decimal("3") * unit_cost


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _product_with_lines(client, headers, *, name: str, job_work, materials=()) -> str:
    res = client.post("/products", json={"name": name, "unit": "pcs", "selling_price": 10}, headers=headers)
    assert res.status_code == 200, res.text
    product_id = res.json()["id"]
    for cost in job_work:
        line = client.post(
            f"/products/{product_id}/job-work", json={"description": "Sanding", "cost": cost}, headers=headers
        )
        assert line.status_code == 200, line.text
    for quantity, unit_cost in materials:
        line = client.post(
            f"/products/{product_id}/materials",
            json={"material_name": "Varnish", "quantity": quantity, "unit": "l", "unit_cost": unit_cost},
            headers=headers,
        )
        assert line.status_code == 200, line.text
    return product_id


def test_batch_breakdowns_match_single_product_breakdowns(test_context):
    client, session_local = test_context
    token = client.post(
        "/auth/register",
        json={"email": "rollup@example.com", "full_name": "Owner", "password": "password123"},
    ).json()["access_token"]
    headers = _auth_headers(token)

    cents = _product_with_lines(
        client,
        headers,
        name="Spice rack",
        job_work=["0.10", "0.20", "0.70", "0.10", "0.20", "0.70", "0.01"],
        materials=[("0.333", "0.03"), ("3", "0.10")],
    )
    bare = _product_with_lines(client, headers, name="Plain stool", job_work=[])

    db = session_local()
    try:
        products = db.execute(select(Product).where(Product.id.in_([cents, bare]))).scalars().all()
        batch = breakdowns_for_products(db, products)
        for product in products:
            assert batch[product.id] == get_cost_breakdown(db, product)

        assert batch[cents].job_work_total == Decimal("2.01")
        assert batch[cents].materials_total == Decimal("0.31")
        assert batch[bare].total_product_cost == Decimal("0.00")
        assert breakdowns_for_products(db, []) == {}
    finally:
        db.close()
