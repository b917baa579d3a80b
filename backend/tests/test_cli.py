"""CLI command tests."""

from sqlalchemy import text

from storeadmin.extensions import db


def test_seed_demo_is_idempotent_and_consistent(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["system", "seed-demo"])
    assert result.exit_code == 0, result.output
    assert "products: 4 created" in result.output

    result = runner.invoke(args=["system", "seed-demo"])
    assert result.exit_code == 0, result.output
    assert "products: 0 created" in result.output
    assert "stock_in_orders: 0 created" in result.output

    result = runner.invoke(args=["inventory", "reconcile"])
    assert result.exit_code == 0, result.output
    assert "PASS" in result.output


def test_reconcile_exits_nonzero_on_drift(app, db_session, make_product, receive):
    product = make_product()
    receive(product, 2)
    db.session.execute(text("UPDATE products SET stock_quantity = 0 WHERE id = :id"), {"id": product.id})
    db.session.commit()

    result = app.test_cli_runner().invoke(args=["inventory", "reconcile"])
    assert result.exit_code == 1
    assert f"FAIL product {product.id}" in result.output


def test_as_of(app, db_session, make_product, receive):
    product = make_product(cost_price="2.00")
    receive(product, 3)
    runner = app.test_cli_runner()

    result = runner.invoke(args=["inventory", "as-of", "--product-id", str(product.id)])
    assert result.exit_code == 0, result.output
    assert f"product {product.id}: qty 3 value 6.00" in result.output

    result = runner.invoke(args=["inventory", "as-of", "--date", "1999-12-31"])
    assert "qty 0" in result.output

    result = runner.invoke(args=["inventory", "as-of", "--date", "not-a-date"])
    assert result.exit_code != 0
