"""Product catalog service tests."""

import pytest
from conftest import live_stock

from storeadmin.errors import ConflictError, NotFoundError, ValidationError
from storeadmin.services import catalog_service


class TestProductWrites:
    @pytest.mark.parametrize("field", ["stock_quantity", "version_id"])
    def test_ledger_owned_fields_rejected(self, db_session, make_product, field):
        product = make_product()
        with pytest.raises(ValidationError) as exc:
            catalog_service.update_product(product.id, {field: 5})
        assert exc.value.details["fields"] == [field]
        assert live_stock(product.id) == 0

    def test_create_requires_core_fields(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.create_product({"sku": "A-1", "name": "Thing"})
        with pytest.raises(ValidationError):
            catalog_service.create_product({"sku": " ", "name": "Thing", "price": 1})

    @pytest.mark.parametrize("price", ["-1", "abc", "NaN", "99999999999"])
    def test_bad_prices(self, db_session, price):
        with pytest.raises(ValidationError):
            catalog_service.create_product({"sku": "A-1", "name": "Thing", "price": price})

    def test_min_max_consistency(self, db_session, make_product):
        product = make_product()
        with pytest.raises(ValidationError):
            catalog_service.update_product(product.id, {"min_stock": 10, "max_stock": 5})
        updated = catalog_service.update_product(product.id, {"min_stock": 5, "max_stock": 10})
        assert (updated.min_stock, updated.max_stock) == (5, 10)

    def test_unknown_category(self, db_session):
        with pytest.raises(NotFoundError):
            catalog_service.create_product({"sku": "A-1", "name": "Thing", "price": 1, "category_id": 4040})

    def test_sku_unique_on_update(self, db_session, make_product):
        make_product(sku="TAKEN")
        other = make_product()
        with pytest.raises(ConflictError):
            catalog_service.update_product(other.id, {"sku": "TAKEN"})

    def test_apply_stock_delta_refuses_negative(self, db_session, make_product):
        product = make_product()
        with pytest.raises(ConflictError) as exc:
            catalog_service.apply_stock_delta(product, -1)
        assert exc.value.details == {"product_id": product.id, "available": 0, "requested": 1}
        assert product.stock_quantity == 0


class TestProductListing:
    def test_search_and_paging(self, db_session, make_product):
        for i in range(5):
            make_product(name=f"Tea {i}")
        make_product(name="Coffee")

        result = catalog_service.list_products(page=2, per_page=2, search="tea")
        assert result["pagination"]["total"] == 5
        assert result["pagination"]["total_pages"] == 3
        assert len(result["items"]) == 2
        assert all("Tea" in p["name"] for p in result["items"])

    def test_status_filter(self, db_session, make_product):
        make_product(status="inactive")
        make_product(status="deleted")
        assert catalog_service.list_products(page=1, per_page=10)["pagination"]["total"] == 1
        assert catalog_service.list_products(page=1, per_page=10, status="deleted")["pagination"]["total"] == 1


def test_apply_stock_delta_refuses_counter_overflow(db_session, make_product):
    product = make_product()
    catalog_service.apply_stock_delta(product, 2**63 - 1)
    with pytest.raises(ConflictError):
        catalog_service.apply_stock_delta(product, 1)
    assert product.stock_quantity == 2**63 - 1
