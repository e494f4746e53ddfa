# Overview: Pytest coverage for the scratcher product catalog.

import pytest

from scratchers.errors import NotFoundError, ValidationError
from scratchers.models import ScratcherProduct
from scratchers.services import product_service, reconciliation_service
from scratchers.tickets import STANDARD_PRICES_CENTS


class TestNormalizeCatalog:
    def test_creates_standard_prices_once(self, db_session):
        created = product_service.normalize_catalog()
        db_session.commit()

        assert sorted(p.price_cents for p in created) == STANDARD_PRICES_CENTS
        assert product_service.normalize_catalog() == []

    def test_deactivates_duplicate_active_price(self, db_session, products):
        duplicate = ScratcherProduct(name="Lucky 7s", price_cents=500, is_active=True)
        db_session.add(duplicate)
        db_session.commit()

        changed = product_service.normalize_catalog()
        db_session.commit()

        assert changed == [duplicate]
        assert duplicate.is_active is False
        assert products[500].is_active is True

    def test_inactive_price_row_is_not_recreated(self, db_session, products):
        products[300].is_active = False
        db_session.commit()

        assert product_service.normalize_catalog() == []
        assert db_session.query(ScratcherProduct).filter_by(price_cents=300).count() == 1


class TestListProducts:
    def test_highest_price_first(self, db_session):
        products = product_service.list_products()
        prices = [p.price_cents for p in products]
        assert prices == sorted(prices, reverse=True)

    def test_active_only(self, db_session, products):
        products[100].is_active = False
        db_session.commit()

        active = product_service.list_products(include_inactive=False)
        assert 100 not in {p.price_cents for p in active}


class TestUpsertProduct:
    def test_create_from_dollar_string(self, db_session):
        product, created = product_service.upsert_product(name=" Cash Blast ", price="5.00")
        db_session.commit()

        assert created is True
        assert product.price_cents == 500
        assert product.name == "Cash Blast"
        assert product.is_active is True

    def test_update_existing(self, db_session, products):
        target = products[1000]
        product, created = product_service.upsert_product(
            product_id=target.id, name="Gold Rush", price=10, is_active=False,
        )
        db_session.commit()

        assert created is False
        assert product.id == target.id
        assert product.name == "Gold Rush"
        assert product.is_active is False

    def test_update_unknown_id(self, db_session):
        with pytest.raises(NotFoundError):
            product_service.upsert_product(product_id=99999, price=5)

    @pytest.mark.parametrize("price", [None, "", "abc", -1, "-0.01", float("inf"), float("nan"), "NaN", True])
    def test_rejects_bad_price(self, db_session, price):
        with pytest.raises(ValidationError):
            product_service.upsert_product(name="Bad", price=price)

    def test_rejects_non_boolean_active(self, db_session):
        with pytest.raises(ValidationError):
            product_service.upsert_product(price=5, is_active="yes")

    def test_reruns_flagged_calculations(self, db_session, monkeypatch):
        calls = []
        monkeypatch.setattr(
            reconciliation_service,
            "recalculate_flagged",
            lambda store_id=None: calls.append(store_id) or [],
        )

        product_service.upsert_product(price=3)

        assert calls == [None]
