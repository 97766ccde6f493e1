# Overview: Pytest coverage for the inventory ledger.

import pytest

from stockledger.errors import (
    CompanyNotFound,
    InsufficientStock,
    InvalidMoney,
    InvalidQuantity,
    ProductCompanyMismatch,
    ProductNotFound,
)
from stockledger.extensions import status_cache
from stockledger.models import InventoryMovement, MOVEMENT_ENTRY, MOVEMENT_EXIT
from stockledger.services import inventory_service
from stockledger.services.stock_policy import has_available_stock

from conftest import make_product, stock_up


class TestCurrentStock:

    def test_no_movements_is_zero(self, db_session, product_a):
        assert inventory_service.current_stock(product_a.id) == 0

    def test_two_entries_sum(self, db_session, product_a):
        stock_up(product_a, 50)
        stock_up(product_a, 50)
        assert inventory_service.current_stock(product_a.id) == 100

    def test_entries_minus_exits(self, db_session, product_a):
        stock_up(product_a, 40)
        stock_up(product_a, 7)
        inventory_service.record_exit(company_id=product_a.company_id, product_id=product_a.id, quantity=12)
        inventory_service.record_exit(company_id=product_a.company_id, product_id=product_a.id, quantity=5)

        entries = sum(
            m.quantity for m in db_session.query(InventoryMovement).filter_by(type=MOVEMENT_ENTRY)
        )
        exits = sum(
            m.quantity for m in db_session.query(InventoryMovement).filter_by(type=MOVEMENT_EXIT)
        )
        assert inventory_service.current_stock(product_a.id) == entries - exits == 30

    def test_stock_is_per_product(self, db_session, product_a, product_a2):
        stock_up(product_a, 10)
        stock_up(product_a2, 3)
        assert inventory_service.current_stock(product_a.id) == 10
        assert inventory_service.current_stock(product_a2.id) == 3

    def test_matches_sum_of_signed_quantities(self, db_session, product_a):
        stock_up(product_a, 9)
        inventory_service.record_exit(company_id=product_a.company_id, product_id=product_a.id, quantity=4)
        movements = db_session.query(InventoryMovement).filter_by(product_id=product_a.id).all()
        assert sorted(m.signed_quantity for m in movements) == [-4, 9]
        assert inventory_service.current_stock(product_a.id) == sum(m.signed_quantity for m in movements)


class TestRecordEntry:

    def test_entry_row(self, db_session, product_a):
        movement = inventory_service.record_entry(
            company_id=product_a.company_id,
            product_id=product_a.id,
            quantity=25,
            unit_cost_cents=9500,
            notes="Supplier delivery",
        )
        assert movement.id is not None
        assert movement.type == MOVEMENT_ENTRY
        assert movement.quantity == 25
        assert movement.unit_cost_cents == 9500
        assert movement.sale_id is None
        assert movement.notes == "Supplier delivery"

    def test_unknown_product(self, db_session, company_a):
        with pytest.raises(ProductNotFound):
            inventory_service.record_entry(
                company_id=company_a.id, product_id=999999, quantity=1, unit_cost_cents=100,
            )

    def test_other_company_product(self, db_session, company_a, product_b):
        with pytest.raises(ProductCompanyMismatch):
            inventory_service.record_entry(
                company_id=company_a.id, product_id=product_b.id, quantity=1, unit_cost_cents=100,
            )
        assert db_session.query(InventoryMovement).count() == 0

    @pytest.mark.parametrize("quantity", [0, -3, 1.5, True, None])
    def test_invalid_quantity(self, db_session, product_a, quantity):
        with pytest.raises(InvalidQuantity):
            inventory_service.record_entry(
                company_id=product_a.company_id, product_id=product_a.id,
                quantity=quantity, unit_cost_cents=100,
            )

    @pytest.mark.parametrize("cost", [-1, 10.5, None])
    def test_invalid_money(self, db_session, product_a, cost):
        with pytest.raises(InvalidMoney):
            inventory_service.record_entry(
                company_id=product_a.company_id, product_id=product_a.id,
                quantity=1, unit_cost_cents=cost,
            )

    def test_zero_cost_allowed(self, db_session, product_a):
        movement = stock_up(product_a, 2, unit_cost_cents=0)
        assert movement.unit_cost_cents == 0

    def test_register_requires_company(self, db_session, product_a):
        with pytest.raises(CompanyNotFound):
            inventory_service.register_inventory_entry(
                company_id=424242, product_id=product_a.id, quantity=1, unit_cost_cents=1,
            )


class TestRecordExit:

    def test_exit_uses_current_cost_price(self, db_session, product_a):
        stock_up(product_a, 10, unit_cost_cents=8000)
        movement = inventory_service.record_exit(
            company_id=product_a.company_id, product_id=product_a.id, quantity=4,
        )
        assert movement.type == MOVEMENT_EXIT
        assert movement.quantity == 4
        assert movement.unit_cost_cents == product_a.cost_price_cents

    def test_exit_beyond_stock_is_refused(self, db_session, product_a):
        stock_up(product_a, 10)
        before = db_session.query(InventoryMovement).count()

        with pytest.raises(InsufficientStock) as excinfo:
            inventory_service.record_exit(
                company_id=product_a.company_id, product_id=product_a.id, quantity=11,
            )

        assert excinfo.value.required == 11
        assert excinfo.value.available == 10
        assert db_session.query(InventoryMovement).count() == before
        assert inventory_service.current_stock(product_a.id) == 10

    def test_exit_down_to_zero(self, db_session, product_a):
        stock_up(product_a, 3)
        inventory_service.record_exit(company_id=product_a.company_id, product_id=product_a.id, quantity=3)
        assert inventory_service.current_stock(product_a.id) == 0

    def test_exit_without_stock(self, db_session, product_a):
        with pytest.raises(InsufficientStock):
            inventory_service.record_exit(
                company_id=product_a.company_id, product_id=product_a.id, quantity=1,
            )

    def test_exit_other_company(self, db_session, company_a, product_b):
        stock_up(product_b, 5)
        with pytest.raises(ProductCompanyMismatch):
            inventory_service.record_exit(company_id=company_a.id, product_id=product_b.id, quantity=1)

    def test_exit_invalid_quantity(self, db_session, product_a):
        stock_up(product_a, 5)
        with pytest.raises(InvalidQuantity):
            inventory_service.record_exit(company_id=product_a.company_id, product_id=product_a.id, quantity=0)


class TestStockPolicy:

    def test_has_available_stock(self, db_session, product_a):
        stock_up(product_a, 5)
        assert has_available_stock(product_a.id, 5) is True
        assert has_available_stock(product_a.id, 6) is False

    def test_no_side_effects(self, db_session, product_a):
        stock_up(product_a, 5)
        count = db_session.query(InventoryMovement).count()
        has_available_stock(product_a.id, 100)
        assert db_session.query(InventoryMovement).count() == count


class TestInventoryStatus:

    def test_valuation_and_projected_profit(self, db_session, product_a):
        stock_up(product_a, 50, unit_cost_cents=10000)
        stock_up(product_a, 50, unit_cost_cents=9000)
        inventory_service.record_exit(company_id=product_a.company_id, product_id=product_a.id, quantity=30)

        rows = inventory_service.inventory_status(product_a.company_id)

        assert len(rows) == 1
        row = rows[0]
        assert row["product_id"] == product_a.id
        assert row["current_stock"] == 70
        # gross entries, not reduced by the exit
        assert row["total_value_cents"] == 50 * 10000 + 50 * 9000
        assert row["projected_profit_cents"] == 70 * (15000 - 10000)

    def test_only_active_products_of_company(self, db_session, company_a, product_a, product_b):
        make_product(db_session, company_a, "OLD-1", 100, 200, is_active=False)
        rows = inventory_service.inventory_status(company_a.id)
        assert [r["sku"] for r in rows] == ["PROD-001"]
        assert rows[0]["current_stock"] == 0
        assert rows[0]["total_value_cents"] == 0

    def test_null_unit_cost_counts_as_zero(self, db_session, product_a):
        db_session.add(InventoryMovement(
            company_id=product_a.company_id,
            product_id=product_a.id,
            type=MOVEMENT_ENTRY,
            quantity=4,
            unit_cost_cents=None,
        ))
        db_session.commit()
        row = inventory_service.inventory_status(product_a.company_id)[0]
        assert row["current_stock"] == 4
        assert row["total_value_cents"] == 0

    def test_snapshot_is_cached(self, db_session, product_a):
        stock_up(product_a, 5)
        first = inventory_service.inventory_status(product_a.company_id)
        assert status_cache.get(product_a.company_id) == first

        # a write that bypasses the ledger service is not seen until expiry
        db_session.add(InventoryMovement(
            company_id=product_a.company_id, product_id=product_a.id,
            type=MOVEMENT_ENTRY, quantity=1, unit_cost_cents=1,
        ))
        db_session.commit()
        assert inventory_service.inventory_status(product_a.company_id)[0]["current_stock"] == 5

    def test_callers_get_independent_copies(self, db_session, product_a):
        stock_up(product_a, 5)
        rows = inventory_service.inventory_status(product_a.company_id)
        rows[0]["current_stock"] = -999
        rows.append({"sku": "BOGUS"})

        again = inventory_service.inventory_status(product_a.company_id)
        assert len(again) == 1
        assert again[0]["current_stock"] == 5

        again[0]["current_stock"] = 0
        assert inventory_service.inventory_status(product_a.company_id)[0]["current_stock"] == 5

    def test_entry_invalidates_snapshot(self, db_session, product_a):
        stock_up(product_a, 5)
        inventory_service.inventory_status(product_a.company_id)
        stock_up(product_a, 2)
        assert status_cache.get(product_a.company_id) is None
        assert inventory_service.inventory_status(product_a.company_id)[0]["current_stock"] == 7

    def test_exit_invalidates_snapshot(self, db_session, product_a):
        stock_up(product_a, 5)
        inventory_service.inventory_status(product_a.company_id)
        inventory_service.record_exit(company_id=product_a.company_id, product_id=product_a.id, quantity=2)
        assert inventory_service.inventory_status(product_a.company_id)[0]["current_stock"] == 3

    def test_snapshot_expires(self, db_session, product_a, clock):
        stock_up(product_a, 5)
        inventory_service.inventory_status(product_a.company_id)
        clock.advance(seconds=status_cache.ttl + 1)
        assert status_cache.get(product_a.company_id) is None

    def test_invalidation_is_per_company(self, db_session, product_a, product_b):
        inventory_service.inventory_status(product_a.company_id)
        inventory_service.inventory_status(product_b.company_id)
        stock_up(product_b, 1)
        assert status_cache.get(product_a.company_id) is not None
        assert status_cache.get(product_b.company_id) is None

    def test_get_inventory_status_unknown_company(self, db_session):
        with pytest.raises(CompanyNotFound):
            inventory_service.get_inventory_status(123456)


class TestStaleProducts:

    def test_product_without_movements_is_stale(self, db_session, product_a):
        assert [p.id for p in inventory_service.stale_products(product_a.company_id, 90)] == [product_a.id]

    def test_recent_movement_is_not_stale(self, db_session, product_a, clock):
        stock_up(product_a, 1)
        clock.advance(days=30)
        assert inventory_service.stale_products(product_a.company_id, 90) == []

    def test_old_movement_is_stale(self, db_session, product_a, product_a2, clock):
        stock_up(product_a, 1)
        stock_up(product_a2, 1)
        clock.advance(days=100)
        stock_up(product_a2, 1)

        stale = inventory_service.stale_products(product_a.company_id, 90)
        assert [p.id for p in stale] == [product_a.id]

    def test_scoped_to_company(self, db_session, product_a, product_b):
        stale = inventory_service.stale_products(product_a.company_id, 90)
        assert product_b.id not in [p.id for p in stale]

    def test_archive_deactivates_stale(self, db_session, product_a, product_a2, product_b, clock):
        stock_up(product_a2, 1)
        archived = inventory_service.archive_stale_products(90)

        assert [p.id for p in archived[product_a.company_id]] == [product_a.id]
        assert [p.id for p in archived[product_b.company_id]] == [product_b.id]
        db_session.refresh(product_a)
        db_session.refresh(product_a2)
        assert product_a.is_active is False
        assert product_a2.is_active is True


class TestListMovements:

    def test_newest_first(self, db_session, product_a, clock):
        first = stock_up(product_a, 1)
        clock.advance(minutes=1)
        second = stock_up(product_a, 2)
        rows = inventory_service.list_movements(company_id=product_a.company_id, product_id=product_a.id)
        assert [m.id for m in rows] == [second.id, first.id]

    def test_other_company(self, db_session, company_a, product_b):
        with pytest.raises(ProductCompanyMismatch):
            inventory_service.list_movements(company_id=company_a.id, product_id=product_b.id)
