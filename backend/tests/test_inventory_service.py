"""
Inventory ledger tests.

Verifies:
- increment / decrement / adjust / restock / count keep current_stock >= 0
- reservations never exceed current stock
- every mutation appends a movement with the pre-mutation stock
- weighted average cost on restock
- record CRUD rules (uniqueness, inactive references, reserved stock)
"""

from decimal import Decimal

import pytest

from conftest import stock
from pos_api.errors import (
    ConflictError,
    InsufficientStockError,
    InvalidReferenceError,
    NotFoundError,
    ValidationError,
)
from pos_api.extensions import db
from pos_api.models import InventoryMovement
from pos_api.services import inventory_service


def _movements(inv):
    return (
        db.session.query(InventoryMovement).filter_by(inventory_id=inv.id)
        .order_by(InventoryMovement.id.asc())
        .all()
    )


class TestLedgerPrimitives:
    def test_opening_stock_is_logged_as_restock(self, inventory):
        movements = _movements(inventory)
        assert len(movements) == 1
        assert movements[0].movement_type == "restock"
        assert movements[0].previous_stock == 0
        assert movements[0].new_stock == 10
        assert inventory.total_value == Decimal("600.00")

    def test_decrement_reduces_stock(self, db_session, inventory, product, branch):
        inventory_service.decrement(product.id, branch.id, 3, reason="Sale TXN-1")
        db_session.commit()

        assert inventory.current_stock == 7
        last = _movements(inventory)[-1]
        assert last.movement_type == "sale"
        assert last.quantity_delta == -3
        assert last.previous_stock == 10
        assert last.new_stock == 7
        assert inventory.last_sale_at is not None

    def test_decrement_beyond_available_raises_and_keeps_stock(self, db_session, inventory, product, branch):
        with pytest.raises(InsufficientStockError) as exc:
            inventory_service.decrement(product.id, branch.id, 11, product_name=product.name)
        db_session.rollback()

        assert "Ground Coffee" in exc.value.message
        assert exc.value.details["available"] == 10
        db_session.refresh(inventory)
        assert inventory.current_stock == 10

    def test_decrement_without_record_is_insufficient_stock(self, db_session, product, other_branch):
        with pytest.raises(InsufficientStockError):
            inventory_service.decrement(product.id, other_branch.id, 1)

    def test_increment_requires_existing_record(self, db_session, product, other_branch):
        with pytest.raises(NotFoundError):
            inventory_service.increment(product.id, other_branch.id, 1)

    @pytest.mark.parametrize("qty", [0, -2, 1.5, "3", True])
    def test_quantities_must_be_positive_integers(self, db_session, inventory, product, branch, qty):
        with pytest.raises(ValidationError):
            inventory_service.increment(product.id, branch.id, qty)

    def test_adjust_needs_reason_and_non_zero_delta(self, db_session, inventory, product, branch):
        with pytest.raises(ValidationError):
            inventory_service.adjust(product.id, branch.id, 0, "nothing")
        with pytest.raises(ValidationError):
            inventory_service.adjust(product.id, branch.id, -1, "  ")

    def test_adjust_cannot_go_negative(self, db_session, inventory, product, branch):
        with pytest.raises(ValidationError):
            inventory_service.adjust(product.id, branch.id, -11, "Shrink")
        db_session.rollback()
        db_session.refresh(inventory)
        assert inventory.current_stock == 10

    def test_adjust_keeps_average_cost(self, db_session, inventory, product, branch):
        inventory_service.adjust(product.id, branch.id, -4, "Damaged")
        db_session.commit()
        assert inventory.current_stock == 6
        assert inventory.average_cost == Decimal("60.00")
        assert inventory.total_value == Decimal("360.00")

    def test_restock_updates_weighted_average_cost(self, db_session, inventory, product, branch):
        inventory_service.restock(product.id, branch.id, 10, Decimal("80.00"), reason="PO 7")
        db_session.commit()

        assert inventory.current_stock == 20
        assert inventory.average_cost == Decimal("70.00")
        assert inventory.total_value == Decimal("1400.00")
        assert _movements(inventory)[-1].unit_cost == Decimal("80.00")

    def test_restock_average_rounds_half_up(self, db_session, product, branch):
        inv = stock(product, branch, 3, average_cost="10.00")
        inventory_service.restock(product.id, branch.id, 1, Decimal("10.01"))
        db_session.commit()
        # (30.00 + 10.01) / 4 = 10.0025
        assert inv.average_cost == Decimal("10.00")

    def test_low_stock_is_logged(self, db_session, inventory, product, branch, caplog):
        with caplog.at_level("WARNING", logger="pos_api.services.inventory_service"):
            inventory_service.decrement(product.id, branch.id, 8)
        assert "Low stock" in caplog.text


class TestReservations:
    def test_reserve_reduces_available_only(self, db_session, inventory, product, branch):
        inventory_service.reserve(product.id, branch.id, 4)
        db_session.commit()

        assert inventory.current_stock == 10
        assert inventory.reserved_stock == 4
        assert inventory.available_stock == 6
        assert inventory_service.get_available_stock(product.id, branch.id) == 6

    def test_reserve_beyond_available_raises(self, db_session, inventory, product, branch):
        inventory_service.reserve(product.id, branch.id, 8)
        with pytest.raises(InsufficientStockError):
            inventory_service.reserve(product.id, branch.id, 3)

    def test_release_returns_availability(self, db_session, inventory, product, branch):
        inventory_service.reserve(product.id, branch.id, 4)
        inventory_service.release(product.id, branch.id, 4)
        db_session.commit()
        assert inventory.reserved_stock == 0
        assert inventory.current_stock == 10

    def test_commit_reservation_decrements_both(self, db_session, inventory, product, branch):
        inventory_service.reserve(product.id, branch.id, 4)
        inventory_service.commit_reservation(product.id, branch.id, 4)
        db_session.commit()
        assert inventory.current_stock == 6
        assert inventory.reserved_stock == 0

    def test_stock_cannot_drop_below_reserved(self, db_session, inventory, product, branch):
        inventory_service.reserve(product.id, branch.id, 8)
        with pytest.raises(ValidationError):
            inventory_service.adjust(product.id, branch.id, -3, "Shrink")

    def test_unknown_record_has_zero_available(self, db_session, product, other_branch):
        assert inventory_service.get_available_stock(product.id, other_branch.id) == 0


class TestCount:
    def test_count_sets_stock_and_stamps_audit(self, db_session, inventory, manager):
        inventory_service.count_inventory(inventory_id=inventory.id, counted_quantity=7, user_id=manager.id)

        assert inventory.current_stock == 7
        assert inventory.last_counted_by_user_id == manager.id
        assert inventory.last_counted_at is not None
        last = _movements(inventory)[-1]
        assert last.movement_type == "count"
        assert last.quantity_delta == -3

    def test_count_rejects_negative(self, db_session, inventory):
        with pytest.raises(ValidationError):
            inventory_service.count_inventory(inventory_id=inventory.id, counted_quantity=-1)


class TestInventoryRecords:
    def test_duplicate_product_branch_is_conflict(self, db_session, inventory, product, branch):
        with pytest.raises(ConflictError):
            stock(product, branch, 1)

    def test_same_product_in_two_branches(self, db_session, inventory, product, other_branch):
        other = stock(product, other_branch, 3)
        assert other.id != inventory.id
        assert inventory_service.get_available_stock(product.id, other_branch.id) == 3

    def test_inactive_product_is_reference_error(self, db_session, product, branch):
        product.is_active = False
        db_session.commit()
        with pytest.raises(InvalidReferenceError):
            stock(product, branch, 1)

    def test_thresholds_validated(self, db_session, product, branch):
        with pytest.raises(ValidationError):
            inventory_service.create_inventory(
                patch={"product_id": product.id, "branch_id": branch.id, "min_stock": 5, "max_stock": 5},
            )

    def test_defaults_come_from_product(self, db_session, product, branch):
        inv = inventory_service.create_inventory(patch={"product_id": product.id, "branch_id": branch.id})
        assert inv.current_stock == 0
        assert inv.min_stock == product.min_stock

    def test_update_cannot_touch_stock(self, db_session, inventory):
        inventory_service.update_inventory(
            inventory_id=inventory.id,
            patch={"current_stock": 999, "location": "Aisle 4"},
        )
        assert inventory.current_stock == 10
        assert inventory.location == "Aisle 4"

    def test_delete_refused_while_reserved(self, db_session, inventory, product, branch):
        inventory_service.reserve(product.id, branch.id, 2)
        db_session.commit()
        with pytest.raises(ConflictError):
            inventory_service.delete_inventory(inventory_id=inventory.id)

    def test_delete_is_soft(self, db_session, inventory, product, branch):
        inventory_service.delete_inventory(inventory_id=inventory.id)
        assert inventory.is_active is False
        assert inventory.deleted_at is not None
        assert inventory_service.get_available_stock(product.id, branch.id) == 0

    def test_ledger_wrappers_reject_inactive_records(self, db_session, inventory):
        inventory_service.delete_inventory(inventory_id=inventory.id)
        with pytest.raises(ValidationError):
            inventory_service.adjust_inventory(inventory_id=inventory.id, delta=1, reason="Found")

    def test_returned_stock_reaches_inactive_record(self, db_session, inventory, product, branch):
        inventory_service.delete_inventory(inventory_id=inventory.id)

        inventory_service.increment(product.id, branch.id, 2, movement_type="sale_cancel")
        db_session.commit()

        db_session.refresh(inventory)
        assert inventory.current_stock == 12
        assert inventory.is_active is False
        with pytest.raises(InsufficientStockError):
            inventory_service.decrement(product.id, branch.id, 1)

    def test_update_refuses_deactivation_while_reserved(self, db_session, inventory, product, branch):
        inventory_service.reserve(product.id, branch.id, 2)
        db_session.commit()

        with pytest.raises(ConflictError):
            inventory_service.update_inventory(inventory_id=inventory.id, patch={"is_active": False})

        inventory_service.release(product.id, branch.id, 2)
        db_session.commit()
        inventory_service.update_inventory(inventory_id=inventory.id, patch={"is_active": False})
        assert inventory.is_active is False

        inventory_service.update_inventory(inventory_id=inventory.id, patch={"is_active": True})
        assert inventory.is_active is True
        assert inventory.deleted_at is None

    def test_low_stock_listing(self, db_session, inventory, product, branch):
        inventory_service.adjust_inventory(inventory_id=inventory.id, delta=-8, reason="Shrink")
        records, pagination = inventory_service.list_inventory(low_stock=True)
        assert [r.id for r in records] == [inventory.id]
        assert pagination["total"] == 1
