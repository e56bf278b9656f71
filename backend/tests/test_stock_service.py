"""
Stock movement engine tests.

Verifies:
- Receipts create positions and exactly one movement row
- Transfers move stock and write a paired out/in movement
- Negative stock is rejected for every outbound movement
- Failed movements leave no partial writes
- Movement log always reconciles with positions
"""

from decimal import Decimal

import pytest

from textile_erp.errors import InsufficientStockError, ValidationError
from textile_erp.extensions import db
from textile_erp.models import InventoryPosition, StockTransaction
from textile_erp.services import stock_service

from conftest import assert_ledger_matches_positions, count, on_hand


# =============================================================================
# ADJUST
# =============================================================================


class TestAdjustStock:

    def test_receipt_creates_position_and_one_movement(self, main_warehouse, product):
        tx = stock_service.adjust_stock(
            product_id=product.id,
            warehouse_id=main_warehouse.id,
            quantity=100,
            direction="in",
            note="opening stock",
            user_id=3,
        )

        assert on_hand(main_warehouse.id, product.id) == Decimal("100")
        rows = db.session.query(StockTransaction).all()
        assert len(rows) == 1
        assert rows[0].id == tx.id
        assert rows[0].type == "receipt"
        assert Decimal(str(rows[0].quantity)) == Decimal("100")
        assert rows[0].created_by_user_id == 3
        assert rows[0].note == "opening stock"

    def test_out_adjustment_decrements_and_logs_negative_delta(self, main_warehouse, stocked):
        stock_service.adjust_stock(
            product_id=stocked.id,
            warehouse_id=main_warehouse.id,
            quantity="12.5",
            direction="out",
        )

        assert on_hand(main_warehouse.id, stocked.id) == Decimal("87.5")
        last = db.session.query(StockTransaction).order_by(StockTransaction.id.desc()).first()
        assert last.type == "adjustment"
        assert Decimal(str(last.quantity)) == Decimal("-12.5")
        assert_ledger_matches_positions()

    @pytest.mark.parametrize("alias,expected_type", [("receipt", "receipt"), ("adjustment", "adjustment")])
    def test_legacy_type_aliases(self, main_warehouse, stocked, alias, expected_type):
        tx = stock_service.adjust_stock(
            product_id=stocked.id,
            warehouse_id=main_warehouse.id,
            quantity=1,
            direction=alias,
        )
        assert tx.type == expected_type

    def test_out_adjustment_cannot_go_negative(self, main_warehouse, stocked):
        before = count(StockTransaction)

        with pytest.raises(InsufficientStockError) as exc:
            stock_service.adjust_stock(
                product_id=stocked.id,
                warehouse_id=main_warehouse.id,
                quantity=101,
                direction="out",
            )

        assert exc.value.on_hand == Decimal("100.000")
        assert exc.value.requested == Decimal("101.000")
        assert on_hand(main_warehouse.id, stocked.id) == Decimal("100")
        assert count(StockTransaction) == before

    def test_out_adjustment_without_position_is_insufficient(self, main_warehouse, product):
        with pytest.raises(InsufficientStockError):
            stock_service.adjust_stock(
                product_id=product.id,
                warehouse_id=main_warehouse.id,
                quantity=1,
                direction="out",
            )
        assert count(InventoryPosition) == 0
        assert count(StockTransaction) == 0

    @pytest.mark.parametrize("quantity", [0, -5, "abc", None, "NaN"])
    def test_rejects_non_positive_or_invalid_quantity(self, main_warehouse, product, quantity):
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(
                product_id=product.id,
                warehouse_id=main_warehouse.id,
                quantity=quantity,
                direction="in",
            )
        assert count(StockTransaction) == 0

    @pytest.mark.parametrize("quantity", ["0.3333", "12.0005", "0.0001"])
    def test_rejects_quantity_beyond_three_decimals(self, main_warehouse, stocked, quantity):
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(
                product_id=stocked.id,
                warehouse_id=main_warehouse.id,
                quantity=quantity,
                direction="out",
            )
        assert on_hand(main_warehouse.id, stocked.id) == Decimal("100")
        assert count(StockTransaction) == 1

    def test_trailing_zeros_are_not_extra_precision(self, main_warehouse, stocked):
        stock_service.adjust_stock(
            product_id=stocked.id, warehouse_id=main_warehouse.id, quantity="0.333000", direction="out",
        )
        assert on_hand(main_warehouse.id, stocked.id) == Decimal("99.667")

    def test_rejects_unknown_direction(self, main_warehouse, product):
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(
                product_id=product.id,
                warehouse_id=main_warehouse.id,
                quantity=1,
                direction="sideways",
            )

    def test_rejects_unknown_product_and_warehouse(self, main_warehouse, product):
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(product_id=999, warehouse_id=main_warehouse.id, quantity=1, direction="in")
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(product_id=product.id, warehouse_id=999, quantity=1, direction="in")
        assert count(InventoryPosition) == 0


# =============================================================================
# TRANSFER
# =============================================================================


class TestTransferStock:

    def test_transfer_moves_stock_and_writes_paired_rows(self, main_warehouse, second_warehouse, stocked):
        out_tx, in_tx = stock_service.transfer_stock(
            product_id=stocked.id,
            from_warehouse_id=main_warehouse.id,
            to_warehouse_id=second_warehouse.id,
            quantity=30,
        )

        assert on_hand(main_warehouse.id, stocked.id) == Decimal("70")
        assert on_hand(second_warehouse.id, stocked.id) == Decimal("30")

        assert out_tx.type == "transfer_out"
        assert Decimal(str(out_tx.quantity)) == Decimal("-30")
        assert out_tx.counterpart_warehouse_id == second_warehouse.id
        assert in_tx.type == "transfer_in"
        assert Decimal(str(in_tx.quantity)) == Decimal("30")
        assert in_tx.counterpart_warehouse_id == main_warehouse.id

        # receipt + two transfer rows
        assert count(StockTransaction) == 3
        assert_ledger_matches_positions()

    def test_transfer_of_entire_balance_leaves_source_at_zero(self, main_warehouse, second_warehouse, stocked):
        stock_service.transfer_stock(
            product_id=stocked.id,
            from_warehouse_id=main_warehouse.id,
            to_warehouse_id=second_warehouse.id,
            quantity=100,
        )
        assert on_hand(main_warehouse.id, stocked.id) == Decimal("0")
        assert on_hand(second_warehouse.id, stocked.id) == Decimal("100")

    def test_transfer_more_than_available_writes_nothing(self, main_warehouse, second_warehouse, stocked):
        with pytest.raises(InsufficientStockError):
            stock_service.transfer_stock(
                product_id=stocked.id,
                from_warehouse_id=main_warehouse.id,
                to_warehouse_id=second_warehouse.id,
                quantity="100.001",
            )

        assert on_hand(main_warehouse.id, stocked.id) == Decimal("100")
        assert stock_service.get_position(second_warehouse.id, stocked.id) is None
        assert count(StockTransaction) == 1

    def test_transfer_from_missing_position_is_insufficient(self, main_warehouse, second_warehouse, product):
        with pytest.raises(InsufficientStockError):
            stock_service.transfer_stock(
                product_id=product.id,
                from_warehouse_id=second_warehouse.id,
                to_warehouse_id=main_warehouse.id,
                quantity=1,
            )

    def test_same_warehouse_rejected(self, main_warehouse, stocked):
        with pytest.raises(ValidationError):
            stock_service.transfer_stock(
                product_id=stocked.id,
                from_warehouse_id=main_warehouse.id,
                to_warehouse_id=main_warehouse.id,
                quantity=1,
            )


# =============================================================================
# READ SIDE
# =============================================================================


class TestStockQueries:

    def test_stock_status_thresholds(self):
        assert stock_service.stock_status(0, 10) == "Out of Stock"
        assert stock_service.stock_status(10, 10) == "Low Stock"
        assert stock_service.stock_status("10.001", 10) == "Adequate"

    def test_list_stock_puts_low_stock_first(self, main_warehouse, stocked, yarn):
        stock_service.adjust_stock(product_id=yarn.id, warehouse_id=main_warehouse.id, quantity=5, direction="in")
        db.session.query(type(yarn)).filter_by(id=yarn.id).update({"reorder_level": Decimal("10")})
        db.session.commit()

        rows = stock_service.list_stock()
        assert [r["product_code"] for r in rows] == ["YRN-001", "FAB-001"]
        assert rows[0]["stock_status"] == "Low Stock"
        assert rows[1]["stock_status"] == "Adequate"
        assert rows[1]["quantity_on_hand"] == "100.000"

    def test_valuation_ranks_positions_by_value_at_standard_cost(self, main_warehouse, stocked, yarn):
        db.session.query(type(yarn)).filter_by(id=yarn.id).update({"standard_cost": Decimal("5.00")})
        db.session.commit()
        stock_service.adjust_stock(product_id=yarn.id, warehouse_id=main_warehouse.id, quantity="300.5", direction="in")

        report = stock_service.stock_valuation()

        assert [r["product_code"] for r in report["items"]] == ["YRN-001", "FAB-001"]
        assert report["items"][0]["stock_value"] == "1502.50"
        assert report["items"][1]["stock_value"] == "1000.00"
        assert report["total_value"] == "2502.50"

    def test_valuation_of_empty_warehouse(self, second_warehouse):
        assert stock_service.stock_valuation(warehouse_id=second_warehouse.id) == {"items": [], "total_value": "0.00"}

    def test_history_filters_by_type_and_orders_newest_first(self, main_warehouse, second_warehouse, stocked):
        stock_service.transfer_stock(
            product_id=stocked.id,
            from_warehouse_id=main_warehouse.id,
            to_warehouse_id=second_warehouse.id,
            quantity=10,
        )

        history = stock_service.list_stock_history()
        assert [tx.type for tx in history] == ["transfer_in", "transfer_out", "receipt"]

        receipts = stock_service.list_stock_history(tx_type="receipt")
        assert len(receipts) == 1

        at_second = stock_service.list_stock_history(warehouse_id=second_warehouse.id)
        assert [tx.type for tx in at_second] == ["transfer_in"]

    def test_reconcile_reports_tampered_position(self, main_warehouse, stocked):
        assert stock_service.reconcile_positions() == []

        position = stock_service.get_position(main_warehouse.id, stocked.id)
        position.quantity_on_hand = Decimal("99")
        db.session.commit()

        mismatches = stock_service.reconcile_positions()
        assert mismatches == [{
            "warehouse_id": main_warehouse.id,
            "product_id": stocked.id,
            "ledger_quantity": "100.000",
            "quantity_on_hand": "99.000",
        }]


def test_mixed_sequence_keeps_ledger_reconciled(main_warehouse, second_warehouse, product, yarn):
    stock_service.adjust_stock(product_id=product.id, warehouse_id=main_warehouse.id, quantity=50, direction="in")
    stock_service.adjust_stock(product_id=yarn.id, warehouse_id=second_warehouse.id, quantity="7.25", direction="in")
    stock_service.transfer_stock(
        product_id=product.id, from_warehouse_id=main_warehouse.id, to_warehouse_id=second_warehouse.id, quantity=20,
    )
    stock_service.adjust_stock(product_id=product.id, warehouse_id=second_warehouse.id, quantity=5, direction="out")
    stock_service.transfer_stock(
        product_id=yarn.id, from_warehouse_id=second_warehouse.id, to_warehouse_id=main_warehouse.id, quantity="7.25",
    )
    with pytest.raises(InsufficientStockError):
        stock_service.adjust_stock(product_id=yarn.id, warehouse_id=second_warehouse.id, quantity=1, direction="out")

    assert on_hand(main_warehouse.id, product.id) == Decimal("30")
    assert on_hand(second_warehouse.id, product.id) == Decimal("15")
    assert on_hand(second_warehouse.id, yarn.id) == Decimal("0")
    assert on_hand(main_warehouse.id, yarn.id) == Decimal("7.25")
    assert_ledger_matches_positions()
    assert stock_service.reconcile_positions() == []
