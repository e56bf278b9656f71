from decimal import Decimal

from textile_erp.extensions import db
from textile_erp.models import Branch, InventoryPosition, ProductionCenter, Warehouse


class TestSystemInit:

    def test_init_seeds_reference_data(self, app):
        result = app.test_cli_runner().invoke(args=["system", "init"])

        assert result.exit_code == 0, result.output
        assert "DONE Reference data ready" in result.output
        warehouse = db.session.get(Warehouse, app.config["DEFAULT_WAREHOUSE_ID"])
        assert warehouse.code == "WH-MAIN"
        assert db.session.query(Branch).filter_by(code="MAIN").count() == 1
        assert db.session.query(ProductionCenter).filter_by(code="PC-01").count() == 1

    def test_init_is_idempotent(self, app):
        runner = app.test_cli_runner()
        runner.invoke(args=["system", "init"])
        result = runner.invoke(args=["system", "init", "--warehouse-name", "Renamed"])

        assert result.exit_code == 0, result.output
        assert "Using existing warehouse: Main Warehouse" in result.output
        assert db.session.query(Warehouse).count() == 1

    def test_reset_requires_confirmation(self, app):
        result = app.test_cli_runner().invoke(args=["system", "reset-db"])
        assert result.exit_code == 1
        assert "Refusing" in result.output


class TestInventoryCommands:

    def test_reconcile_passes_on_clean_ledger(self, app, stocked):
        result = app.test_cli_runner().invoke(args=["inventory", "reconcile"])

        assert result.exit_code == 0, result.output
        assert result.output.startswith("PASS")

    def test_reconcile_reports_drift(self, app, main_warehouse, stocked):
        db.session.query(InventoryPosition).update({InventoryPosition.quantity_on_hand: Decimal("90")})
        db.session.commit()

        result = app.test_cli_runner().invoke(args=["inventory", "reconcile"])

        assert result.exit_code == 1
        assert "1 position(s) out of balance" in result.output
        assert f"warehouse={main_warehouse.id}" in result.output

    def test_stock_lists_positions(self, app, stocked):
        result = app.test_cli_runner().invoke(args=["inventory", "stock"])

        assert result.exit_code == 0, result.output
        assert "FAB-001" in result.output
        assert "100.000" in result.output
