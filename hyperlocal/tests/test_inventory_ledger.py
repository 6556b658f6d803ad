import pytest
from sqlalchemy import event
from sqlalchemy.dialects import postgresql
from hyperlocal.core.exceptions import NotFoundError
from hyperlocal.models.database import InventoryRecord, Product
from hyperlocal.services.inventory_ledger import InventoryLedger


def stock_of(db, store_id, product_id):
    db.expire_all()
    return db.query(InventoryRecord).filter_by(store_id=store_id, product_id=product_id).one()


class TestLockAndRead:

    def test_reads_stock_reserved_price_and_name(self, test_db, store):
        locked = InventoryLedger().lock_and_read(
            test_db, store["store_id"], [store["rice"], store["milk"]]
        )

        assert locked[store["milk"]].stock == 5
        assert locked[store["milk"]].price == 50.0
        assert locked[store["milk"]].name == "Toned Milk 500ml"
        assert locked[store["rice"]].reserved == 2
        assert locked[store["rice"]].available == 8
        test_db.rollback()

    def test_unknown_and_inactive_products_are_absent(self, test_db, store):
        locked = InventoryLedger().lock_and_read(
            test_db, store["store_id"], [store["ghee"], 9999]
        )

        assert store["ghee"] not in locked
        assert 9999 not in locked
        test_db.rollback()

    def test_other_store_rows_are_not_returned(self, test_db, store):
        locked = InventoryLedger().lock_and_read(test_db, store["store_id"] + 1, [store["milk"]])

        assert store["milk"] not in locked
        test_db.rollback()

    def test_rows_are_locked_for_update_in_product_order(self, test_db, store):
        executed = []

        def capture(orm_execute_state):
            executed.append(orm_execute_state.statement)

        event.listen(test_db, "do_orm_execute", capture)
        try:
            InventoryLedger().lock_and_read(
                test_db, store["store_id"], [store["rice"], store["milk"]]
            )
        finally:
            event.remove(test_db, "do_orm_execute", capture)
            test_db.rollback()

        [stmt] = executed
        sql = str(stmt.compile(dialect=postgresql.dialect()))
        assert "FOR UPDATE OF inventory" in sql
        assert "ORDER BY inventory.product_id" in sql


class TestDecrement:

    def test_decrement_applies_on_commit(self, test_db, store):
        locked = InventoryLedger().lock_and_read(test_db, store["store_id"], [store["milk"]])

        assert locked.decrement(store["milk"], 3) == 2
        test_db.commit()

        assert stock_of(test_db, store["store_id"], store["milk"]).stock_quantity == 2

    def test_decrement_rolls_back_with_transaction(self, test_db, store):
        locked = InventoryLedger().lock_and_read(test_db, store["store_id"], [store["milk"]])
        locked.decrement(store["milk"], 3)
        test_db.rollback()

        assert stock_of(test_db, store["store_id"], store["milk"]).stock_quantity == 5

    def test_decrement_respects_reserved_stock(self, test_db, store):
        locked = InventoryLedger().lock_and_read(test_db, store["store_id"], [store["rice"]])

        with pytest.raises(ValueError, match="negative"):
            locked.decrement(store["rice"], 9)
        test_db.rollback()

    def test_decrement_requires_positive_quantity(self, test_db, store):
        locked = InventoryLedger().lock_and_read(test_db, store["store_id"], [store["milk"]])

        with pytest.raises(ValueError):
            locked.decrement(store["milk"], 0)
        test_db.rollback()

    def test_cannot_decrement_a_row_that_was_not_locked(self, test_db, store):
        locked = InventoryLedger().lock_and_read(test_db, store["store_id"], [store["milk"]])

        with pytest.raises(RuntimeError, match="not locked"):
            locked.decrement(store["rice"], 1)
        test_db.rollback()

    def test_cannot_decrement_after_transaction_ends(self, test_db, store):
        locked = InventoryLedger().lock_and_read(test_db, store["store_id"], [store["milk"]])
        test_db.commit()

        with pytest.raises(RuntimeError, match="no longer locked"):
            locked.decrement(store["milk"], 1)
        assert stock_of(test_db, store["store_id"], store["milk"]).stock_quantity == 5


class TestOnboarding:

    def test_onboard_creates_record(self, test_db, store):
        oil = Product(name="Sunflower Oil 1L", category="Staples", price=180.0)
        test_db.add(oil)
        test_db.commit()

        record = InventoryLedger().onboard(test_db, store["store_id"], oil.id, 12, reorder_level=3)

        assert record.stock_quantity == 12
        assert record.reserved_quantity == 0
        assert record.available_quantity == 12

    def test_onboard_twice_is_rejected(self, test_db, store):
        with pytest.raises(ValueError, match="already has inventory"):
            InventoryLedger().onboard(test_db, store["store_id"], store["milk"], 3)

    def test_onboard_unknown_store(self, test_db, store):
        with pytest.raises(NotFoundError):
            InventoryLedger().onboard(test_db, 9999, store["milk"], 3)

    def test_low_stock_report(self, test_db, store):
        record = stock_of(test_db, store["store_id"], store["rice"])
        record.reorder_level = 8
        test_db.commit()

        low = InventoryLedger().low_stock(test_db, store["store_id"])

        assert [r.product_id for r in low] == [store["rice"]]
