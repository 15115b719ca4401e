from decimal import Decimal

import pytest

from simplepos.errors import (
    InsufficientPaymentError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from simplepos.models import Item, Payment, Transaction, TransactionLine
from simplepos.services import refund_service, transaction_service
from simplepos.services.money import compute_totals


def _assert_totals_consistent(db_session, tx_id):
    tx = db_session.get(Transaction, tx_id)
    lines = db_session.query(TransactionLine).filter_by(transaction_id=tx_id).all()
    expected = compute_totals(lines)
    assert tx.total == tx.subtotal + tx.tax
    assert tx.subtotal == expected.subtotal
    assert tx.tax == expected.tax
    assert tx.total == expected.total


@pytest.mark.ledger
class TestOpenTransaction:
    @pytest.mark.smoke
    def test_open_creates_zeroed_open_transaction(self, db_session):
        tx = transaction_service.open_transaction()

        assert tx.id is not None
        assert tx.status == "open"
        assert tx.subtotal == Decimal("0")
        assert tx.tax == Decimal("0")
        assert tx.total == Decimal("0")
        assert tx.created_at is not None


@pytest.mark.ledger
class TestAddLine:
    @pytest.mark.smoke
    def test_single_line_example(self, db_session, catalog):
        tx = transaction_service.open_transaction()

        line, updated = transaction_service.add_line(tx.id, "123", 1)

        assert line.item_id == catalog["cola"].id
        assert line.quantity == 1
        assert line.unit_price == Decimal("2.99")
        assert line.tax_rate == Decimal("0.0875")
        assert line.line_total == Decimal("3.25")
        assert line.refunded_by is None
        assert updated.subtotal == Decimal("2.99")
        assert updated.tax == Decimal("0.26")
        assert updated.total == Decimal("3.25")

    def test_totals_recomputed_after_every_line(self, db_session, catalog):
        tx_id = transaction_service.open_transaction().id

        transaction_service.add_line(tx_id, "123", 1)
        _assert_totals_consistent(db_session, tx_id)

        transaction_service.add_line(tx_id, "456", 2)
        _assert_totals_consistent(db_session, tx_id)

        tx = db_session.get(Transaction, tx_id)
        assert tx.subtotal == Decimal("9.97")
        assert tx.tax == Decimal("0.87")
        assert tx.total == Decimal("10.84")

    def test_same_barcode_twice_makes_two_lines(self, db_session, catalog):
        tx_id = transaction_service.open_transaction().id

        transaction_service.add_line(tx_id, "123", 1)
        transaction_service.add_line(tx_id, "123", 1)

        assert len(transaction_service.get_transaction_detail(tx_id)["lines"]) == 2
        assert db_session.get(Transaction, tx_id).subtotal == Decimal("5.98")

    def test_line_snapshot_ignores_later_price_change(self, db_session, catalog):
        tx_id = transaction_service.open_transaction().id
        line, _ = transaction_service.add_line(tx_id, "123", 1)
        line_id = line.id

        cola = db_session.get(Item, catalog["cola"].id)
        cola.price = Decimal("9.99")
        cola.tax_rate = Decimal("0.5")
        db_session.commit()

        line = db_session.get(TransactionLine, line_id)
        assert line.unit_price == Decimal("2.99")
        assert line.tax_rate == Decimal("0.0875")

    def test_barcode_is_trimmed(self, db_session, catalog):
        tx_id = transaction_service.open_transaction().id

        line, _ = transaction_service.add_line(tx_id, "  123 ", 1)

        assert line.item_id == catalog["cola"].id

    def test_add_line_does_not_touch_stock(self, db_session, catalog):
        tx_id = transaction_service.open_transaction().id

        transaction_service.add_line(tx_id, "123", 5)

        assert db_session.get(Item, catalog["cola"].id).quantity == 24

    @pytest.mark.parametrize("qty", [0, -1, 1.5, "abc", True, None])
    def test_invalid_quantity(self, db_session, catalog, qty):
        tx_id = transaction_service.open_transaction().id

        with pytest.raises(InvalidInputError):
            transaction_service.add_line(tx_id, "123", qty)

        assert len(transaction_service.get_transaction_detail(tx_id)["lines"]) == 0

    def test_unknown_transaction(self, db_session, catalog):
        with pytest.raises(NotFoundError):
            transaction_service.add_line(999999, "123", 1)

    def test_unknown_barcode(self, db_session, catalog):
        tx_id = transaction_service.open_transaction().id

        with pytest.raises(NotFoundError) as exc:
            transaction_service.add_line(tx_id, "000", 1)

        assert exc.value.message == "Barcode not found"
        _assert_totals_consistent(db_session, tx_id)

    def test_inactive_item_does_not_resolve(self, db_session, make_item):
        make_item(name="Retired", barcodes=("999",), is_active=False)
        tx_id = transaction_service.open_transaction().id

        with pytest.raises(NotFoundError) as exc:
            transaction_service.add_line(tx_id, "999", 1)

        assert exc.value.message == "Item is inactive"

    def test_rejected_on_finalized_transaction(self, db_session, make_sale):
        tx_id, _ = make_sale()

        with pytest.raises(InvalidStateError):
            transaction_service.add_line(tx_id, "123", 1)

        assert len(transaction_service.get_transaction_detail(tx_id)["lines"]) == 2

    def test_rejected_on_refunded_transaction(self, db_session, make_sale):
        tx_id, line_ids = make_sale()
        refund_service.refund_transaction(tx_id, line_ids)

        with pytest.raises(InvalidStateError):
            transaction_service.add_line(tx_id, "123", 1)

    def test_rejected_on_cancelled_transaction(self, db_session, catalog):
        tx_id = transaction_service.open_transaction().id
        transaction_service.cancel_transaction(tx_id)

        with pytest.raises(NotFoundError):
            transaction_service.add_line(tx_id, "123", 1)


@pytest.mark.ledger
class TestFinalize:
    @pytest.mark.smoke
    def test_finalize_example(self, db_session, catalog):
        tx_id = transaction_service.open_transaction().id
        transaction_service.add_line(tx_id, "123", 1)

        result = transaction_service.finalize_transaction(tx_id, "5.00")

        assert result.change == Decimal("1.75")
        assert result.transaction.status == "finalized"
        assert result.payment.amount == Decimal("5.00")
        assert result.payment.method == "cash"
        assert result.skipped_item_ids == []
        assert db_session.get(Item, catalog["cola"].id).quantity == 23

    def test_exact_cash_gives_zero_change(self, db_session, catalog):
        tx_id = transaction_service.open_transaction().id
        transaction_service.add_line(tx_id, "123", 1)

        result = transaction_service.finalize_transaction(tx_id, 3.25)

        assert result.change == Decimal("0.00")

    def test_insufficient_cash(self, db_session, catalog):
        tx_id = transaction_service.open_transaction().id
        transaction_service.add_line(tx_id, "123", 1)

        with pytest.raises(InsufficientPaymentError) as exc:
            transaction_service.finalize_transaction(tx_id, "3.24")

        assert exc.value.details["total"] == "3.25"
        tx = db_session.get(Transaction, tx_id)
        assert tx.status == "open"
        assert db_session.query(Payment).count() == 0
        assert db_session.get(Item, catalog["cola"].id).quantity == 24

    @pytest.mark.parametrize("cash", ["3.249", 3.2499, "3.245"])
    def test_sub_cent_shortfall_is_insufficient(self, db_session, catalog, cash):
        tx_id = transaction_service.open_transaction().id
        transaction_service.add_line(tx_id, "123", 1)

        with pytest.raises(InsufficientPaymentError):
            transaction_service.finalize_transaction(tx_id, cash)

        assert db_session.get(Transaction, tx_id).status == "open"
        assert db_session.query(Payment).count() == 0

    def test_sub_cent_overpayment_rounds_payment_and_change(self, db_session, catalog):
        tx_id = transaction_service.open_transaction().id
        transaction_service.add_line(tx_id, "123", 1)

        result = transaction_service.finalize_transaction(tx_id, "3.256")

        assert result.payment.amount == Decimal("3.26")
        assert result.change == Decimal("0.01")

    @pytest.mark.parametrize("cash", [None, 0, -1, "0", "abc"])
    def test_invalid_cash(self, db_session, catalog, cash):
        tx_id = transaction_service.open_transaction().id
        transaction_service.add_line(tx_id, "123", 1)

        with pytest.raises(InvalidInputError):
            transaction_service.finalize_transaction(tx_id, cash)

    def test_unknown_transaction(self, db_session):
        with pytest.raises(NotFoundError):
            transaction_service.finalize_transaction(424242, "5.00")

    def test_finalize_twice(self, db_session, make_sale):
        tx_id, _ = make_sale()

        with pytest.raises(InvalidStateError):
            transaction_service.finalize_transaction(tx_id, "50.00")

        assert db_session.query(Payment).filter_by(transaction_id=tx_id).count() == 1

    def test_decrements_each_line(self, db_session, catalog, make_sale):
        make_sale(scans=(("123", 1), ("456", 2), ("123", 3)))

        assert db_session.get(Item, catalog["cola"].id).quantity == 20
        assert db_session.get(Item, catalog["chips"].id).quantity == 10

    def test_stock_floored_at_zero(self, db_session, make_item):
        empty = make_item(name="Empty", quantity=0, barcodes=("700",))
        short = make_item(name="Short", quantity=1, barcodes=("701",))
        tx_id = transaction_service.open_transaction().id
        transaction_service.add_line(tx_id, "700", 1)
        transaction_service.add_line(tx_id, "701", 3)

        transaction_service.finalize_transaction(tx_id, "100")

        assert db_session.get(Item, empty.id).quantity == 0
        assert db_session.get(Item, short.id).quantity == 0


@pytest.mark.ledger
class TestCancel:
    def test_cancel_removes_transaction_and_lines(self, db_session, catalog):
        tx_id = transaction_service.open_transaction().id
        transaction_service.add_line(tx_id, "123", 1)
        transaction_service.add_line(tx_id, "456", 1)

        transaction_service.cancel_transaction(tx_id)

        with pytest.raises(NotFoundError):
            transaction_service.get_transaction(tx_id)
        assert db_session.query(TransactionLine).filter_by(transaction_id=tx_id).count() == 0
        assert db_session.get(Item, catalog["cola"].id).quantity == 24
        assert db_session.get(Item, catalog["chips"].id).quantity == 12
        assert db_session.query(Payment).count() == 0

    def test_cancel_finalized_is_rejected(self, db_session, make_sale):
        tx_id, _ = make_sale()

        with pytest.raises(InvalidStateError):
            transaction_service.cancel_transaction(tx_id)

        assert transaction_service.get_transaction(tx_id).status == "finalized"

    def test_cancel_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            transaction_service.cancel_transaction(31337)


@pytest.mark.ledger
class TestGetTransaction:
    def test_detail_includes_lines_and_items(self, db_session, catalog, make_sale):
        tx_id, line_ids = make_sale()

        detail = transaction_service.get_transaction_detail(tx_id)

        assert detail["id"] == tx_id
        assert detail["status"] == "finalized"
        assert detail["total"] == "10.84"
        assert [line["id"] for line in detail["lines"]] == line_ids
        assert detail["lines"][0]["item"]["name"] == "Coca Cola"
        assert detail["lines"][0]["refunded_by"] is None
        assert detail["refundStatus"] == "none"

    def test_missing(self, db_session):
        with pytest.raises(NotFoundError):
            transaction_service.get_transaction_detail(1)


@pytest.mark.ledger
class TestListTransactions:
    def test_excludes_open_and_orders_newest_first(self, db_session, catalog, make_sale):
        first, _ = make_sale(scans=(("123", 1),))
        second, _ = make_sale(scans=(("456", 1),))
        open_id = transaction_service.open_transaction().id
        transaction_service.add_line(open_id, "123", 1)

        ids = [row["id"] for row in transaction_service.list_transactions()]

        assert ids == [second, first]

    def test_refund_status_and_reversal_exclusion(self, db_session, make_sale):
        partial_id, partial_lines = make_sale()
        full_id, full_lines = make_sale()
        untouched_id, _ = make_sale()

        refund_service.refund_transaction(partial_id, partial_lines[:1])
        refund_service.refund_transaction(full_id, full_lines)

        rows = {row["id"]: row for row in transaction_service.list_transactions()}

        assert set(rows) == {partial_id, full_id, untouched_id}
        assert rows[partial_id]["refundStatus"] == "partial"
        assert rows[partial_id]["status"] == "finalized"
        assert rows[full_id]["refundStatus"] == "full"
        assert rows[full_id]["status"] == "refunded"
        assert rows[untouched_id]["refundStatus"] == "none"

    def test_second_partial_reversal_is_not_listed(self, db_session, make_sale):
        tx_id, line_ids = make_sale()

        refund_service.refund_transaction(tx_id, line_ids[:1])
        refund_service.refund_transaction(tx_id, line_ids[1:])

        rows = transaction_service.list_transactions()

        assert [row["id"] for row in rows] == [tx_id]
        assert rows[0]["refundStatus"] == "full"

    def test_status_filter(self, db_session, make_sale):
        kept_id, _ = make_sale()
        refunded_id, refunded_lines = make_sale()
        refund_service.refund_transaction(refunded_id, refunded_lines)

        assert [r["id"] for r in transaction_service.list_transactions(status="refunded")] == [refunded_id]
        assert [r["id"] for r in transaction_service.list_transactions(status="finalized")] == [kept_id]

    def test_limit_and_offset(self, db_session, make_sale):
        ids = [make_sale(scans=(("123", 1),))[0] for _ in range(3)]

        assert [r["id"] for r in transaction_service.list_transactions(limit=2)] == ids[::-1][:2]
        assert [r["id"] for r in transaction_service.list_transactions(limit=2, offset=2)] == [ids[0]]

    @pytest.mark.parametrize("kwargs", [{"status": "open"}, {"limit": 0}, {"offset": -1}])
    def test_invalid_arguments(self, db_session, kwargs):
        with pytest.raises(InvalidInputError):
            transaction_service.list_transactions(**kwargs)
