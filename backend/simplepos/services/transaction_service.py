# Overview: Service-layer operations for the transaction ledger; lines, totals, finalize, cancel.

"""
Transaction Ledger

LIFECYCLE:
    open --finalize--> finalized --(every line refunded)--> refunded
    open --cancel--> (deleted)

INVARIANTS:
- Lines can only be added while the transaction is open.
- Totals are never patched incrementally: every line mutation rewrites
  subtotal/tax/total from a full recompute over the current line set, and
  total == subtotal + tax.
- Finalize is gated on status == open and cash >= total, records a positive
  cash Payment, and decrements stock best-effort (floored at zero).
- Each operation is one DB transaction holding the write lock on the target
  transaction row, so calls against the same transaction id serialize.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app
from sqlalchemy import select

from ..errors import InsufficientPaymentError, InvalidInputError, InvalidStateError, NotFoundError
from ..extensions import db
from ..models import Payment, Refund, Transaction, TransactionLine
from ..models.transactions import (
    PAYMENT_METHOD_CASH,
    TX_STATUS_FINALIZED,
    TX_STATUS_OPEN,
    TX_STATUS_REFUNDED,
)
from .catalog_service import resolve_barcode
from .concurrency import begin_write, lock_for_update, run_with_retry
from .inventory_service import apply_sale
from .money import ZERO, compute_totals, line_amounts, to_decimal, to_money


REFUND_STATUS_NONE = "none"
REFUND_STATUS_PARTIAL = "partial"
REFUND_STATUS_FULL = "full"

LISTABLE_STATUSES = (TX_STATUS_FINALIZED, TX_STATUS_REFUNDED)


@dataclass
class FinalizeResult:
    transaction: Transaction
    payment: Payment
    change: Decimal
    skipped_item_ids: list[int]


# =============================================================================
# INTERNAL HELPERS
# =============================================================================

def _require_positive_int(value, field: str) -> int:
    if isinstance(value, bool):
        raise InvalidInputError(f"{field} must be a positive integer")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value <= 0:
        raise InvalidInputError(f"{field} must be a positive integer")
    return value


def _load_locked(transaction_id: int) -> Transaction:
    tx = lock_for_update(db.session.query(Transaction).filter_by(id=transaction_id)).first()
    if not tx:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return tx


def _lines_for(transaction_id: int) -> list[TransactionLine]:
    return (
        db.session.query(TransactionLine)
        .filter_by(transaction_id=transaction_id)
        .order_by(TransactionLine.id)
        .all()
    )


def recompute_totals(tx: Transaction) -> Transaction:
    """
    Rewrite the transaction's totals from all of its current lines.

    O(lines); there is no incremental path.
    """
    totals = compute_totals(_lines_for(tx.id))
    tx.subtotal = totals.subtotal
    tx.tax = totals.tax
    tx.total = totals.total
    return tx


def refund_status_for(lines: list[TransactionLine]) -> str:
    if not lines:
        return REFUND_STATUS_NONE
    refunded = sum(1 for line in lines if line.is_refunded)
    if refunded == len(lines):
        return REFUND_STATUS_FULL
    if refunded > 0:
        return REFUND_STATUS_PARTIAL
    return REFUND_STATUS_NONE


# =============================================================================
# OPERATIONS
# =============================================================================

def open_transaction() -> Transaction:
    """Create an open transaction with zero totals."""
    tx = Transaction(status=TX_STATUS_OPEN, subtotal=ZERO, tax=ZERO, total=ZERO)
    db.session.add(tx)
    db.session.commit()
    return tx


def add_line(transaction_id: int, barcode: str, quantity=1) -> tuple[TransactionLine, Transaction]:
    """
    Scan ``barcode`` onto an open transaction.

    Snapshots the item's price and tax rate into the line, then recomputes
    the transaction totals. Stock is untouched until finalize.

    Raises:
        InvalidInputError: quantity not a positive integer, blank barcode
        NotFoundError: transaction or active item not found
        InvalidStateError: transaction is not open
    """
    quantity = _require_positive_int(quantity, "quantity")

    def _op():
        begin_write()
        tx = _load_locked(transaction_id)
        if tx.status != TX_STATUS_OPEN:
            raise InvalidStateError(
                f"Cannot add lines to a {tx.status} transaction",
                details={"transaction_id": tx.id, "status": tx.status},
            )

        item = resolve_barcode(barcode)

        unit_price = to_money(item.price)
        tax_rate = to_decimal(item.tax_rate or 0)
        _, _, line_total = line_amounts(unit_price, quantity, tax_rate)

        line = TransactionLine(
            transaction_id=tx.id,
            item_id=item.id,
            quantity=quantity,
            unit_price=unit_price,
            tax_rate=tax_rate,
            line_total=to_money(line_total),
        )
        db.session.add(line)
        db.session.flush()

        recompute_totals(tx)
        db.session.commit()
        return line, tx

    return run_with_retry(_op)


def finalize_transaction(transaction_id: int, cash_amount) -> FinalizeResult:
    """
    Take cash for an open transaction and close it.

    Raises:
        InvalidInputError: cash missing, unparseable, or <= 0
        NotFoundError: transaction not found
        InvalidStateError: transaction is not open
        InsufficientPaymentError: cash < total
    """
    if cash_amount is None:
        raise InvalidInputError("cashAmount is required")
    try:
        cash = to_decimal(cash_amount)
    except ValueError:
        raise InvalidInputError("Invalid cash amount")
    if cash <= 0:
        raise InvalidInputError("Invalid cash amount")

    def _op():
        begin_write()
        tx = _load_locked(transaction_id)
        if tx.status != TX_STATUS_OPEN:
            raise InvalidStateError(
                "Transaction is not open",
                details={"transaction_id": tx.id, "status": tx.status},
            )

        total = to_money(tx.total)
        if cash < total:
            raise InsufficientPaymentError(
                "Insufficient cash amount",
                details={"total": f"{total:.2f}", "cash_amount": str(cash)},
            )

        tx.status = TX_STATUS_FINALIZED

        payment = Payment(transaction_id=tx.id, method=PAYMENT_METHOD_CASH, amount=to_money(cash))
        db.session.add(payment)
        db.session.flush()

        skipped = apply_sale(_lines_for(tx.id))

        db.session.commit()
        current_app.logger.info(
            "Finalized transaction %s: total=%s cash=%s", tx.id, total, cash,
        )
        return FinalizeResult(
            transaction=tx,
            payment=payment,
            change=to_money(cash - total),
            skipped_item_ids=skipped,
        )

    return run_with_retry(_op)


def cancel_transaction(transaction_id: int) -> None:
    """
    Delete an open transaction and its lines. No stock or payment effects.

    Raises:
        NotFoundError: transaction not found
        InvalidStateError: transaction is not open
    """
    def _op():
        begin_write()
        tx = _load_locked(transaction_id)
        if tx.status != TX_STATUS_OPEN:
            raise InvalidStateError(
                "Only open transactions can be cancelled",
                details={"transaction_id": tx.id, "status": tx.status},
            )
        db.session.delete(tx)
        db.session.commit()
        current_app.logger.info("Cancelled transaction %s", transaction_id)

    run_with_retry(_op)


def get_transaction(transaction_id: int) -> Transaction:
    tx = db.session.get(Transaction, transaction_id)
    if not tx:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return tx


def get_transaction_detail(transaction_id: int) -> dict:
    """Transaction with its lines, each carrying the item and refund link."""
    tx = get_transaction(transaction_id)
    lines = _lines_for(tx.id)
    data = tx.to_dict()
    data["lines"] = [line.to_dict(include_item=True) for line in lines]
    data["refundStatus"] = refund_status_for(lines)
    return data


def list_transactions(status: str | None = None, limit: int | None = None, offset: int = 0) -> list[dict]:
    """
    Sales history, newest first.

    - Only finalized/refunded transactions (or just ``status`` if given).
    - Reversal transactions (refund.refund_tx) are excluded.
    - Finalized transactions with no lines are excluded; these are the
      reversals of follow-up partial refunds, which are not linked from the
      refund record.
    - Each entry carries refundStatus: none | partial | full.
    """
    if status is not None and status not in LISTABLE_STATUSES:
        raise InvalidInputError(
            f"status must be one of {list(LISTABLE_STATUSES)}",
            details={"status": status},
        )
    if limit is None:
        limit = current_app.config.get("TRANSACTION_LIST_LIMIT", 1000)
    limit = _require_positive_int(limit, "limit")
    if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
        raise InvalidInputError("offset must be a non-negative integer")

    statuses = (status,) if status else LISTABLE_STATUSES
    reversal_ids = select(Refund.refund_tx)

    candidates = (
        db.session.query(Transaction)
        .filter(Transaction.status.in_(statuses))
        .filter(~Transaction.id.in_(reversal_ids))
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    if not candidates:
        return []

    lines_by_tx: dict[int, list[TransactionLine]] = {tx.id: [] for tx in candidates}
    rows = (
        db.session.query(TransactionLine)
        .filter(TransactionLine.transaction_id.in_(list(lines_by_tx)))
        .order_by(TransactionLine.id)
        .all()
    )
    for line in rows:
        lines_by_tx[line.transaction_id].append(line)

    result = []
    for tx in candidates:
        lines = lines_by_tx[tx.id]
        if tx.status == TX_STATUS_FINALIZED and not lines:
            continue
        data = tx.to_dict()
        data["lines"] = [line.to_dict(include_item=True) for line in lines]
        data["refundStatus"] = refund_status_for(lines)
        result.append(data)
    return result
