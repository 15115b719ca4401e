# Overview: Service-layer operations for refunds; partial/full reversal of finalized sales.

"""
Refund Engine

A refund reverses selected lines of a finalized sale:

1. A reversal transaction is created directly as finalized, with totals equal
   to the refunded amounts and no lines of its own.
2. The sale's single Refund record is fetched or created. Every partial
   refund of the same sale shares that record's id.
3. Each refunded line gets refunded_by = refund id. This happens once per
   line; a line that already carries a refund id can never be selected again.
4. Stock for the refunded lines is restored (best-effort, per item).
5. Once every line of the sale is refunded, the sale moves to refunded.
6. A negative cash Payment is booked on the reversal transaction
   (best-effort: a failure is logged and the refund still completes).

All of the above commits as one DB transaction while holding the write lock
on the original sale.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import InvalidInputError, InvalidStateError, NotFoundError
from ..extensions import db
from ..models import Payment, Refund, Transaction, TransactionLine
from ..models.transactions import PAYMENT_METHOD_CASH, TX_STATUS_FINALIZED, TX_STATUS_REFUNDED
from .concurrency import begin_write, lock_for_update, run_with_retry
from .inventory_service import apply_refund
from .money import compute_totals


@dataclass
class RefundResult:
    refund_id: int
    refund_amount: Decimal
    is_partial: bool
    original_transaction: Transaction
    refund_transaction: Transaction
    refunded_line_ids: list[int]
    skipped_item_ids: list[int]
    payment: Payment | None = None


def _normalize_line_ids(line_ids) -> list[int]:
    if not isinstance(line_ids, (list, tuple)) or not line_ids:
        raise InvalidInputError("lineIds array is required")
    normalized: list[int] = []
    for value in line_ids:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidInputError("lineIds must be integers", details={"line_id": value})
        if value not in normalized:
            normalized.append(value)
    return normalized


def get_or_create_refund_record(original_tx_id: int, refund_tx_id: int) -> Refund:
    """
    Return the sale's Refund record, creating it on the first refund.

    Safe to call repeatedly (idempotent per original transaction). The
    stored refund_tx stays the reversal of the first refund.
    """
    record = db.session.query(Refund).filter_by(original_tx=original_tx_id).first()
    if record:
        return record

    record = Refund(original_tx=original_tx_id, refund_tx=refund_tx_id)
    db.session.add(record)
    db.session.flush()
    return record


def _record_refund_payment(refund_tx: Transaction, amount: Decimal) -> Payment | None:
    savepoint = db.session.begin_nested()
    try:
        payment = Payment(transaction_id=refund_tx.id, method=PAYMENT_METHOD_CASH, amount=-amount)
        db.session.add(payment)
        db.session.flush()
        savepoint.commit()
        return payment
    except SQLAlchemyError:
        savepoint.rollback()
        current_app.logger.warning(
            "Refund payment record failed for reversal transaction %s", refund_tx.id, exc_info=True,
        )
        return None


def refund_transaction(original_transaction_id: int, line_ids) -> RefundResult:
    """
    Refund the given lines of a finalized transaction.

    Raises:
        InvalidInputError: empty selection, unknown line ids, or lines already refunded
        NotFoundError: original transaction not found
        InvalidStateError: original transaction is not finalized
    """
    selected_ids = _normalize_line_ids(line_ids)

    def _op():
        begin_write()
        original = lock_for_update(
            db.session.query(Transaction).filter_by(id=original_transaction_id)
        ).first()
        if not original:
            raise NotFoundError(f"Transaction {original_transaction_id} not found")

        if original.status != TX_STATUS_FINALIZED:
            raise InvalidStateError(
                "Only finalized transactions can be refunded",
                details={"transaction_id": original.id, "status": original.status},
            )

        all_lines = lock_for_update(
            db.session.query(TransactionLine)
            .filter_by(transaction_id=original.id)
            .order_by(TransactionLine.id)
        ).all()
        by_id = {line.id: line for line in all_lines}

        unknown = [line_id for line_id in selected_ids if line_id not in by_id]
        if unknown:
            raise InvalidInputError(
                "Some selected lines do not exist on this transaction",
                details={"line_ids": unknown},
            )

        selected = [by_id[line_id] for line_id in selected_ids]
        already = [line.id for line in selected if line.is_refunded]
        if already:
            raise InvalidInputError(
                "Some selected lines have already been refunded",
                details={"line_ids": already},
            )

        totals = compute_totals(selected)

        reversal = Transaction(
            status=TX_STATUS_FINALIZED,
            subtotal=totals.subtotal,
            tax=totals.tax,
            total=totals.total,
        )
        db.session.add(reversal)
        db.session.flush()

        record = get_or_create_refund_record(original.id, reversal.id)

        for line in selected:
            line.refunded_by = record.id
        db.session.flush()

        skipped = apply_refund(selected)

        remaining = [line for line in all_lines if not line.is_refunded]
        if not remaining:
            original.status = TX_STATUS_REFUNDED

        payment = _record_refund_payment(reversal, totals.total)

        db.session.commit()
        current_app.logger.info(
            "Refunded %d line(s) of transaction %s as %s (refund %s, amount %s, partial=%s)",
            len(selected), original.id, reversal.id, record.id, totals.total, bool(remaining),
        )
        return RefundResult(
            refund_id=record.id,
            refund_amount=totals.total,
            is_partial=bool(remaining),
            original_transaction=original,
            refund_transaction=reversal,
            refunded_line_ids=[line.id for line in selected],
            skipped_item_ids=skipped,
            payment=payment,
        )

    return run_with_retry(_op)
