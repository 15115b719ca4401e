from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .catalog import _fmt_money


TX_STATUS_OPEN = "open"
TX_STATUS_FINALIZED = "finalized"
TX_STATUS_REFUNDED = "refunded"

PAYMENT_METHOD_CASH = "cash"


class Transaction(db.Model):
    """
    Sale (or reversal) document.

    LIFECYCLE:
    - open: lines may be appended; may be cancelled (deleted)
    - finalized: paid, irreversible; lines may be refunded
    - refunded: every line has been refunded

    TOTALS: subtotal/tax/total are derived from the lines and are rewritten
    from a full recompute on every line mutation. total == subtotal + tax.

    Reversal transactions produced by a refund are created finalized and
    carry no lines of their own.
    """
    __tablename__ = "pos_transaction"
    __table_args__ = (
        db.Index("ix_pos_transaction_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    status = db.Column(db.String(16), nullable=False, default=TX_STATUS_OPEN)

    subtotal = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    lines = db.relationship(
        "TransactionLine",
        back_populates="transaction",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="TransactionLine.id",
    )
    payments = db.relationship(
        "Payment",
        back_populates="transaction",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="Payment.id",
    )

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} status={self.status} total={self.total}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "subtotal": _fmt_money(self.subtotal),
            "tax": _fmt_money(self.tax),
            "total": _fmt_money(self.total),
            "created_at": to_utc_z(self.created_at),
        }


class TransactionLine(db.Model):
    """
    One item/quantity entry on a transaction.

    unit_price and tax_rate are a snapshot taken when the line is added, so
    later catalog edits never change a recorded sale. Monetary fields are
    written once; refunded_by goes from NULL to a Refund id exactly once.
    """
    __tablename__ = "transaction_line"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_transaction_line_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(
        db.Integer,
        db.ForeignKey("pos_transaction.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    item_id = db.Column(db.Integer, db.ForeignKey("item.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    tax_rate = db.Column(db.Numeric(6, 4), nullable=False)
    line_total = db.Column(db.Numeric(10, 2), nullable=False)

    refunded_by = db.Column(db.Integer, db.ForeignKey("refund.id"), nullable=True, index=True)

    transaction = db.relationship("Transaction", back_populates="lines")
    item = db.relationship("Item")

    @property
    def is_refunded(self) -> bool:
        return self.refunded_by is not None

    def to_dict(self, include_item: bool = False) -> dict:
        data = {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "item_id": self.item_id,
            "quantity": self.quantity,
            "unit_price": _fmt_money(self.unit_price),
            "tax_rate": str(self.tax_rate) if self.tax_rate is not None else None,
            "line_total": _fmt_money(self.line_total),
            "refunded_by": self.refunded_by,
        }
        if include_item:
            data["item"] = (
                {"id": self.item.id, "name": self.item.name, "is_active": self.item.is_active}
                if self.item else None
            )
        return data


class Refund(db.Model):
    """
    Link between a sale and its reversal.

    At most one per original transaction: the first refund creates it, later
    partial refunds of the same sale reuse its id. refund_tx points at the
    reversal transaction produced by that first refund.
    """
    __tablename__ = "refund"
    __table_args__ = (
        db.UniqueConstraint("original_tx", name="uq_refund_original_tx"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    original_tx = db.Column(db.Integer, db.ForeignKey("pos_transaction.id"), nullable=False)
    refund_tx = db.Column(db.Integer, db.ForeignKey("pos_transaction.id"), nullable=False, index=True)

    original_transaction = db.relationship("Transaction", foreign_keys=[original_tx])
    refund_transaction = db.relationship("Transaction", foreign_keys=[refund_tx])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "original_tx": self.original_tx,
            "refund_tx": self.refund_tx,
        }


class Payment(db.Model):
    """
    Append-only cash movement.

    Positive amount for a sale, negative for a refund. Never updated.
    """
    __tablename__ = "payment"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(
        db.Integer,
        db.ForeignKey("pos_transaction.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    method = db.Column(db.String(16), nullable=False, default=PAYMENT_METHOD_CASH)
    amount = db.Column(db.Numeric(10, 2), nullable=False)

    transaction = db.relationship("Transaction", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "method": self.method,
            "amount": _fmt_money(self.amount),
        }
