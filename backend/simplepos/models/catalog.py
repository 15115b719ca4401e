from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Item(db.Model):
    """
    Catalog item.

    The sales engine only reads price/tax_rate/quantity and mutates quantity.
    Everything else is owned by catalog maintenance.

    MONEY: price and cost are Numeric(10, 2) and come back as Decimal.
    tax_rate is a fraction (0.0875 == 8.75%).
    """
    __tablename__ = "item"
    __table_args__ = (
        db.Index("ix_item_active_created", "is_active", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    price = db.Column(db.Numeric(10, 2), nullable=False)
    tax_rate = db.Column(db.Numeric(6, 4), nullable=False, default=0)

    # On-hand quantity; floored at zero by the inventory reconciler on sale
    quantity = db.Column(db.Integer, nullable=False, default=0)

    cost = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    pack_size = db.Column(db.Integer, nullable=False, default=1)

    # Soft delete: inactive items keep their history but cannot be scanned
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    barcodes = db.relationship(
        "ItemBarcode",
        back_populates="item",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ItemBarcode.id",
    )

    def __repr__(self) -> str:
        return f"<Item id={self.id} name={self.name!r} active={self.is_active}>"

    def to_dict(self, include_barcodes: bool = True) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "price": _fmt_money(self.price),
            "tax_rate": str(self.tax_rate) if self.tax_rate is not None else None,
            "quantity": self.quantity,
            "cost": _fmt_money(self.cost),
            "pack_size": self.pack_size,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
        if include_barcodes:
            data["barcodes"] = [b.barcode for b in self.barcodes]
        return data


class ItemBarcode(db.Model):
    """One scannable code for an item. A barcode maps to exactly one item."""
    __tablename__ = "item_barcode"
    __table_args__ = (
        db.UniqueConstraint("barcode", name="uq_item_barcode_barcode"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("item.id", ondelete="CASCADE"), nullable=False, index=True)
    barcode = db.Column(db.String(128), nullable=False)

    item = db.relationship("Item", back_populates="barcodes")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "barcode": self.barcode,
        }


def _fmt_money(value) -> str | None:
    if value is None:
        return None
    return f"{value:.2f}"
