# Overview: Service-layer operations for inventory; applies on-hand quantity deltas.

"""
Inventory Reconciler

Inventory here is a mutable on-hand counter on Item, not a ledger.

INVARIANTS:
- Sale decrements are floored at zero; finalize never fails for lack of stock.
- Refund increments are unbounded.
- Each item is applied independently inside its own SAVEPOINT. A failure for
  one item (missing row, DB error) is rolled back to that savepoint, logged,
  and skipped; the remaining items and the caller's ledger transition proceed.
- Nothing here commits. The caller owns the surrounding DB transaction.
"""

from __future__ import annotations

from typing import Callable, Iterable

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Item
from .concurrency import lock_for_update


class InventoryError(Exception):
    """Raised when a single item's quantity cannot be adjusted."""
    pass


def _load_item(item_id: int) -> Item:
    item = lock_for_update(db.session.query(Item).filter_by(id=item_id)).first()
    if not item:
        raise InventoryError(f"Item {item_id} not found")
    return item


def decrement_item_quantity(item_id: int, quantity: int) -> Item:
    """quantity = max(0, quantity - sold)."""
    item = _load_item(item_id)
    current = item.quantity or 0
    item.quantity = max(0, current - int(quantity))
    db.session.flush()
    return item


def increment_item_quantity(item_id: int, quantity: int) -> Item:
    """quantity = quantity + returned."""
    item = _load_item(item_id)
    item.quantity = (item.quantity or 0) + int(quantity)
    db.session.flush()
    return item


def _apply_each(lines: Iterable, op: Callable[[int, int], Item], action: str) -> list[int]:
    skipped: list[int] = []
    for line in lines:
        savepoint = db.session.begin_nested()
        try:
            op(line.item_id, line.quantity)
            savepoint.commit()
        except (InventoryError, SQLAlchemyError) as exc:
            savepoint.rollback()
            skipped.append(line.item_id)
            current_app.logger.warning(
                "Inventory %s skipped for item %s (line %s, qty %s): %s",
                action, line.item_id, getattr(line, "id", None), line.quantity, exc,
            )
    return skipped


def apply_sale(lines: Iterable) -> list[int]:
    """
    Decrement stock for every sold line.

    Returns item ids whose adjustment was skipped.
    """
    return _apply_each(lines, decrement_item_quantity, "decrement")


def apply_refund(lines: Iterable) -> list[int]:
    """
    Restore stock for every refunded line.

    Returns item ids whose adjustment was skipped.
    """
    return _apply_each(lines, increment_item_quantity, "increment")
