# Overview: Service-layer operations for the item catalog; barcode resolution and item maintenance.

"""
Item Catalog

The ledger only needs resolve_barcode(): scan -> active Item. The rest is
plain catalog maintenance used by the items API.

RULES:
- A barcode belongs to exactly one item (unique across the table).
- Only active items resolve. Deactivation is a soft delete; history that
  references the item stays intact.
"""

from __future__ import annotations

from flask import current_app

from ..errors import InvalidInputError, NotFoundError
from ..extensions import db
from ..models import Item, ItemBarcode
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_item,
    normalize_barcodes,
    validate_payload,
)

ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"name", "price", "tax_rate", "quantity", "cost", "pack_size", "barcodes"},
    required_on_create={"name", "price", "barcodes"},
)


# =============================================================================
# READS
# =============================================================================

def resolve_barcode(barcode: str) -> Item:
    """
    Resolve a scanned barcode to its active item.

    Raises:
        InvalidInputError: blank barcode
        NotFoundError: unknown barcode, or the item is inactive
    """
    if isinstance(barcode, int) and not isinstance(barcode, bool):
        barcode = str(barcode)
    code = barcode.strip() if isinstance(barcode, str) else ""
    if not code:
        raise InvalidInputError("Barcode is required")

    row = db.session.query(ItemBarcode).filter_by(barcode=code).first()
    if not row:
        raise NotFoundError("Barcode not found", details={"barcode": code})

    item = row.item
    if not item or not item.is_active:
        raise NotFoundError("Item is inactive", details={"barcode": code})

    return item


def get_item(item_id: int) -> Item:
    item = db.session.get(Item, item_id)
    if not item:
        raise NotFoundError(f"Item {item_id} not found")
    return item


def list_active_items() -> list[Item]:
    """Active items, newest first."""
    return (
        db.session.query(Item)
        .filter(Item.is_active.is_(True))
        .order_by(Item.created_at.desc(), Item.id.desc())
        .all()
    )


# =============================================================================
# MAINTENANCE
# =============================================================================

def _ensure_barcodes_free(codes: list[str], item_id: int | None = None) -> None:
    query = db.session.query(ItemBarcode).filter(ItemBarcode.barcode.in_(codes))
    if item_id is not None:
        query = query.filter(ItemBarcode.item_id != item_id)
    taken = sorted(row.barcode for row in query.all())
    if taken:
        raise InvalidInputError("Barcode already assigned to another item", details={"barcodes": taken})


def create_item(payload: dict) -> Item:
    """
    Create an active item with at least one barcode.

    Raises:
        InvalidInputError: missing/invalid fields or a barcode already in use
    """
    patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=False)
    enforce_rules_item(patch)
    codes = normalize_barcodes(payload.get("barcodes"))
    _ensure_barcodes_free(codes)

    patch.setdefault("tax_rate", 0)
    patch.setdefault("quantity", 0)
    patch.setdefault("cost", 0)
    patch.setdefault("pack_size", 1)

    item = Item(is_active=True, **patch)
    item.barcodes = [ItemBarcode(barcode=code) for code in codes]

    db.session.add(item)
    db.session.commit()
    current_app.logger.info("Created item %s (%s) with %d barcode(s)", item.id, item.name, len(codes))
    return item


def update_item(item_id: int, payload: dict) -> Item:
    """
    Partial update. If ``barcodes`` is present it replaces the item's set and
    must not be empty.
    """
    item = get_item(item_id)
    patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=True)
    enforce_rules_item(patch)

    for key, value in patch.items():
        setattr(item, key, value)

    if payload and "barcodes" in payload:
        codes = normalize_barcodes(payload.get("barcodes"))
        _ensure_barcodes_free(codes, item_id=item.id)
        item.barcodes.clear()
        db.session.flush()
        item.barcodes.extend(ItemBarcode(barcode=code) for code in codes)

    db.session.commit()
    return item


def deactivate_item(item_id: int) -> Item:
    """Soft delete: the item stops resolving but keeps its history."""
    item = get_item(item_id)
    item.is_active = False
    db.session.commit()
    current_app.logger.info("Deactivated item %s", item.id)
    return item
