# Overview: Flask API routes for the item catalog and barcode lookup.

# backend/simplepos/routes/items.py
"""Item catalog routes"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import PosError
from ..services import catalog_service


items_bp = Blueprint("items", __name__, url_prefix="/api")


@items_bp.post("/barcode/lookup")
def barcode_lookup_route():
    """Resolve a barcode to an active item id."""
    data = request.get_json(silent=True) or {}
    try:
        item = catalog_service.resolve_barcode(data.get("barcode"))
        return jsonify({"item_id": item.id}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@items_bp.get("/items")
def list_items_route():
    """Active items with their barcodes, newest first."""
    items = catalog_service.list_active_items()
    return jsonify([item.to_dict() for item in items]), 200


@items_bp.get("/items/<int:item_id>")
def get_item_route(item_id: int):
    try:
        return jsonify(catalog_service.get_item(item_id).to_dict()), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@items_bp.post("/items")
def create_item_route():
    """
    Create an item.

    Request body:
    {
        "name": "Coca Cola",
        "price": 2.99,
        "tax_rate": 0.0875,  (optional, default: 0)
        "quantity": 24,  (optional, default: 0)
        "cost": 1.50,  (optional, default: 0)
        "pack_size": 1,  (optional, default: 1)
        "barcodes": ["123"]
    }
    """
    try:
        item = catalog_service.create_item(request.get_json(silent=True))
        return jsonify(item.to_dict()), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create item")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.put("/items/<int:item_id>")
def update_item_route(item_id: int):
    try:
        item = catalog_service.update_item(item_id, request.get_json(silent=True) or {})
        return jsonify(item.to_dict()), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update item")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.delete("/items/<int:item_id>")
def deactivate_item_route(item_id: int):
    """Soft delete."""
    try:
        item = catalog_service.deactivate_item(item_id)
        return jsonify({"message": "Item deleted successfully", "item": item.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
