# Overview: Flask API routes for transactions; parses input and returns JSON responses.

# backend/simplepos/routes/transactions.py
"""Transaction lifecycle and refund API routes"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import PosError
from ..services import transaction_service, refund_service
from ..services.money import format_money


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _error_response(e: PosError):
    return jsonify(e.to_dict()), e.status_code


@transactions_bp.post("")
def open_transaction_route():
    """Open a new transaction with zero totals."""
    try:
        tx = transaction_service.open_transaction()
        return jsonify(tx.to_dict()), 201
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("")
def list_transactions_route():
    """
    Sales history for reports.

    Query params:
    - status: finalized | refunded (optional)
    - limit: int (optional, default TRANSACTION_LIST_LIMIT)
    - offset: int (optional, default 0)
    """
    try:
        status = request.args.get("status") or None
        limit = request.args.get("limit", type=int)
        offset = request.args.get("offset", default=0, type=int)

        transactions = transaction_service.list_transactions(status=status, limit=limit, offset=offset)
        return jsonify(transactions), 200

    except PosError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/<int:transaction_id>")
def get_transaction_route(transaction_id: int):
    """Transaction with its lines and refund links."""
    try:
        return jsonify(transaction_service.get_transaction_detail(transaction_id)), 200
    except PosError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.delete("/<int:transaction_id>")
def cancel_transaction_route(transaction_id: int):
    """Cancel (delete) an open transaction."""
    try:
        transaction_service.cancel_transaction(transaction_id)
        return jsonify({"message": "Transaction cancelled successfully"}), 200
    except PosError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<int:transaction_id>/lines")
def add_line_route(transaction_id: int):
    """
    Scan an item onto an open transaction.

    Request body:
    {
        "barcode": "123",
        "quantity": 1  (optional, default: 1)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        barcode = data.get("barcode")
        quantity = data.get("quantity", 1)

        if not barcode:
            return jsonify({"error": "Barcode is required"}), 400

        line, tx = transaction_service.add_line(transaction_id, barcode, quantity)

        return jsonify({"line": line.to_dict(), "transaction": tx.to_dict()}), 201

    except PosError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add transaction line")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<int:transaction_id>/finalize")
def finalize_transaction_route(transaction_id: int):
    """
    Finalize with cash.

    Request body:
    {
        "cashAmount": 5.00
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        result = transaction_service.finalize_transaction(transaction_id, data.get("cashAmount"))

        return jsonify({
            "transaction": result.transaction.to_dict(),
            "payment": result.payment.to_dict(),
            "change": format_money(result.change),
        }), 200

    except PosError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to finalize transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<int:transaction_id>/refund")
def refund_transaction_route(transaction_id: int):
    """
    Refund some or all lines of a finalized transaction.

    Request body:
    {
        "lineIds": [12, 13]
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        result = refund_service.refund_transaction(transaction_id, data.get("lineIds"))

        return jsonify({
            "refundAmount": format_money(result.refund_amount),
            "refundId": result.refund_id,
            "isPartial": result.is_partial,
            "originalTransaction": result.original_transaction.to_dict(),
            "refundTransaction": result.refund_transaction.to_dict(),
        }), 200

    except PosError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to refund transaction")
        return jsonify({"error": "Internal server error"}), 500
