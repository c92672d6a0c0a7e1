"""
Inventory Routes - Flask Blueprint

Handles per-account inventory lifecycle endpoints:
- Order confirmation (all frames or a partial frame set)
- Receipt status and unreceived frames
- Frame status transitions (sold, archive, restore)

Routes are thin controllers that delegate to inventory_service for business logic.
"""

import logging

from flask import Blueprint, jsonify, request

from services import inventory_service

logger = logging.getLogger(__name__)

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.route("/<int:account_id>", methods=["GET"])
def list_inventory(account_id):
    try:
        items = inventory_service.list_inventory(account_id, status=request.args.get("status"))
        return jsonify({"success": True, "items": items, "count": len(items)})

    except Exception as e:
        logger.error(f"Inventory list error: {e}", exc_info=True)
        return jsonify({"success": False, "error": str(e)}), 500


@inventory_bp.route("/<int:account_id>/orders", methods=["GET"])
def list_orders(account_id):
    try:
        orders = inventory_service.list_orders(account_id, status=request.args.get("status"))
        return jsonify({"success": True, "orders": orders, "count": len(orders)})

    except Exception as e:
        logger.error(f"Order list error: {e}", exc_info=True)
        return jsonify({"success": False, "error": str(e)}), 500


@inventory_bp.route("/<int:account_id>/confirm/<order_number>", methods=["POST"])
def confirm_order(account_id, order_number):
    """
    Confirm receipt of an order.

    Body (optional):
        frameIds: item ids to confirm; omitted confirms every unreceived frame
        vendorName: disambiguates order numbers shared across vendors
    """
    data = request.get_json(silent=True) or {}
    try:
        result = inventory_service.confirm_order(
            account_id,
            order_number,
            frame_ids=data.get("frameIds"),
            vendor_name=data.get("vendorName"),
        )
        return jsonify(result), 200 if result["success"] else 404

    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        logger.error(f"Order confirm error: {e}", exc_info=True)
        return jsonify({"success": False, "error": str(e)}), 500


@inventory_bp.route("/<int:account_id>/receipt-status/<order_number>", methods=["GET"])
def get_receipt_status(account_id, order_number):
    try:
        status = inventory_service.get_receipt_status(
            account_id, order_number, vendor_name=request.args.get("vendorName")
        )
        if status is None:
            return jsonify({"success": False, "error": f"Order {order_number} not found"}), 404
        return jsonify({"success": True, **status})

    except Exception as e:
        logger.error(f"Receipt status error: {e}", exc_info=True)
        return jsonify({"success": False, "error": str(e)}), 500


@inventory_bp.route("/<int:account_id>/unreceived/<order_number>", methods=["GET"])
def get_unreceived(account_id, order_number):
    try:
        result = inventory_service.get_unreceived(
            account_id, order_number, vendor_name=request.args.get("vendorName")
        )
        return jsonify({"success": True, **result})

    except Exception as e:
        logger.error(f"Unreceived items error: {e}", exc_info=True)
        return jsonify({"success": False, "error": str(e)}), 500


@inventory_bp.route("/<int:account_id>/frames/mark-received", methods=["PUT"])
def mark_received(account_id):
    """
    Set or clear receipt on individual frames.

    Body:
        itemIds: item ids
        received: true (default) or false
    """
    data = request.get_json(silent=True) or {}
    try:
        result = inventory_service.mark_received(
            account_id, data.get("itemIds"), data.get("received", True)
        )
        return jsonify(result)

    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        logger.error(f"Mark received error: {e}", exc_info=True)
        return jsonify({"success": False, "error": str(e)}), 500


@inventory_bp.route("/<int:account_id>/<int:item_id>/<action>", methods=["PUT"])
def transition_item(account_id, item_id, action):
    """Mark a frame sold, archive it, or restore it."""
    try:
        changed = inventory_service.transition_item(account_id, item_id, action)
        if not changed:
            return jsonify({"success": False, "error": f"Cannot {action} item {item_id}"}), 409
        return jsonify({"success": True, "item_id": item_id, "action": action})

    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        logger.error(f"Inventory transition error: {e}", exc_info=True)
        return jsonify({"success": False, "error": str(e)}), 500
