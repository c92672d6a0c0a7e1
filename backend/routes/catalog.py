"""
Catalog Routes - Flask Blueprint

Handles shared vendor catalog endpoints:
- Cache check and write-back for parsed items
- Catalog statistics and per-vendor analytics

Routes are thin controllers that delegate to catalog_service for business logic.
"""

import logging

from flask import Blueprint, jsonify, request

from services import catalog_service

logger = logging.getLogger(__name__)

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


@catalog_bp.route("/check", methods=["POST"])
def check_catalog():
    """
    Look up parsed items in the catalog.

    Body:
        vendorId, items[]

    Returns:
        {success, items, cacheHits, cacheMisses, hitRate, vendorIdMissing}
    """
    data = request.get_json(silent=True) or {}
    try:
        result = catalog_service.check_items(data.get("vendorId"), data.get("items", []))
        return jsonify({"success": True, **result})

    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        logger.error(f"Catalog check error: {e}", exc_info=True)
        return jsonify({"success": False, "error": str(e)}), 500


@catalog_bp.route("/cache", methods=["POST"])
def cache_items():
    """
    Write enriched items into the catalog.

    Body:
        vendorId, vendorName, items[]

    Returns:
        {success, cached, updated, skipped}
    """
    data = request.get_json(silent=True) or {}
    try:
        stats = catalog_service.cache_items(
            data.get("vendorId"), data.get("vendorName"), data.get("items", [])
        )
        return jsonify({"success": True, **stats})

    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        logger.error(f"Catalog cache error: {e}", exc_info=True)
        return jsonify({"success": False, "error": str(e)}), 500


@catalog_bp.route("/stats", methods=["GET"])
def get_stats():
    try:
        return jsonify({"success": True, "stats": catalog_service.get_stats()})

    except Exception as e:
        logger.error(f"Catalog stats error: {e}", exc_info=True)
        return jsonify({"success": False, "error": str(e)}), 500


@catalog_bp.route("/vendor/<int:vendor_id>", methods=["GET"])
def get_vendor_analytics(vendor_id):
    try:
        analytics = catalog_service.get_vendor_analytics(vendor_id)
        if analytics is None:
            return jsonify({"success": False, "error": "Vendor not found"}), 404
        return jsonify({"success": True, **analytics})

    except Exception as e:
        logger.error(f"Vendor analytics error: {e}", exc_info=True)
        return jsonify({"success": False, "error": str(e)}), 500


@catalog_bp.route("/entries", methods=["GET"])
def get_entries():
    """List catalog entries, optionally filtered by vendorId and brand."""
    try:
        entries = catalog_service.get_entries(
            vendor_id=request.args.get("vendorId", type=int),
            brand=request.args.get("brand"),
            limit=request.args.get("limit", 100, type=int),
        )
        return jsonify({"success": True, "entries": entries, "count": len(entries)})

    except Exception as e:
        logger.error(f"Catalog entries error: {e}", exc_info=True)
        return jsonify({"success": False, "error": str(e)}), 500
