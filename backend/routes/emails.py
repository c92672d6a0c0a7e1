"""
Email Routes - Flask Blueprint

Handles vendor order email endpoints:
- Synchronous pipeline run
- Background processing and job status
- Vendor detection

Routes are thin controllers that delegate to email_service for business logic.
"""

import logging

from flask import Blueprint, jsonify, request

from services import email_service

logger = logging.getLogger(__name__)

emails_bp = Blueprint("emails", __name__, url_prefix="/api/emails")


def _account_id(data: dict):
    value = data.get("accountId", data.get("account_id"))
    return int(value) if value not in (None, "") else None


@emails_bp.route("/process", methods=["POST"])
def process_email():
    """
    Run an email through the pipeline.

    Body:
        sender, subject, html, text, attachments[], accountId (optional),
        persist (optional, default true)

    Returns:
        Pipeline result; 422 when the pipeline reported a failure
    """
    data = request.get_json(silent=True) or {}
    try:
        result = email_service.process_email(
            data,
            account_id=_account_id(data),
            persist=bool(data.get("persist", True)),
        )
        return jsonify(result), 200 if result["success"] else 422

    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        logger.error(f"Email processing error: {e}", exc_info=True)
        return jsonify({"success": False, "error": str(e)}), 500


@emails_bp.route("/process-async", methods=["POST"])
def process_email_async():
    """Queue an email for background processing."""
    data = request.get_json(silent=True) or {}
    try:
        job = email_service.queue_email(data, account_id=_account_id(data))
        return jsonify(job), 202

    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        logger.error(f"Email queue error: {e}", exc_info=True)
        return jsonify({"success": False, "error": str(e)}), 500


@emails_bp.route("/jobs/<job_id>", methods=["GET"])
def get_job_status(job_id):
    try:
        status = email_service.get_job_status(job_id)
        http_status = status.pop("_http_status", 200)
        return jsonify(status), http_status

    except Exception as e:
        logger.error(f"Job status error: {e}", exc_info=True)
        return jsonify({"success": False, "error": str(e)}), 500


@emails_bp.route("/detect-vendor", methods=["POST"])
def detect_vendor():
    """
    Classify an email to a vendor.

    Returns:
        {vendor, vendorName, vendorId, confidence, tier, needsManualReview, reason, candidates}
    """
    data = request.get_json(silent=True) or {}
    try:
        return jsonify(email_service.detect_vendor(data))

    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        logger.error(f"Vendor detection error: {e}", exc_info=True)
        return jsonify({"success": False, "error": str(e)}), 500
