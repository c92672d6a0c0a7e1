"""
Email Service - Business Logic

Entry points for running vendor order emails through the pipeline:
- Synchronous processing (process_email)
- Background processing via Celery (queue_email, get_job_status)
- Vendor detection only (detect_vendor)

Separates business logic from HTTP routing concerns.
"""

import logging
from datetime import datetime

import cache_manager
import database
from pipeline.detector import VendorDetector
from pipeline.normalizer import normalize_email_html, normalize_plain_text
from pipeline.orchestrator import detection_body, process_vendor_email
from pipeline.types import InboundEmail

logger = logging.getLogger(__name__)


def _inbound_email(payload: dict) -> InboundEmail:
    """
    Build an InboundEmail from a request payload.

    Raises:
        ValueError: If the payload is not an object or has no sender
    """
    if not isinstance(payload, dict):
        raise ValueError("Request body must be a JSON object")
    email = InboundEmail.from_dict(payload)
    if not email.sender:
        raise ValueError("sender is required")
    return email


def process_email(payload: dict, account_id: int = None, persist: bool = True) -> dict:
    """
    Run one email through the pipeline.

    Args:
        payload: {sender, subject, html, text, attachments[{filename, content_type, data}]}
        account_id: Tenant to save the order for (optional)
        persist: Save the order and processed-email log

    Returns:
        Pipeline result dict (success False carries error{code, reason, stage})
    """
    result = process_vendor_email(_inbound_email(payload), account_id=account_id, persist=persist)

    if result.stats.get("cached") or result.stats.get("updated"):
        cache_manager.cache_invalidate_catalog()

    return result.to_dict()


def queue_email(payload: dict, account_id: int = None) -> dict:
    """Dispatch processing to a Celery worker."""
    _inbound_email(payload)

    from tasks.email_tasks import process_vendor_email_task

    task = process_vendor_email_task.apply_async(args=[payload, account_id])
    return {
        "job_id": task.id,
        "status": "queued",
        "queued_at": datetime.now().isoformat(),
    }


def get_job_status(job_id: str) -> dict:
    """
    Get processing job status by Celery task ID.

    Returns:
        Job status dict; '_http_status' is set for unknown jobs
    """
    from celery.result import AsyncResult
    from celery_app import celery_app

    task = AsyncResult(job_id, app=celery_app)

    if task.state == "PENDING":
        return {
            "job_id": job_id,
            "status": "pending",
            "message": "Job not found or not started",
            "_http_status": 404,
        }
    if task.state == "SUCCESS":
        return {"job_id": job_id, "status": "completed", "result": task.result}
    if task.state == "FAILURE":
        return {"job_id": job_id, "status": "failed", "error": str(task.info)}
    return {"job_id": job_id, "status": task.state.lower()}


def detect_vendor(payload: dict) -> dict:
    """Classify an email without parsing it."""
    email = _inbound_email(payload)
    html = normalize_email_html(email.html).cleaned_html if email.html else ""
    body = detection_body(html, normalize_plain_text(email.text) if email.text else "")

    detector = VendorDetector(database.get_vendor_identities())
    return detector.detect(email.sender, email.subject, body).to_dict()
