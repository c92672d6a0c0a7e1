"""Celery tasks for vendor order email processing."""

from celery_app import celery_app


@celery_app.task(bind=True, time_limit=600, soft_time_limit=540)
def process_vendor_email_task(self, payload: dict, account_id: int = None):
    """
    Celery task to run one email through the pipeline in the background.

    Args:
        payload: Inbound email dict (sender, subject, html, text, attachments)
        account_id: Tenant to save the order for (optional)

    Returns:
        dict: Pipeline result (see PipelineResult.to_dict)
    """
    from services.email_service import process_email

    self.update_state(
        state="STARTED",
        meta={"status": "processing", "sender": payload.get("sender") or payload.get("from")},
    )
    return process_email(payload, account_id=account_id)
