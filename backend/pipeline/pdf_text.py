"""
PDF Text Extraction

Vendors that send the order as a PDF attachment (Safilo, Etnia Barcelona)
are parsed from the attachment's page text.
"""

import io
from typing import Optional

import pdfplumber

from pipeline.logging_config import get_logger
from pipeline.types import Attachment

logger = get_logger(__name__)


def extract_text_from_pdf(pdf_bytes: bytes) -> Optional[str]:
    """
    Extract text content from a PDF file.

    Args:
        pdf_bytes: Raw PDF file content

    Returns:
        Page text joined by newlines, or None if extraction fails
    """
    if not pdf_bytes:
        return None

    try:
        with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
            text_parts = []
            for page in pdf.pages:
                page_text = page.extract_text()
                if page_text:
                    text_parts.append(page_text)
            return "\n".join(text_parts)
    except Exception as e:
        logger.warning(f"PDF extraction error: {e}", extra={"stage": "pdf_extract"})
        return None


def first_pdf_attachment(attachments: list[Attachment]) -> Optional[bytes]:
    """Return the decoded bytes of the first PDF attachment, if any."""
    for attachment in attachments or []:
        if not attachment.is_pdf:
            continue
        data = attachment.decode()
        if data:
            return data
    return None
