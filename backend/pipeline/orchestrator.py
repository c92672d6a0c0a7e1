"""
Vendor Email Pipeline

Runs one inbound email through every stage:

    validate -> normalize -> detect -> select parser -> [PDF text] -> parse
    -> catalog check -> enrich misses -> catalog write -> persist -> log

Each email is an independent unit and stages run sequentially; only
enrichment fans out (bounded thread-pool batches). The run never raises:
PipelineError subclasses and unexpected exceptions become a structured
failure on the returned PipelineResult.
"""

from dataclasses import dataclass, field
from typing import Optional

from bs4 import BeautifulSoup

import database
from config import PipelineConfig, load_pipeline_config
from pipeline.detector import AMBIGUOUS_VENDOR, DetectionResult, VendorDetector
from pipeline.enrichment import EnrichmentAdapter, run_enrichment
from pipeline.errors import (
    AmbiguousVendorError,
    ErrorStage,
    MissingAttachmentError,
    MissingContentError,
    NoItemsParsedError,
    ParserNotFoundError,
    PipelineFailure,
    UnknownVendorError,
)
from pipeline.logging_config import get_logger
from pipeline.normalizer import normalize_email_html, normalize_plain_text
from pipeline.pdf_text import extract_text_from_pdf, first_pdf_attachment
from pipeline.reconciliation import check_catalog
from pipeline.types import InboundEmail, ParsedLineItem, ParsedOrder, ParserInput
from pipeline.vendor_parsers import get_parser

logger = get_logger(__name__)


@dataclass
class PipelineResult:
    """Outcome of one email run."""

    success: bool = False
    detection: Optional[DetectionResult] = None
    vendor_id: Optional[int] = None
    order: Optional[ParsedOrder] = None
    items: list[ParsedLineItem] = field(default_factory=list)
    stats: dict = field(default_factory=dict)
    diagnostics: list[str] = field(default_factory=list)
    parse_method: Optional[str] = None
    failure: Optional[PipelineFailure] = None
    order_id: Optional[int] = None
    duplicate: bool = False
    email_log_id: Optional[int] = None

    @property
    def vendor_code(self) -> Optional[str]:
        return self.detection.vendor_code if self.detection else None

    @property
    def vendor_name(self) -> Optional[str]:
        return self.detection.vendor_name if self.detection else None

    @property
    def parse_status(self) -> str:
        if self.success:
            return "parsed"
        if self.failure and self.failure.manual_review:
            return "manual_review"
        return "failed"

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "vendorId": self.vendor_id,
            "vendor": self.vendor_code,
            "vendorName": self.vendor_name,
            "detection": self.detection.to_dict() if self.detection else None,
            "order": self.order.to_record() if self.order else None,
            "items": [item.to_record() for item in self.items],
            "stats": self.stats,
            "diagnostics": self.diagnostics,
            "parseMethod": self.parse_method,
            "orderId": self.order_id,
            "duplicate": self.duplicate,
            "error": self.failure.to_dict() if self.failure else None,
        }


def detection_body(html: str, text: str) -> str:
    """Visible HTML text plus the raw HTML and plain text.

    Signatures can sit in markup (links, image alts) as well as in text.
    """
    parts = []
    if html:
        parts.append(BeautifulSoup(html, "html.parser").get_text(" "))
        parts.append(html)
    if text:
        parts.append(text)
    return "\n".join(parts)


def _persistence_record(result: PipelineResult) -> dict:
    record = result.to_dict()
    record["items"] = [
        {**item.to_record(), "catalog_id": item.catalog_id, "sku": item.sku}
        for item in result.items
    ]
    return record


def _base_stats() -> dict:
    return {
        "cache_hits": 0,
        "cache_misses": 0,
        "hit_rate": 0.0,
        "enriched": 0,
        "enrichment_failed": 0,
        "cached": 0,
        "updated": 0,
        "skipped": 0,
    }


def process_vendor_email(
    email: InboundEmail,
    account_id: Optional[int] = None,
    persist: bool = True,
    adapters: Optional[dict[str, EnrichmentAdapter]] = None,
    config: Optional[PipelineConfig] = None,
    detector: Optional[VendorDetector] = None,
) -> PipelineResult:
    """
    Process one vendor order email end to end.

    Args:
        email: Inbound email record
        account_id: Tenant to persist the order for (None skips persistence)
        persist: Write the order and the processed-email log
        adapters: Enrichment adapter overrides keyed by vendor code
        config: Pipeline config (loaded from the environment when omitted)
        detector: Vendor detector (built from the vendors table when omitted)

    Returns:
        PipelineResult; failures are reported on it, never raised
    """
    config = config or load_pipeline_config()
    result = PipelineResult(stats=_base_stats())
    stage = ErrorStage.VALIDATE

    try:
        # 1. Validate
        if not (email.html or "").strip() and not (email.text or "").strip():
            raise MissingContentError("Email has neither an HTML nor a text body")

        # 2. Normalize
        stage = ErrorStage.NORMALIZE
        html = normalize_email_html(email.html).cleaned_html if email.html else ""
        text = normalize_plain_text(email.text) if email.text else ""

        # 3. Detect
        stage = ErrorStage.DETECT
        detector = detector or VendorDetector(database.get_vendor_identities())
        detection = detector.detect(email.sender, email.subject, detection_body(html, text))
        result.detection = detection
        if detection.needs_review:
            ambiguous = detection.vendor_code == AMBIGUOUS_VENDOR
            error_class = AmbiguousVendorError if ambiguous else UnknownVendorError
            raise error_class(detection.reason, sender=email.sender)
        vendor = detection.vendor

        # 4. Select parser
        stage = ErrorStage.PARSE
        parser = get_parser(vendor.parser_code or vendor.code)
        if parser is None:
            raise ParserNotFoundError(f"No parser registered for {vendor.name}", vendor=vendor.code)

        # 5. PDF vendors parse the attachment
        pdf_text = ""
        pdf_bytes = None
        if vendor.requires_pdf:
            stage = ErrorStage.PDF_EXTRACT
            pdf_bytes = first_pdf_attachment(email.attachments)
            if pdf_bytes is None:
                raise MissingAttachmentError(
                    f"{vendor.name} orders require a PDF attachment", vendor=vendor.code
                )
            pdf_text = extract_text_from_pdf(pdf_bytes) or ""
            if not pdf_text.strip():
                raise MissingAttachmentError(
                    f"No text could be extracted from the {vendor.name} PDF", vendor=vendor.code
                )

        # 6. Parse
        stage = ErrorStage.PARSE
        parsed = parser(
            ParserInput(
                html=html,
                text=text,
                pdf_text=pdf_text,
                attachments=[pdf_bytes] if pdf_bytes else [],
                subject=email.subject,
                sender=email.sender,
            )
        )
        parsed.order.vendor = vendor.name
        result.order = parsed.order
        result.diagnostics.extend(parsed.diagnostics)
        result.parse_method = parsed.parse_method
        if not parsed.items:
            reason = "; ".join(parsed.diagnostics) or "Parser found no line items"
            raise NoItemsParsedError(reason, vendor=vendor.code, order_number=parsed.order.order_number)
        result.items = parsed.items

        # 7. Catalog check
        stage = ErrorStage.RECONCILE
        result.vendor_id = vendor.id or database.get_vendor_id(vendor.code)
        check = check_catalog(result.vendor_id, result.items)
        result.stats.update(
            cache_hits=check.cache_hits,
            cache_misses=check.cache_misses,
            hit_rate=check.hit_rate,
        )
        if check.vendor_id_missing:
            result.diagnostics.append(f"Vendor {vendor.code} is not registered; catalog skipped")

        # 8. Enrich misses
        stage = ErrorStage.ENRICH
        override = (adapters or {}).get(vendor.code)
        enrichment = run_enrichment(result.items, vendor, config, adapter=override)
        result.stats.update(enriched=enrichment["enriched"], enrichment_failed=enrichment["failed"])

        # 9. Catalog write-back
        stage = ErrorStage.CACHE
        writes = database.cache_catalog_items(result.vendor_id, vendor.name, result.items)
        result.stats.update(writes)

        result.success = True

        # 10. Persist
        stage = ErrorStage.PERSIST
        if persist and account_id is not None:
            if result.order.order_number:
                saved = database.save_parsed_order(account_id, _persistence_record(result))
                result.order_id = saved["order_id"]
                result.duplicate = saved["duplicate"]
            else:
                result.diagnostics.append("Order not saved: no order number found")

        logger.info(
            f"Processed {vendor.name} order #{result.order.order_number}: "
            f"{len(result.items)} items, {result.stats['cache_hits']} cache hits",
            extra={
                "vendor": vendor.code,
                "stage": stage.value,
                "order_number": result.order.order_number,
            },
        )

    except Exception as e:
        result.success = False
        result.failure = PipelineFailure.from_exception(
            e,
            stage,
            context={
                "vendor": result.vendor_code,
                "order_number": result.order.order_number if result.order else None,
            },
        )

    # 11. Processed email log
    if persist:
        _log_run(email, account_id, result)
    if result.failure:
        result.failure.log(email_id=result.email_log_id)

    return result


def _log_run(email: InboundEmail, account_id: Optional[int], result: PipelineResult) -> None:
    detection = result.detection
    try:
        result.email_log_id = database.log_processed_email(
            sender=email.sender,
            subject=email.subject,
            parse_status=result.parse_status,
            account_id=account_id,
            vendor_code=result.vendor_code,
            detection_confidence=detection.confidence if detection else None,
            detection_tier=detection.tier if detection else None,
            error_code=result.failure.code if result.failure else None,
            error_reason=result.failure.reason if result.failure else None,
            items_count=len(result.items),
            order_id=result.order_id,
        )
    except Exception as e:
        # The run outcome stands even when the log row cannot be written
        logger.error(f"Failed to log processed email: {e}", exc_info=True, extra={"stage": "persist"})
