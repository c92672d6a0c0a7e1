"""Pipeline error taxonomy with automatic classification.

Two families live here:

- ``PipelineError`` subclasses are raised for conditions that stop processing
  of a single email (missing body, missing PDF, unknown or ambiguous vendor,
  no parser). The orchestrator converts them into a structured failure; they
  never escape ``process_vendor_email``.
- ``EnrichmentError`` is raised inside enrichment adapters once retries are
  exhausted and is converted into an unsuccessful ``EnrichmentResult``.

Recoverable outcomes (empty parse, cache miss, adapter not-found) are values,
not exceptions.

Usage:
    from pipeline.errors import ErrorStage, MissingContentError, PipelineFailure

    try:
        run_stage()
    except Exception as e:
        failure = PipelineFailure.from_exception(e, ErrorStage.PARSE,
                                                 context={'vendor': 'safilo'})
        failure.log(email_id=email_id)
"""

import traceback
from enum import Enum
from typing import Any

from pipeline.logging_config import get_logger

logger = get_logger(__name__)


class ErrorStage(Enum):
    """Pipeline stage in which an error occurred."""

    VALIDATE = "validate"  # Inbound record checks
    NORMALIZE = "normalize"  # Webmail wrapper stripping
    DETECT = "detect"  # Vendor classification
    PDF_EXTRACT = "pdf_extract"  # Attachment decoding / text extraction
    PARSE = "parse"  # Vendor parser
    RECONCILE = "reconcile"  # Catalog check
    ENRICH = "enrich"  # External enrichment
    CACHE = "cache"  # Catalog write-back
    PERSIST = "persist"  # Inventory lifecycle store


class ErrorType(Enum):
    """Error type classification for retry and debugging."""

    INPUT = "input"  # Structurally invalid input (fatal to the email)
    CONFIGURATION = "configuration"  # Ambiguous vendor setup
    MANUAL_REVIEW = "manual_review"  # Nothing matched confidently
    TIMEOUT = "timeout"  # Timeout errors (retryable)
    RATE_LIMIT = "rate_limit"  # Upstream rate limiting (retryable)
    NETWORK = "network"  # Network connectivity issues (retryable)
    API_ERROR = "api_error"  # External API errors
    PARSE_ERROR = "parse_error"  # Parsing/extraction failures
    DB_ERROR = "db_error"  # Database errors
    UNKNOWN = "unknown"  # Uncategorized errors


# ============================================================================
# EXCEPTIONS
# ============================================================================


class PipelineError(Exception):
    """Base class for conditions that stop processing of one email."""

    code = "pipeline_error"
    stage = ErrorStage.VALIDATE
    error_type = ErrorType.UNKNOWN
    manual_review = False

    def __init__(self, reason: str, **context):
        super().__init__(reason)
        self.reason = reason
        self.context = context


class InvalidEmailError(PipelineError):
    code = "invalid_email"
    error_type = ErrorType.INPUT


class MissingContentError(InvalidEmailError):
    """Email has neither an HTML nor a plain text body."""

    code = "missing_content"


class MissingAttachmentError(InvalidEmailError):
    """PDF vendor order without an extractable PDF attachment."""

    code = "missing_pdf"
    stage = ErrorStage.PDF_EXTRACT


class UnknownVendorError(PipelineError):
    code = "unknown_vendor"
    stage = ErrorStage.DETECT
    error_type = ErrorType.MANUAL_REVIEW
    manual_review = True


class AmbiguousVendorError(PipelineError):
    """Two or more vendors matched at the same confidence tier."""

    code = "ambiguous_vendor"
    stage = ErrorStage.DETECT
    error_type = ErrorType.CONFIGURATION
    manual_review = True


class ParserNotFoundError(PipelineError):
    code = "no_parser"
    stage = ErrorStage.PARSE
    error_type = ErrorType.CONFIGURATION
    manual_review = True


class NoItemsParsedError(PipelineError):
    code = "no_items"
    stage = ErrorStage.PARSE
    error_type = ErrorType.PARSE_ERROR
    manual_review = True


class EnrichmentError(Exception):
    """Raised by adapters after the retry budget is spent."""

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


# ============================================================================
# STRUCTURED FAILURE
# ============================================================================


class PipelineFailure:
    """Structured failure returned to callers instead of a bare exception.

    Attributes:
        stage: Stage where the failure occurred
        error_type: Classification used for retry and review decisions
        code: Short machine-readable code (e.g. 'missing_pdf')
        reason: Human-readable reason
        manual_review: Whether an operator should look at the email
        context: Extra context (vendor, sender, order_number)
        stack_trace: Formatted traceback for unexpected exceptions
    """

    def __init__(
        self,
        stage: ErrorStage,
        error_type: ErrorType,
        code: str,
        reason: str,
        manual_review: bool = False,
        context: dict[str, Any] | None = None,
        exception: Exception | None = None,
    ):
        self.stage = stage
        self.error_type = error_type
        self.code = code
        self.reason = reason
        self.manual_review = manual_review
        self.context = context or {}
        self.stack_trace = None

        # Only unexpected exceptions carry a stack trace
        if exception is not None and not isinstance(exception, PipelineError):
            self.stack_trace = "".join(
                traceback.format_exception(
                    type(exception), exception, exception.__traceback__
                )
            )

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "reason": self.reason,
            "stage": self.stage.value,
            "type": self.error_type.value,
            "manual_review": self.manual_review,
        }

    def log(self, email_id: int | None = None) -> None:
        """Write the failure to the structured log."""
        level = logger.warning if self.manual_review else logger.error
        level(
            f"[{self.stage.value}] {self.code}: {self.reason}",
            extra={
                "email_id": email_id,
                "vendor": self.context.get("vendor"),
                "stage": self.stage.value,
                "order_number": self.context.get("order_number"),
            },
        )
        if self.stack_trace:
            logger.debug(self.stack_trace, extra={"email_id": email_id})

    @classmethod
    def from_exception(
        cls,
        exception: Exception,
        stage: ErrorStage,
        context: dict[str, Any] | None = None,
    ) -> "PipelineFailure":
        """Classify an exception into a structured failure.

        PipelineError subclasses carry their own code and stage. Anything else
        is classified from its type and message.
        """
        if isinstance(exception, PipelineError):
            merged = dict(exception.context)
            merged.update(context or {})
            return cls(
                stage=exception.stage,
                error_type=exception.error_type,
                code=exception.code,
                reason=exception.reason,
                manual_review=exception.manual_review,
                context=merged,
                exception=exception,
            )

        error_type = classify_exception(exception)
        return cls(
            stage=stage,
            error_type=error_type,
            code=f"{stage.value}_failed",
            reason=f"{type(exception).__name__}: {exception}",
            context=context,
            exception=exception,
        )


def classify_exception(exception: Exception) -> ErrorType:
    """Auto-classify an exception from its type name and message."""
    error_str = str(exception).lower()
    exception_name = type(exception).__name__

    if "timeout" in error_str or exception_name in (
        "TimeoutError",
        "ReadTimeout",
        "ConnectTimeout",
        "Timeout",
    ):
        return ErrorType.TIMEOUT
    if "429" in error_str or "rate limit" in error_str:
        return ErrorType.RATE_LIMIT
    if "connection" in error_str or exception_name in (
        "ConnectionError",
        "ConnectionResetError",
    ):
        return ErrorType.NETWORK
    if (
        "database" in error_str
        or "psycopg2" in error_str
        or "sqlite" in error_str
        or "constraint" in error_str
        or exception_name in ("OperationalError", "IntegrityError")
    ):
        return ErrorType.DB_ERROR
    if exception_name in ("HTTPError", "JSONDecodeError"):
        return ErrorType.API_ERROR
    if exception_name in ("ValueError", "IndexError", "KeyError", "AttributeError"):
        return ErrorType.PARSE_ERROR
    return ErrorType.UNKNOWN


def is_retryable(error_type: ErrorType) -> bool:
    return error_type in (ErrorType.TIMEOUT, ErrorType.RATE_LIMIT, ErrorType.NETWORK)
