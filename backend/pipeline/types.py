"""
Canonical pipeline records.

ParsedOrder and ParsedLineItem are produced fresh per email by a vendor parser
and annotated in place by reconciliation and enrichment. ``to_record()`` gives
the stable output shape consumed by the inventory lifecycle store.
"""

import base64
import binascii
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class ParsedOrder:
    """Order header fields extracted from one email."""

    order_number: Optional[str] = None
    reference_number: Optional[str] = None
    customer_name: Optional[str] = None
    customer_code: Optional[str] = None
    account_number: Optional[str] = None
    order_date: Optional[str] = None  # YYYY-MM-DD when parseable
    rep_name: Optional[str] = None
    total_pieces: Optional[int] = None
    total_amount: Optional[float] = None
    vendor: Optional[str] = None

    def to_record(self) -> dict:
        return {
            "order_number": self.order_number,
            "customer_name": self.customer_name,
            "order_date": self.order_date,
            "account_number": self.account_number,
            "rep_name": self.rep_name,
            "total_pieces": self.total_pieces,
            "reference_number": self.reference_number,
        }


@dataclass
class ParsedLineItem:
    """One frame (brand/model/color/size) and quantity.

    The reconciliation and enrichment annotations live on the same record so
    that an item can be passed stage to stage without re-wrapping.
    """

    brand: str = ""
    model: str = ""
    color: str = ""
    color_code: Optional[str] = None
    color_name: Optional[str] = None
    size: Optional[str] = None
    eye_size: Optional[str] = None
    bridge: Optional[str] = None
    temple: Optional[str] = None
    full_size: Optional[str] = None
    quantity: int = 1
    upc: Optional[str] = None
    ean: Optional[str] = None
    sku: Optional[str] = None
    wholesale_price: Optional[float] = None
    msrp: Optional[float] = None
    material: Optional[str] = None
    gender: Optional[str] = None
    collection: Optional[str] = None
    in_stock: Optional[bool] = None
    stock_status: Optional[str] = None

    # Catalog check annotations
    cached: bool = False
    needs_enrichment: bool = True
    cache_incomplete: bool = False
    catalog_id: Optional[int] = None
    match_tier: Optional[str] = None

    # Enrichment annotations
    api_verified: bool = False
    confidence_score: int = 0
    validation_reason: Optional[str] = None
    data_source: Optional[str] = None
    enrichment_source: Optional[str] = None
    enrichment_error: Optional[str] = None

    def __post_init__(self):
        try:
            self.quantity = int(self.quantity or 1)
        except (TypeError, ValueError):
            self.quantity = 1
        if self.quantity < 1:
            self.quantity = 1

    @property
    def enriched(self) -> bool:
        """True when an enrichment adapter supplied data for this item."""
        return bool(
            self.enrichment_source
            and self.enrichment_source != "none"
            and not self.enrichment_error
        )

    def to_record(self) -> dict:
        return {
            "brand": self.brand,
            "model": self.model,
            "color": self.color,
            "color_code": self.color_code,
            "size": self.size,
            "eye_size": self.eye_size,
            "bridge": self.bridge,
            "temple": self.temple,
            "quantity": self.quantity,
            "upc": self.upc,
            "wholesale_price": self.wholesale_price,
            "msrp": self.msrp,
            "in_stock": self.in_stock,
            "material": self.material,
            "api_verified": self.api_verified,
            "confidence_score": self.confidence_score,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ParsedLineItem":
        """Build an item from a JSON payload, ignoring unknown keys."""
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        # Accept the JSON spelling of the price field as well
        if "wholesale_price" not in known and "wholesale_cost" in data:
            known["wholesale_price"] = data["wholesale_cost"]
        return cls(**known)


@dataclass
class Attachment:
    filename: str = ""
    content_type: str = ""
    data: str = ""  # base64 payload

    @property
    def is_pdf(self) -> bool:
        return (
            "pdf" in (self.content_type or "").lower()
            or (self.filename or "").lower().endswith(".pdf")
        )

    def decode(self) -> Optional[bytes]:
        """Decode the base64 payload; None when it is not valid base64."""
        if not self.data:
            return None
        try:
            return base64.b64decode(self.data, validate=False)
        except (binascii.Error, ValueError):
            return None


@dataclass
class InboundEmail:
    """Record handed over by the email-reception collaborator."""

    sender: str = ""
    subject: str = ""
    html: Optional[str] = None
    text: Optional[str] = None
    attachments: list[Attachment] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "InboundEmail":
        attachments = [
            Attachment(
                filename=a.get("filename", ""),
                content_type=a.get("content_type") or a.get("contentType", ""),
                data=a.get("data") or a.get("content", ""),
            )
            for a in data.get("attachments") or []
        ]
        return cls(
            sender=data.get("sender") or data.get("from", ""),
            subject=data.get("subject", ""),
            html=data.get("html"),
            text=data.get("text") or data.get("plain"),
            attachments=attachments,
        )


@dataclass
class ParserInput:
    """Everything a vendor parser may read."""

    html: str = ""
    text: str = ""
    pdf_text: str = ""
    attachments: list[bytes] = field(default_factory=list)
    subject: str = ""
    sender: str = ""


@dataclass
class ParseResult:
    order: ParsedOrder
    items: list[ParsedLineItem] = field(default_factory=list)
    diagnostics: list[str] = field(default_factory=list)
    parse_method: str = ""

    @property
    def ok(self) -> bool:
        return bool(self.items)


@dataclass
class EnrichmentResult:
    """Per-item outcome of an enrichment adapter call."""

    item: ParsedLineItem
    success: bool = False
    confidence: int = 0
    matched_variant: Optional[dict[str, Any]] = None
    source: Optional[str] = None
    error: Optional[str] = None
