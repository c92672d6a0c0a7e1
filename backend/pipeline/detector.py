"""
Vendor Detector

Classifies an inbound email to a vendor identity with a tiered scheme:

1. Domain match (95): sender domain equals (or is a subdomain of) a
   registered vendor domain. Forwarded emails are checked against the
   original sender found in the body.
2. Signature match (90): normalized body contains a vendor signature.
3. Keyword match (75): at least ``required_matches`` distinct keyword hits
   across subject and body. A single hit never classifies, and a keyword
   found only inside a longer matched keyword is not a separate hit.

Tiers are evaluated in order and the first tier with a match decides. Two
vendors matching at the same tier is a configuration problem: the email is
routed to manual review instead of picking one. No match also routes to
manual review.
"""

import html as html_lib
import re
from dataclasses import dataclass, field
from email.utils import parseaddr
from typing import Optional

from config import TIER_WEIGHTS, DetectionTier
from pipeline.logging_config import get_logger
from pipeline.vendor_patterns import DEFAULT_VENDOR_PATTERNS, PERSONAL_EMAIL_DOMAINS

logger = get_logger(__name__)

UNKNOWN_VENDOR = "unknown"
AMBIGUOUS_VENDOR = "ambiguous"

EMAIL_ADDRESS = re.compile(r"[\w.+-]+@([\w-]+(?:\.[\w-]+)+)")
FORWARDED_FROM = re.compile(r"From:\s*([^\n\r]{0,200})", re.IGNORECASE)
HTML_TAG = re.compile(r"<(?![^>]*@)[^>]+>")


@dataclass
class VendorIdentity:
    """A vendor's canonical name, detection signatures and strategies."""

    code: str
    name: str
    domains: list[str] = field(default_factory=list)
    signatures: list[str] = field(default_factory=list)
    subject_keywords: list[str] = field(default_factory=list)
    body_keywords: list[str] = field(default_factory=list)
    required_matches: int = 2
    parser_code: Optional[str] = None
    enrichment_strategy: str = "none"
    requires_pdf: bool = False
    id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> "VendorIdentity":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class DetectionResult:
    vendor_code: str
    vendor_name: str = ""
    confidence: int = 0
    tier: Optional[str] = None
    needs_review: bool = False
    reason: str = ""
    candidates: list[str] = field(default_factory=list)
    vendor: Optional[VendorIdentity] = None

    @property
    def matched(self) -> bool:
        return self.vendor is not None and not self.needs_review

    def to_dict(self) -> dict:
        return {
            "vendor": self.vendor_code,
            "vendorName": self.vendor_name,
            "vendorId": self.vendor.id if self.vendor else None,
            "confidence": self.confidence,
            "tier": self.tier,
            "needsManualReview": self.needs_review,
            "reason": self.reason,
            "candidates": self.candidates,
        }


def default_identities() -> list[VendorIdentity]:
    return [VendorIdentity.from_dict(p) for p in DEFAULT_VENDOR_PATTERNS]


def normalize_text(text: str) -> str:
    """Lowercase, unescape entities and collapse whitespace."""
    if not text:
        return ""
    text = html_lib.unescape(text)
    return re.sub(r"\s+", " ", text).strip().lower()


def extract_domain(address: str) -> str:
    """Return the lowercase domain of an email address ('' when absent)."""
    _, email = parseaddr(address or "")
    email = email or address or ""
    if "@" not in email:
        return ""
    return email.rsplit("@", 1)[1].strip().strip(">").lower()


def extract_forwarded_domains(body: str) -> list[str]:
    """Find original sender domains in forwarded 'From:' headers.

    Personal mailbox domains (gmail.com, yahoo.com, ...) are ignored because
    they identify the forwarder, not the vendor.
    """
    if not body:
        return []
    text = html_lib.unescape(HTML_TAG.sub(" ", body))
    domains = []
    for match in FORWARDED_FROM.finditer(text):
        for address in EMAIL_ADDRESS.finditer(match.group(1)):
            domain = address.group(1).lower()
            if domain not in PERSONAL_EMAIL_DOMAINS and domain not in domains:
                domains.append(domain)
    return domains


def keyword_hits(keywords: list[str], text: str) -> set[str]:
    """Keywords found in text, ignoring occurrences inside a longer keyword.

    "kenmark" inside "kenmark eyewear" is the same mention and is not a second
    hit.
    """
    spans = []
    for kw in {k.lower() for k in keywords if k}:
        start = text.find(kw)
        while start > -1:
            spans.append((start, start + len(kw), kw))
            start = text.find(kw, start + 1)

    hits = set()
    for start, end, kw in spans:
        covered = any(
            s <= start and end <= e and (e - s) > (end - start) for s, e, _ in spans
        )
        if not covered:
            hits.add(kw)
    return hits


def _domain_matches(domain: str, vendor_domain: str) -> bool:
    vendor_domain = vendor_domain.lower()
    return domain == vendor_domain or domain.endswith("." + vendor_domain)


class VendorDetector:
    """Tiered vendor classifier over a set of VendorIdentity records."""

    def __init__(self, identities: Optional[list[VendorIdentity]] = None):
        self.identities = identities if identities is not None else default_identities()

    # ------------------------------------------------------------------
    # Tier checks
    # ------------------------------------------------------------------

    def _match_domains(self, domains: list[str]) -> list[VendorIdentity]:
        return [
            vendor
            for vendor in self.identities
            if any(
                _domain_matches(domain, vd) for domain in domains for vd in vendor.domains
            )
        ]

    def _match_signatures(self, body: str) -> list[VendorIdentity]:
        return [
            vendor
            for vendor in self.identities
            if any(normalize_text(sig) in body for sig in vendor.signatures if sig)
        ]

    def _match_keywords(self, subject: str, body: str) -> list[VendorIdentity]:
        matches = []
        for vendor in self.identities:
            hits = keyword_hits(vendor.subject_keywords, subject)
            hits |= keyword_hits(vendor.body_keywords, body)
            if len(hits) >= max(vendor.required_matches, 2):
                matches.append(vendor)
        return matches

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def detect(self, sender: str, subject: str, body: str) -> DetectionResult:
        """Classify an email.

        Args:
            sender: From address (may include a display name)
            subject: Subject line
            body: Body text or HTML

        Returns:
            DetectionResult; needs_review is set for unknown or ambiguous mail
        """
        norm_subject = normalize_text(subject)
        norm_body = normalize_text(body)

        sender_domain = extract_domain(sender)
        domains = [sender_domain] if sender_domain else []

        tiers = [
            (DetectionTier.DOMAIN, lambda: self._match_domains(domains)),
            (
                DetectionTier.DOMAIN,
                lambda: self._match_domains(extract_forwarded_domains(body)),
            ),
            (DetectionTier.SIGNATURE, lambda: self._match_signatures(norm_body)),
            (DetectionTier.KEYWORD, lambda: self._match_keywords(norm_subject, norm_body)),
        ]

        for tier, matcher in tiers:
            matches = matcher()
            if not matches:
                continue

            weight = TIER_WEIGHTS[tier]
            if len(matches) > 1:
                codes = [v.code for v in matches]
                logger.warning(
                    f"Ambiguous vendor detection at {tier.value} tier: {codes}",
                    extra={"stage": "detect"},
                )
                return DetectionResult(
                    vendor_code=AMBIGUOUS_VENDOR,
                    confidence=weight,
                    tier=tier.value,
                    needs_review=True,
                    reason=f"{len(matches)} vendors matched at {tier.value} tier: "
                    + ", ".join(codes),
                    candidates=codes,
                )

            vendor = matches[0]
            logger.info(
                f"Detected {vendor.name} via {tier.value} ({weight}%)",
                extra={"vendor": vendor.code, "stage": "detect"},
            )
            return DetectionResult(
                vendor_code=vendor.code,
                vendor_name=vendor.name,
                confidence=weight,
                tier=tier.value,
                reason=f"{tier.value} match",
                candidates=[vendor.code],
                vendor=vendor,
            )

        logger.info(
            f"No vendor matched for sender domain '{sender_domain}'",
            extra={"stage": "detect"},
        )
        return DetectionResult(
            vendor_code=UNKNOWN_VENDOR,
            confidence=0,
            needs_review=True,
            reason="no vendor pattern matched",
        )
