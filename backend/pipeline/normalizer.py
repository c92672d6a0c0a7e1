"""
Email Normalizer

Strips webmail forwarding wrappers (Zoho, Gmail, Outlook) from raw email HTML
so vendor parsers see the vendor's own markup.

Provider markers:
- zoho: zmail_extra, blockquote_zmail, data-zbluepencil-ignore, zm_* classes
- gmail: gmail_quote, gmail_attr, gmail_sendername, msg-* and m_* classes
- outlook: WordSection1, MsoNormal, <o:p>, Office xml namespaces

The normalizer never blocks the pipeline: input without any known wrapper is
returned unchanged with no detected providers.
"""

import re
from dataclasses import dataclass, field
from urllib.parse import unquote

from bs4 import BeautifulSoup, Comment

from pipeline.logging_config import get_logger

logger = get_logger(__name__)


PROVIDER_MARKERS = {
    "zoho": [
        r"zmail_extra",
        r"blockquote_zmail",
        r"data-zbluepencil-ignore",
        r'class="zm_\d+',
    ],
    "gmail": [
        r"gmail_quote",
        r"gmail_attr",
        r"gmail_sendername",
        r'class="msg-\d+',
        r'class="m_-?\d+',
    ],
    "outlook": [
        r"WordSection1",
        r"MsoNormal",
        r"<o:p>",
        r"xmlns:o=",
        r"urn:schemas-microsoft-com:office",
    ],
}

MSO_CONDITIONAL = re.compile(r"<!--\[if[^\]]*\]>[\s\S]*?<!\[endif\]-->", re.IGNORECASE)
OFFICE_NAMESPACE = re.compile(
    r'\s*xmlns:[a-z]="[^"]*(?:microsoft|office)[^"]*"', re.IGNORECASE
)
FORWARD_HEADER = re.compile(
    r"^(?:-{5,}|={5,})?\s*(?:Forwarded message|Original Message)\s*(?:-{5,}|={5,})?$",
    re.IGNORECASE,
)
QUOTE_ATTRIBUTION = re.compile(r"^On\s.{1,300}\swrote:$", re.IGNORECASE | re.DOTALL)

# (host marker, query parameter holding the real URL)
URL_WRAPPERS = [
    ("linkprotect.cudasvc.com", "a"),
    ("google.com/url", "q"),
    ("safelinks.protection.outlook.com", "url"),
]

GENERIC_MARKERS = re.compile(
    r"Forwarded message|Original Message|wrote:|<blockquote|"
    r"linkprotect\.cudasvc\.com|google\.com/url|safelinks\.protection\.outlook\.com",
    re.IGNORECASE,
)


@dataclass
class NormalizedEmail:
    cleaned_html: str
    detected_providers: list[str] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)


def detect_providers(html: str) -> list[str]:
    """Return the webmail providers whose wrapper markup appears in html."""
    if not html:
        return []
    return [
        provider
        for provider, markers in PROVIDER_MARKERS.items()
        if any(re.search(marker, html) for marker in markers)
    ]


# ============================================================================
# DOM HELPERS
# ============================================================================


def _strip_classes(soup: BeautifulSoup, should_drop) -> None:
    """Remove class names matching should_drop; drop empty class attributes."""
    for tag in soup.find_all(class_=True):
        classes = tag.get("class") or []
        kept = [c for c in classes if not should_drop(c)]
        if len(kept) == len(classes):
            continue
        if kept:
            tag["class"] = kept
        else:
            del tag["class"]


def unwrap_url(url: str) -> str:
    """Return the destination of a link-protection redirect, else url."""
    if not url:
        return url
    for host, param in URL_WRAPPERS:
        if host in url:
            match = re.search(rf"[?&]{param}=([^&]+)", url)
            if match:
                return unquote(match.group(1))
    return url


# ============================================================================
# PROVIDER CLEANERS
# ============================================================================


def _clean_zoho(soup: BeautifulSoup) -> None:
    for hr in soup.select(".zmail_extra_hr"):
        hr.decompose()

    for extra in soup.select(".zmail_extra"):
        text = extra.get_text()
        if "Forwarded message" in text or "============" in text:
            header = extra.find("div", recursive=False)
            if header is not None:
                header.decompose()

    for quote in soup.find_all("blockquote", id="blockquote_zmail"):
        quote.unwrap()

    _strip_classes(
        soup,
        lambda c: c.startswith("zmail_") or c.startswith("zm_") or c.startswith("x_"),
    )

    for tag in soup.find_all(attrs={"data-zbluepencil-ignore": True}):
        del tag["data-zbluepencil-ignore"]


def _clean_gmail(soup: BeautifulSoup) -> None:
    for attr in soup.select(".gmail_attr"):
        attr.decompose()

    for name in soup.select(".gmail_sendername"):
        name.replace_with(name.get_text())

    for container in soup.select(".gmail_quote_container, .gmail_quote"):
        container.unwrap()

    _strip_classes(
        soup, lambda c: c.startswith("msg") or re.match(r"^m_-?\d", c) is not None
    )


def _clean_outlook(soup: BeautifulSoup) -> None:
    for op in soup.find_all("o:p"):
        text = op.get_text().strip()
        if text in ("", " "):
            op.decompose()
        else:
            op.replace_with(text)

    _strip_classes(soup, lambda c: c.startswith("Mso"))

    for section in soup.select(".WordSection1"):
        section.unwrap()


CLEANERS = {
    "zoho": _clean_zoho,
    "gmail": _clean_gmail,
    "outlook": _clean_outlook,
}


# ============================================================================
# GENERIC CLEANERS
# ============================================================================


def _clean_url_wrappers(soup: BeautifulSoup) -> None:
    for tag, attr in (("a", "href"), ("img", "src")):
        for el in soup.find_all(tag, attrs={attr: True}):
            el[attr] = unwrap_url(el[attr])


def _remove_forwarding_headers(soup: BeautifulSoup) -> None:
    for el in soup.find_all(["p", "div"]):
        if el.decomposed:
            continue
        text = el.get_text(" ", strip=True)
        if FORWARD_HEADER.match(text):
            el.decompose()
            continue
        # Short attribution lines only; never a container holding the order
        if len(text) < 400 and QUOTE_ATTRIBUTION.match(text) and not el.find("table"):
            el.decompose()

    for div in soup.find_all("div"):
        if div.decomposed:
            continue
        style = div.get("style") or ""
        text = div.get_text()
        if (
            "border-top" in style
            and "From:" in text
            and "Sent:" in text
            and "Subject:" in text
            and not div.find("table")
        ):
            div.decompose()

    # Apple Mail / generic quote containers
    for quote in soup.find_all("blockquote"):
        quote.unwrap()


def normalize_email_html(html: str) -> NormalizedEmail:
    """Strip forwarding wrappers from raw email HTML.

    Args:
        html: Raw HTML body (possibly forwarded through several webmail clients)

    Returns:
        NormalizedEmail with cleaned_html, detected_providers and size metadata
    """
    if not html:
        return NormalizedEmail(
            cleaned_html="",
            detected_providers=[],
            metadata={"original_length": 0, "cleaned_length": 0, "reduction_percent": 0},
        )

    original_length = len(html)
    providers = detect_providers(html)

    if not providers and not GENERIC_MARKERS.search(html):
        return NormalizedEmail(
            cleaned_html=html,
            detected_providers=[],
            metadata={
                "original_length": original_length,
                "cleaned_length": original_length,
                "reduction_percent": 0,
            },
        )

    processed = MSO_CONDITIONAL.sub("", html)
    processed = OFFICE_NAMESPACE.sub("", processed)

    soup = BeautifulSoup(processed, "html.parser")

    # Remaining MSO comments that survived the regex (malformed endif)
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        if comment.strip().lower().startswith("[if"):
            comment.extract()

    for provider in providers:
        CLEANERS[provider](soup)

    _clean_url_wrappers(soup)
    _remove_forwarding_headers(soup)

    cleaned = str(soup)
    cleaned = cleaned.replace("\r\n", "\n")
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    cleaned = re.sub(r">\s+<", "><", cleaned)

    reduction = round((1 - len(cleaned) / original_length) * 100)
    logger.debug(
        f"Normalized email: providers={providers} {original_length} -> {len(cleaned)} chars",
        extra={"stage": "normalize"},
    )

    return NormalizedEmail(
        cleaned_html=cleaned,
        detected_providers=providers,
        metadata={
            "original_length": original_length,
            "cleaned_length": len(cleaned),
            "reduction_percent": reduction,
        },
    )


def normalize_plain_text(text: str) -> str:
    """Strip '>' quote prefixes, attribution lines and forward headers from text."""
    if not text:
        return ""

    lines = []
    for line in text.replace("\r\n", "\n").split("\n"):
        stripped = re.sub(r"^(?:\s*>)+\s?", "", line)
        if FORWARD_HEADER.match(stripped.strip()):
            continue
        if QUOTE_ATTRIBUTION.match(stripped.strip()):
            continue
        lines.append(stripped)
    return "\n".join(lines)


def extract_vendor_content(html: str, vendor_identifier: str | None = None) -> str:
    """Find the vendor's own content block inside a forwarded email.

    Looks for the outer content table vendors commonly use (light grey
    background or 600px max width), then for an "order confirmation" marker
    near the vendor name. Falls back to the full input.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")

    for table in soup.find_all("table"):
        style = (table.get("style") or "").replace(" ", "").lower()
        bgcolor = (table.get("bgcolor") or "").lower()
        if (
            "background:#f6f6f6" in style
            or "background:rgb(246,246,246)" in style
            or bgcolor == "#f6f6f6"
            or "background:#ffffff" in style
            or "max-width:600px" in style
        ):
            return table.decode_contents()

    if vendor_identifier:
        needle = vendor_identifier.lower()
        for el in soup.find_all(["div", "td", "p"]):
            text = el.get_text(" ").lower()
            if f"{needle} order confirmation" in text or "order confirmation for" in text:
                container = el.find_parent("table") or el.find_parent("div")
                if container is not None:
                    return container.decode_contents()

    return html
