"""
Europa Product Page Scraper

Europa has no catalog API. Each frame has a public page at
``{base}/products/{stock number}`` where the stock number is the short
code, color number, eye size and bridge: MRX-104, color 1, 53-18 is
``MRX104153-18``. Order emails rarely carry the bridge, so 18 is tried
first and the other common bridges on a 404.

Variant data sits as JSON in the ``:init-variations`` attribute of the page's
``router-view`` element. Pages carry UPC, sizes, material and availability,
but no pricing for guests.
"""

import json
import re
import time
from typing import Optional

import requests
from bs4 import BeautifulSoup

from config import PipelineConfig
from pipeline.enrichment.base import EnrichmentAdapter, RunCache, scored_result
from pipeline.enrichment.scoring import select_best_variant
from pipeline.errors import EnrichmentError
from pipeline.logging_config import get_logger
from pipeline.types import EnrichmentResult, ParsedLineItem

logger = get_logger(__name__)

HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

DEFAULT_BRIDGE = "18"
COMMON_BRIDGES = ("16", "17", "18", "19", "20")

BRAND_CODES = {
    "michael ryen": "MR",
    "scott harris": "SH",
    "cote d'azur": "CDA",
    "cote d azur": "CDA",
    "american optical": "AO",
    "cinzia": "CZ",
}


def extract_short_code(model: str, brand: str = "") -> Optional[str]:
    """
    Europa short code for a model.

    Example:
        "MRX-104" -> "MRX104"; ("Sport 104", "Michael Ryen") -> "MR104"
    """
    model = (model or "").strip()
    if not model:
        return None

    match = re.match(r"^([A-Z]+)-?(\d+[A-Z]?)$", model, re.IGNORECASE)
    if match:
        return match.group(1).upper() + match.group(2)

    match = re.search(r"(\d+[A-Z]?)$", model)
    brand_lower = (brand or "").lower()
    if match:
        for name, code in BRAND_CODES.items():
            if name in brand_lower:
                return code + match.group(1)

    match = re.search(r"([A-Z]{2,4})[\s-]?(\d+[A-Z]?)", model, re.IGNORECASE)
    if match:
        return match.group(1).upper() + match.group(2)
    return None


def build_stock_number(item: ParsedLineItem, bridge: Optional[str] = None) -> Optional[str]:
    short_code = extract_short_code(item.model, item.brand)
    eye_size = item.eye_size or (item.size or "").split("-")[0].strip()
    if not short_code or not eye_size:
        return None
    color_no = item.color_code or "1"
    return f"{short_code}{color_no}{eye_size}-{bridge or item.bridge or DEFAULT_BRIDGE}"


def _as_text(value) -> Optional[str]:
    if value in (None, ""):
        return None
    return str(value).strip() or None


def parse_product_page(html: str) -> dict:
    """
    Read the variations JSON from a product page.

    Returns:
        {'found': False, 'reason': ...} or
        {'found': True, 'brand': ..., 'model': ..., 'short_code': ..., 'variants': [...]}
    """
    soup = BeautifulSoup(html or "", "html.parser")
    view = soup.find("router-view", attrs={":init-variations": True})
    if view is None:
        return {"found": False, "reason": "Could not find product data in page"}

    try:
        variations = json.loads(view[":init-variations"])
    except ValueError:
        return {"found": False, "reason": "Variations data is not valid JSON"}

    if not isinstance(variations, list) or not variations:
        return {"found": False, "reason": "No product variations found"}

    variants = []
    for variation in variations:
        data = variation.get("data") or {}
        variants.append({
            "color_code": _as_text(data.get("colorNo")) or "",
            "color_name": _as_text(data.get("color")) or "",
            "eye_size": _as_text(data.get("eyeSizeA")),
            "bridge": _as_text(data.get("bridgeDbl")),
            "temple": _as_text(data.get("templeTmp")),
            "upc": _as_text(data.get("upcCode")),
            "in_stock": bool(variation.get("isAvailable")),
            "availability": variation.get("availabilityText"),
            "material": _as_text(data.get("frontMaterial")),
            "gender": _as_text(variation.get("gender")),
        })

    first = variations[0]
    first_data = first.get("data") or {}
    return {
        "found": True,
        "brand": _as_text(first_data.get("collectionName")) or "",
        "model": _as_text(first.get("productName")) or "",
        "short_code": _as_text(first_data.get("shortCode") or first.get("short_code")) or "",
        "variants": variants,
    }


def match_color_number(item: ParsedLineItem, variant: dict) -> bool:
    """Europa color numbers compare as integers ("01" is color 1)."""
    try:
        return int(item.color_code) == int(variant.get("color_code"))
    except (TypeError, ValueError):
        return False


def _alphanumeric(value: str) -> str:
    return re.sub(r"[^A-Z0-9]", "", (value or "").upper())


class EuropaScraper:
    """Fetches and parses Europa product pages."""

    def __init__(self, config: PipelineConfig):
        self.config = config
        self.base_url = config.europa_base
        self._pages = RunCache()

    def _fetch(self, url: str) -> Optional[requests.Response]:
        max_retries = self.config.max_retries
        for attempt in range(max_retries):
            try:
                response = requests.get(url, headers=HEADERS, timeout=self.config.request_timeout)
                if response.status_code == 429 or response.status_code >= 500:
                    raise requests.ConnectionError(f"HTTP {response.status_code}")
                return response
            except (requests.Timeout, requests.ConnectionError) as e:
                if attempt == max_retries - 1:
                    logger.warning(
                        f"Europa fetch failed after {max_retries} attempts: {url} ({e})",
                        extra={"stage": "enrich", "vendor": "europa"},
                    )
                    return None
                time.sleep(self.config.retry_delay * (2**attempt))
        return None

    def find_product(self, stock_no: str) -> Optional[dict]:
        """
        Parsed product page for a stock number, trying other bridges on a 404.

        Returns:
            Parsed page dict with ``url`` and ``stock_no``, or None when no
            bridge variant has a page

        Raises:
            EnrichmentError: When every request failed at the network level
        """
        key = stock_no.upper()
        return self._pages.get_or_load(key, lambda: self._find_product(key))

    def _find_product(self, stock_no: str) -> Optional[dict]:
        base, _, bridge = stock_no.rpartition("-")
        candidates = [stock_no] + [f"{base}-{b}" for b in COMMON_BRIDGES if b != bridge]

        reachable = False
        for candidate in candidates:
            url = f"{self.base_url}/products/{candidate}"
            response = self._fetch(url)
            if response is None:
                continue
            reachable = True
            if response.status_code != 200:
                continue

            page = parse_product_page(response.text)
            if page["found"]:
                page["url"] = url
                page["stock_no"] = candidate
                return page
            logger.debug(
                f"Europa page {candidate} has no variations: {page['reason']}",
                extra={"stage": "enrich", "vendor": "europa"},
            )

        if not reachable:
            raise EnrichmentError(f"Europa site unreachable for {stock_no}", retryable=True)
        return None


class EuropaEnrichmentAdapter(EnrichmentAdapter):
    """Enriches Europa frames from the public product pages."""

    source = "web_scrape"

    def __init__(self, config: PipelineConfig, scraper: Optional[EuropaScraper] = None):
        super().__init__(config)
        self.scraper = scraper or EuropaScraper(config)

    def enrich_item(self, item: ParsedLineItem, vendor) -> EnrichmentResult:
        stock_no = build_stock_number(item)
        if not stock_no:
            return EnrichmentResult(
                item=item,
                success=False,
                source=self.source,
                error="Could not build a stock number from model and eye size",
            )

        page = self.scraper.find_product(stock_no)
        if page is None:
            return EnrichmentResult(
                item=item,
                success=False,
                source=self.source,
                error=f"No product page found for {stock_no}",
            )

        # A page found by the item's own short code is that model
        short_code = extract_short_code(item.model, item.brand)
        model = page["model"]
        if _alphanumeric(page["short_code"]) == _alphanumeric(short_code):
            model = item.model

        best, accepted = select_best_variant(
            item,
            page["variants"],
            page["brand"],
            model,
            min_confidence=self.config.min_confidence,
            color_matcher=match_color_number,
        )
        return scored_result(item, best, accepted, self.source)
