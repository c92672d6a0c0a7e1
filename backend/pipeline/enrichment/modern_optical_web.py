"""
Modern Optical Product Page Scraper

Modern Optical has no catalog API, so frames are enriched from the public
product detail pages at ``{base}/Detail/{brand}/{model}``. The brand and
model spellings in order emails rarely match the URL slug exactly, so a
grid of brand x model spellings is tried until a real product page comes
back.
"""

import re
import time
from typing import Optional

import requests
from bs4 import BeautifulSoup

from config import PipelineConfig
from pipeline.enrichment.base import EnrichmentAdapter, RunCache, scored_result
from pipeline.enrichment.scoring import contains_either, select_best_variant
from pipeline.errors import EnrichmentError
from pipeline.logging_config import get_logger
from pipeline.types import EnrichmentResult, ParsedLineItem
from pipeline.vendor_parsers.base import normalize_color

logger = get_logger(__name__)

HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

MIN_PAGE_LENGTH = 1000

NOT_FOUND_MARKERS = (
    "page not found",
    "error 404",
    "http 404",
    "the resource you are looking for has been removed",
    "server error in",
    "does not exist",
)

PRODUCT_MARKERS = (
    "product-data-table",
    "gallery_09",
    "lnkCollection",
    "MainContentArea",
    "label-custom-green",
)

OUT_OF_STOCK_ID = "ctl00_MainContentArea_outofstock"


def normalize_for_url(text: str) -> str:
    text = re.sub(r"[^a-zA-Z0-9\s\-_.]", "", text)
    text = re.sub(r"\s+", "-", text)
    text = re.sub(r"-{2,}", "-", text)
    return text.strip("-")


def _unique(values: list[str]) -> list[str]:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def build_product_urls(base_url: str, brand: str, model: str) -> list[str]:
    """
    Candidate detail URLs, most likely spelling first.

    Example:
        ("B.M.E.C.", "BIG RIVER") -> first URL is {base}/Detail/BMEC/BIG-RIVER
    """
    brands = _unique([
        re.sub(r"[.\s]", "", brand),
        normalize_for_url(brand),
        brand.upper(),
        brand,
    ])
    models = _unique([
        re.sub(r"\s+", "-", model),
        re.sub(r"\s+", "_", model),
        re.sub(r"\s+", "", model),
        re.sub(r"\s+", "-", model.lower()),
        model,
        model.upper(),
    ])

    urls = []
    for brand_variant in brands:
        for model_variant in models:
            url = f"{base_url}/Detail/{brand_variant}/{normalize_for_url(model_variant)}"
            if url not in urls:
                urls.append(url)
    return urls


def is_product_page(status_code: int, html: str) -> bool:
    """A usable page: not a server error, substantial, and not a 404 shell."""
    if status_code >= 500 or not html or len(html) <= MIN_PAGE_LENGTH:
        return False

    lowered = html.lower()
    if any(marker in lowered for marker in NOT_FOUND_MARKERS):
        return False
    return any(marker in html for marker in PRODUCT_MARKERS)


def _cell_text(cells, index: int) -> str:
    return cells[index].get_text(strip=True) if index < len(cells) else ""


def _is_out_of_stock(soup: BeautifulSoup, html: str) -> bool:
    banner = soup.find(id=OUT_OF_STOCK_ID)
    if banner is not None and "display:none" not in (banner.get("style") or "").replace(" ", ""):
        return True
    return "OutOfStock" in html or "out of stock" in html.lower()


def _labelled_value(soup: BeautifulSoup, label: str) -> str:
    """Text of the first p/span beside an element whose own text is ``label``."""
    for element in soup.find_all(string=re.compile(rf"^\s*{label}\s*$", re.IGNORECASE)):
        container = element.parent.parent if element.parent else None
        if container is None:
            continue
        value = container.find(["p", "span"])
        if value is not None and value.get_text(strip=True).lower() != label.lower():
            return value.get_text(strip=True)
    return ""


def parse_product_page(html: str) -> dict:
    """
    Extract model, collection, attributes and UPC variants from a detail page.

    Variant rows come from ``.product-data-table table.table``; rows with
    fewer than 7 cells, no color, or no UPC are skipped.
    """
    soup = BeautifulSoup(html, "html.parser")

    title = soup.select_one("h1.label-custom-green")
    collection = soup.select_one("a[id*=lnkCollection]")
    out_of_stock = _is_out_of_stock(soup, html)
    material = _labelled_value(soup, "Material") or None
    gender = (_labelled_value(soup, "Gender") or "").lower() or None

    variants = []
    table = soup.select_one(".product-data-table table.table")
    if table is not None:
        for row in table.select("tbody tr"):
            cells = row.find_all("td")
            if len(cells) < 7:
                continue

            upc_span = row.select_one("span[id*=Label1], span[id*=UPC], span[id*=upc]")
            color = _cell_text(cells, 0)
            upc = upc_span.get_text(strip=True) if upc_span else ""
            if not color or not upc:
                continue

            variants.append({
                "color_code": color,
                "color_name": normalize_color(color),
                "eye_size": _cell_text(cells, 1) or None,
                "a": _cell_text(cells, 2),
                "b": _cell_text(cells, 3),
                "dbl": _cell_text(cells, 4),
                "ed": _cell_text(cells, 5),
                "temple": _cell_text(cells, 6) or None,
                "bridge": _cell_text(cells, 7) or _cell_text(cells, 4) or None,
                "upc": upc,
                "in_stock": not out_of_stock,
                "availability": "out_of_stock" if out_of_stock else "in_stock",
                "material": material,
                "gender": gender,
            })

    return {
        "model": title.get_text(strip=True) if title else "",
        "collection": collection.get_text(strip=True) if collection else "",
        "material": material,
        "gender": gender,
        "out_of_stock": out_of_stock,
        "variants": variants,
    }


def match_color_name(item: ParsedLineItem, variant: dict) -> bool:
    """Compare colors on their normalized names."""
    expected = item.color_name or normalize_color(item.color or "")
    return contains_either(expected, variant.get("color_name"))


class ModernOpticalScraper:
    """Fetches and parses Modern Optical product detail pages."""

    def __init__(self, config: PipelineConfig):
        self.config = config
        self.base_url = config.modern_optical_base
        self._pages = RunCache()

    def _fetch(self, url: str) -> Optional[requests.Response]:
        """
        GET a page, retrying timeouts and connection errors.

        Returns:
            Response (any status), or None when every attempt failed
        """
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
                        f"Modern Optical fetch failed after {max_retries} attempts: {url} ({e})",
                        extra={"stage": "enrich", "vendor": "modern_optical"},
                    )
                    return None
                time.sleep(self.config.retry_delay * (2**attempt))
        return None

    def scrape_product(self, brand: str, model: str) -> Optional[dict]:
        """
        Find and parse the product page for a brand/model.

        Returns:
            Parsed page dict with ``url``, or None when no URL variant produced
            a product page

        Raises:
            EnrichmentError: When every URL failed at the network level
        """
        key = f"{brand}|{model}".lower()
        return self._pages.get_or_load(key, lambda: self._find_page(brand, model))

    def _find_page(self, brand: str, model: str) -> Optional[dict]:
        urls = build_product_urls(self.base_url, brand, model)
        reachable = False
        page = None
        for url in urls:
            response = self._fetch(url)
            if response is None:
                continue
            reachable = True
            if is_product_page(response.status_code, response.text):
                page = parse_product_page(response.text)
                page["url"] = url
                break

        if not reachable:
            raise EnrichmentError(
                f"Modern Optical site unreachable for {brand} {model}", retryable=True
            )

        return page


class ModernOpticalEnrichmentAdapter(EnrichmentAdapter):
    """Enriches Modern Optical frames from the product detail pages."""

    source = "web_scrape"

    def __init__(self, config: PipelineConfig, scraper: Optional[ModernOpticalScraper] = None):
        super().__init__(config)
        self.scraper = scraper or ModernOpticalScraper(config)

    def enrich_item(self, item: ParsedLineItem, vendor) -> EnrichmentResult:
        if not item.brand or not item.model:
            return EnrichmentResult(
                item=item, success=False, source=self.source, error="Brand and model required"
            )

        page = self.scraper.scrape_product(item.brand, item.model)
        if page is None:
            return EnrichmentResult(
                item=item,
                success=False,
                source=self.source,
                error=f"No product page found for {item.brand} {item.model}",
            )

        # The detail URL is keyed by brand, so the page brand is the item brand
        best, accepted = select_best_variant(
            item,
            page["variants"],
            item.brand,
            page["model"] or item.model,
            min_confidence=self.config.min_confidence,
            color_matcher=match_color_name,
        )
        return scored_result(item, best, accepted, self.source)
