"""
Ideal Optics Product Page Scraper

The I-Deal Optics site has a frame search endpoint used by its autocomplete
box (``/Home/SearchFrames/?q=R1030``) whose first suggestion names the
catalog path ``/catalog/{brand}/{collection}/{style}``. When it has no
suggestion, the known collection paths are tried.

A product page lists one carousel image per color, with the UPC in the
image URL (``/Image/ShowImage?w=770&sku=R1030EBY53&upc=842691109583``), the
color names as links in the same order, and one set of measurements shared
by every color. Pages show no pricing or stock.
"""

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

SEARCH_HEADERS = {
    **HEADERS,
    "Accept": "application/json, text/javascript, */*; q=0.01",
    "X-Requested-With": "XMLHttpRequest",
}

# Clearance first, samples are often listed there
COLLECTIONS = (
    "clearance",
    "casino",
    "elegante",
    "elevate",
    "focus-eyewear",
    "haggar",
    "jbx",
    "jelly-bean",
    "rafaella",
    "reflections",
    "rio-ray",
    "suntrends",
)

MIN_PAGE_LENGTH = 1000
NOT_FOUND_MARKERS = ("page not found", "error 404", "http 404", "does not exist")
PRODUCT_MARKERS = ("stylePartial", "frameDetailOwlCarousel", "styleDescriptions", "fitTypeValue")

GENDER = re.compile(r"womens|mens|unisex", re.IGNORECASE)
MATERIAL = re.compile(r"acetate|metal|stainless|titanium|plastic", re.IGNORECASE)
FIT_TYPE = re.compile(r"fitTypeLookup\['(\d+)'\]\s*=\s*'([^']+)'")


def build_fallback_urls(base_url: str, model: str) -> list[str]:
    urls = []
    for collection in COLLECTIONS:
        for variant in dict.fromkeys([model.lower(), model.upper(), model]):
            urls.append(f"{base_url}/catalog/{collection}/{collection}/{variant}")
            urls.append(f"{base_url}/{collection}/{variant}")
    return urls


def is_product_page(status_code: int, html: str) -> bool:
    if status_code != 200 or not html or len(html) < MIN_PAGE_LENGTH:
        return False
    lowered = html.lower()
    if any(marker in lowered for marker in NOT_FOUND_MARKERS):
        return False
    return any(marker in html for marker in PRODUCT_MARKERS)


def _measurements(soup: BeautifulSoup) -> dict:
    section = soup.select_one(".style-detail")
    if section is None:
        return {}
    rows = section.select("p.text-small")
    if len(rows) < 2:
        return {}
    values = [span.get_text(strip=True) for span in rows[1].find_all("span")]
    if len(values) < 6:
        return {}
    return dict(zip(("eye_size", "bridge", "temple", "a", "b", "ed"), values))


def parse_product_page(html: str) -> dict:
    """
    Read colors, UPCs and measurements from a product page.

    Returns:
        Dict with gender, material, fit_type and variants (one per color)
    """
    soup = BeautifulSoup(html or "", "html.parser")

    gender = material = None
    for span in soup.select("#styleDescriptions .text-small"):
        text = span.get_text(strip=True)
        if GENDER.search(text):
            gender = text
        elif MATERIAL.search(text):
            material = text

    match = FIT_TYPE.search(html or "")
    fit_type = match.group(2) if match else None
    sizes = _measurements(soup)

    variants = []
    for img in soup.select("#frameDetailOwlCarousel .item img"):
        src = img.get("src") or ""
        upc = img.get("data-upc")
        if not upc:
            match = re.search(r"[?&]upc=(\d+)", src, re.IGNORECASE)
            upc = match.group(1) if match else None
        if not upc:
            continue
        match = re.search(r"[?&]sku=([^&]+)", src, re.IGNORECASE)
        variants.append({
            "upc": upc,
            "sku": match.group(1) if match else None,
            "color_code": "",
            "color_name": "",
            "eye_size": sizes.get("eye_size"),
            "bridge": sizes.get("bridge"),
            "temple": sizes.get("temple"),
            "material": material,
            "gender": gender,
            "fit_type": fit_type,
        })

    # Color links follow carousel order; only trust them when the counts agree
    colors = [a.get_text(strip=True) for a in soup.select(".text-uppercase.top-margin a.goTo")]
    colors = [c for c in colors if c]
    if len(colors) == len(variants):
        for variant, color in zip(variants, colors):
            variant["color_name"] = color
            variant["color_code"] = color.upper()

    return {
        "gender": gender,
        "material": material,
        "fit_type": fit_type,
        "variants": variants,
    }


class IdealOpticsScraper:
    """Finds and parses I-Deal Optics product pages."""

    def __init__(self, config: PipelineConfig):
        self.config = config
        self.base_url = config.ideal_optics_base
        self._pages = RunCache()

    def _fetch(self, url: str, **kwargs) -> Optional[requests.Response]:
        max_retries = self.config.max_retries
        headers = kwargs.pop("headers", HEADERS)
        for attempt in range(max_retries):
            try:
                response = requests.get(
                    url, headers=headers, timeout=self.config.request_timeout, **kwargs
                )
                if response.status_code == 429 or response.status_code >= 500:
                    raise requests.ConnectionError(f"HTTP {response.status_code}")
                return response
            except (requests.Timeout, requests.ConnectionError) as e:
                if attempt == max_retries - 1:
                    logger.warning(
                        f"Ideal Optics fetch failed after {max_retries} attempts: {url} ({e})",
                        extra={"stage": "enrich", "vendor": "ideal_optics"},
                    )
                    return None
                time.sleep(self.config.retry_delay * (2**attempt))
        return None

    def search_url(self, model: str) -> tuple[Optional[str], bool]:
        """
        Catalog URL from the first frame search suggestion.

        Returns:
            Tuple of (url or None, whether the site answered)
        """
        response = self._fetch(
            f"{self.base_url}/Home/SearchFrames/", params={"q": model}, headers=SEARCH_HEADERS
        )
        if response is None:
            return None, False
        if response.status_code != 200:
            return None, True
        try:
            suggestions = response.json().get("suggestions") or []
        except (ValueError, AttributeError):
            logger.debug(
                f"Ideal Optics search for {model} did not return JSON",
                extra={"stage": "enrich", "vendor": "ideal_optics"},
            )
            return None, True
        if not suggestions:
            return None, True

        data = suggestions[0].get("data") or {}
        parts = [data.get("BrandUrl"), data.get("CollectionUrl"), data.get("StyleUrl")]
        if not all(parts):
            return None, True
        return f"{self.base_url}/catalog/{'/'.join(parts)}", True

    def find_product(self, model: str) -> Optional[dict]:
        """
        Parsed product page for a model, or None when no page was found.

        Raises:
            EnrichmentError: When the site could not be reached at all
        """
        key = model.strip().upper()
        return self._pages.get_or_load(key, lambda: self._find_product(model.strip()))

    def _find_product(self, model: str) -> Optional[dict]:
        url, reachable = self.search_url(model)
        candidates = ([url] if url else []) + build_fallback_urls(self.base_url, model)

        for candidate in candidates:
            response = self._fetch(candidate)
            if response is None:
                continue
            reachable = True
            if is_product_page(response.status_code, response.text):
                page = parse_product_page(response.text)
                page["url"] = candidate
                return page

        if not reachable:
            raise EnrichmentError(f"Ideal Optics site unreachable for {model}", retryable=True)
        return None


class IdealOpticsEnrichmentAdapter(EnrichmentAdapter):
    """Enriches Ideal Optics frames from the product pages."""

    source = "web_scrape"

    def __init__(self, config: PipelineConfig, scraper: Optional[IdealOpticsScraper] = None):
        super().__init__(config)
        self.scraper = scraper or IdealOpticsScraper(config)

    def enrich_item(self, item: ParsedLineItem, vendor) -> EnrichmentResult:
        if not item.model:
            return EnrichmentResult(
                item=item, success=False, source=self.source, error="No model name available"
            )

        page = self.scraper.find_product(item.model)
        if page is None or not page["variants"]:
            return EnrichmentResult(
                item=item,
                success=False,
                source=self.source,
                error=f"No product page found for {item.model}",
            )

        # Pages are found by style name and every frame is the house brand
        best, accepted = select_best_variant(
            item,
            page["variants"],
            item.brand,
            item.model,
            min_confidence=self.config.min_confidence,
        )
        return scored_result(item, best, accepted, self.source)
