"""
Safilo Catalog API Client

Wrapper for the Safilo catalog filter endpoint used to validate and enrich
frames parsed from Safilo order PDFs with UPC, pricing and stock data.

The endpoint takes a full filter body; only ``search`` varies. Identical
search terms are answered from a per-run cache, and transient failures
(timeouts, connection errors, 429, 5xx) are retried with exponential
backoff before giving up with EnrichmentError.
"""

import threading
import time
from typing import Optional

import requests

from config import PipelineConfig
from pipeline.enrichment.base import EnrichmentAdapter, RunCache, scored_result
from pipeline.enrichment.scoring import select_best_variant
from pipeline.errors import EnrichmentError
from pipeline.logging_config import get_logger
from pipeline.types import EnrichmentResult, ParsedLineItem

logger = get_logger(__name__)

FILTER_PATH = "/US/api/CatalogAPI/filter"

HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
}

# Model prefixes that are abbreviations of a Safilo brand
PREFIX_EXPANSIONS = {
    "CH ": "CHESTERFIELD",
    "KS ": "KATE SPADE",
    "MIS ": "MISSONI",
}


def build_filter_body(search: str) -> dict:
    """Filter request body with every facet left open."""
    return {
        "Collections": [],
        "ColorFamily": [],
        "Shapes": [],
        "FrameTypes": [],
        "Genders": [],
        "FrameMaterials": [],
        "FrontMaterials": [],
        "HingeTypes": [],
        "RimTypes": [],
        "TempleMaterials": [],
        "LensMaterials": [],
        "FITTING": [],
        "COUNTRYOFORIGIN": [],
        "NewStyles": False,
        "BestSellers": False,
        "RxAvailable": False,
        "InStock": False,
        "Readers": False,
        "ASizes": {"min": -1, "max": -1},
        "BSizes": {"min": -1, "max": -1},
        "EDSizes": {"min": -1, "max": -1},
        "DBLSizes": {"min": -1, "max": -1},
        "search": search,
    }


def search_variations(item: ParsedLineItem) -> list[str]:
    """
    Search terms for an item, most specific first, without duplicates.

    Example:
        KATE SPADE / "KS ADRIA" ->
        ["KS ADRIA", "KATE SPADE KS ADRIA", "KATE KS ADRIA", "KATE SPADE ADRIA"]
    """
    model = (item.model or "").strip()
    brand = (item.brand or "").strip()
    if not model:
        return []

    terms = [model]
    if brand:
        terms.append(f"{brand} {model}")
        first_word = brand.split()[0]
        if not model.upper().startswith(first_word.upper()):
            terms.append(f"{first_word} {model}")

    for prefix, expansion in PREFIX_EXPANSIONS.items():
        if model.upper().startswith(prefix):
            terms.append(f"{expansion} {model}")
            terms.append(f"{expansion} {model[len(prefix):].strip()}")

    seen = set()
    unique = []
    for term in terms:
        if term.lower() not in seen:
            seen.add(term.lower())
            unique.append(term)
    return unique


def _to_float(value) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number or None


def _additional(size: dict, name: str) -> Optional[str]:
    for entry in size.get("additionalData") or []:
        if entry.get("name") == name:
            return entry.get("value")
    return None


def _as_text(value) -> Optional[str]:
    return str(value) if value not in (None, "") else None


def parse_catalog_response(data, search: str) -> dict:
    """
    Flatten the first product of a filter response into variants.

    Returns:
        {'found': False, 'reason': ...} or
        {'found': True, 'search': ..., 'brand': ..., 'model': ..., 'variants': [...]}
    """
    if not isinstance(data, list) or not data:
        return {"found": False, "reason": "No results returned"}

    product = data[0]
    color_groups = product.get("colorGroup") or []
    if not color_groups:
        return {"found": False, "reason": "No color variants found"}

    variants = []
    for group in color_groups:
        for size in group.get("sizes") or []:
            variants.append({
                "color_code": group.get("color") or "",
                "color_name": group.get("colorName") or "",
                "eye_size": _as_text(size.get("eyeSize") or size.get("a")),
                "bridge": _as_text(size.get("bridge") or size.get("dbl")),
                "temple": _as_text(size.get("temple")),
                "size": size.get("size"),
                "upc": _as_text(size.get("upc")),
                "ean": _as_text(size.get("ean") or size.get("frameId")),
                "sku": size.get("sku"),
                "wholesale": _to_float(size.get("wholesale")) or _to_float(size.get("price")),
                "msrp": _to_float(size.get("msrp")),
                "in_stock": bool(size.get("isInStock")),
                "availability": size.get("availableStatus") or size.get("availability"),
                "material": size.get("material"),
                "gender": size.get("gender"),
                "country_of_origin": _additional(size, "COUNTRY OF ORIGIN"),
                "fitting": _additional(size, "FITTING"),
            })

    if not variants:
        return {"found": False, "reason": "No size variants found"}

    return {
        "found": True,
        "search": search,
        "brand": product.get("collectionName") or "",
        "model": product.get("styleCode") or "",
        "description": product.get("description"),
        "variants": variants,
    }


class SafiloCatalogClient:
    """Client for the Safilo catalog filter API.

    L'Amy America runs the same filter service; ``base_url`` points the
    client at another host.
    """

    label = "Safilo"
    vendor = "safilo"

    def __init__(self, config: PipelineConfig, base_url: Optional[str] = None):
        self.config = config
        self.url = f"{base_url or config.safilo_api_base}{FILTER_PATH}"
        self._cache = RunCache()
        self._lock = threading.Lock()
        self.request_count = 0

    def _post(self, search: str):
        """
        POST one filter request with retry.

        Raises:
            EnrichmentError: After max retries or for non-retryable responses
        """
        max_retries = self.config.max_retries
        last_error = None

        for attempt in range(max_retries):
            try:
                with self._lock:
                    self.request_count += 1
                response = requests.post(
                    self.url,
                    json=build_filter_body(search),
                    headers=HEADERS,
                    timeout=self.config.request_timeout,
                )
                if response.status_code == 429 or response.status_code >= 500:
                    last_error = f"HTTP {response.status_code}"
                else:
                    response.raise_for_status()
                    return response.json()

            except (requests.Timeout, requests.ConnectionError) as e:
                last_error = f"{type(e).__name__}: {e}"

            except requests.HTTPError as e:
                raise EnrichmentError(f"{self.label} API rejected '{search}': {e}") from e

            except ValueError as e:
                raise EnrichmentError(f"{self.label} API returned invalid JSON for '{search}'") from e

            if attempt < max_retries - 1:
                # Exponential backoff: 1s, 2s, 4s with the default base delay
                wait_time = self.config.retry_delay * (2**attempt)
                logger.warning(
                    f"{self.label} API {last_error} for '{search}', retrying in {wait_time}s "
                    f"(attempt {attempt + 1}/{max_retries})",
                    extra={"stage": "enrich", "vendor": self.vendor},
                )
                time.sleep(wait_time)

        raise EnrichmentError(
            f"{self.label} API failed after {max_retries} attempts: {last_error}", retryable=True
        )

    def search(self, term: str) -> dict:
        """Search the catalog, answering repeated terms from the run cache."""
        return self._cache.get_or_load(
            term.lower(), lambda: parse_catalog_response(self._post(term), term)
        )


class SafiloEnrichmentAdapter(EnrichmentAdapter):
    """Validates Safilo frames against the catalog API."""

    source = "api"

    def __init__(self, config: PipelineConfig, client: Optional[SafiloCatalogClient] = None):
        super().__init__(config)
        self.client = client or SafiloCatalogClient(config)

    def enrich_item(self, item: ParsedLineItem, vendor) -> EnrichmentResult:
        terms = search_variations(item)
        product = None
        for term in terms:
            product = self.client.search(term)
            if product["found"]:
                break

        if not product or not product["found"]:
            return EnrichmentResult(
                item=item,
                success=False,
                source=self.source,
                error=f"No API data found ({len(terms)} searches)",
            )

        best, accepted = select_best_variant(
            item,
            product["variants"],
            product["brand"],
            product["model"],
            min_confidence=self.config.min_confidence,
        )
        return scored_result(item, best, accepted, self.source)
