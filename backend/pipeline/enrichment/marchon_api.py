"""
Marchon SKU API Client

Marchon's product catalog answers a style number (SF2223N) with every SKU of
that style: color code, A/DBL/temple sizes, UPC, wholesale and MSRP pricing
and stock status. The style comes straight from the order email, and the
color code and eye+bridge size parsed from its product links pick the SKU.

The path keeps Marchon's double slash; the service rejects the single-slash
form.
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

SKU_PATH = "//ProductCatologWebWeb/Frame/sku"

HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
}

SALES_ORG = "2010"


def build_sku_request(style: str) -> dict:
    return {
        "style": style,
        "itemType": "FRAME",
        "orderType": "STOCK",
        "salesOrg": SALES_ORG,
        "distChannel": "10",
        "userCredential": {"salesOrg": SALES_ORG, "language": "en_US", "countryCode": "US"},
    }


def _to_float(value) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number or None


def _as_text(value) -> Optional[str]:
    if value in (None, ""):
        return None
    return str(value).strip() or None


def parse_sku_response(data, style: str) -> dict:
    """
    Flatten a SKU response into variants.

    ``retail`` is Marchon's name for the account's wholesale price.

    Returns:
        {'found': False, 'reason': ...} or
        {'found': True, 'style': ..., 'brand': ..., 'model': ..., 'variants': [...]}
    """
    if not isinstance(data, dict):
        return {"found": False, "reason": "Unexpected response shape"}

    status = data.get("serviceStatus") or {}
    if status.get("resultCode") != 0:
        return {"found": False, "reason": status.get("message") or "API returned error"}

    skus = data.get("skuDetail") or []
    if not skus:
        return {"found": False, "reason": "No SKU details returned"}

    variants = []
    for sku in skus:
        stock_status = _as_text(sku.get("stockStatus"))
        variants.append({
            "color_code": _as_text(sku.get("color")) or "",
            "color_name": _as_text(sku.get("colorDescription")) or "",
            "eye_size": _as_text(sku.get("SSA")),
            "bridge": _as_text(sku.get("SSDBL")),
            "temple": _as_text(sku.get("templeLength")),
            "upc": _as_text(sku.get("upcNumber")),
            "wholesale": _to_float(sku.get("retail")),
            "msrp": _to_float(sku.get("msrp")),
            "in_stock": stock_status == "Available",
            "availability": stock_status,
            "material": _as_text(sku.get("planMaterial")),
            "gender": _as_text(sku.get("gender")),
        })

    first = skus[0]
    return {
        "found": True,
        "style": style,
        "brand": _as_text(first.get("marketingGroupDescription")) or "",
        "model": _as_text(first.get("style")) or style,
        "style_name": first.get("styleName"),
        "variants": variants,
    }


class MarchonCatalogClient:
    """Client for the Marchon SKU endpoint."""

    def __init__(self, config: PipelineConfig):
        self.config = config
        self.url = f"{config.marchon_api_base}{SKU_PATH}"
        self._cache = RunCache()
        self._lock = threading.Lock()
        self.request_count = 0

    def _post(self, style: str):
        max_retries = self.config.max_retries
        last_error = None

        for attempt in range(max_retries):
            try:
                with self._lock:
                    self.request_count += 1
                response = requests.post(
                    self.url,
                    json=build_sku_request(style),
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
                raise EnrichmentError(f"Marchon API rejected style '{style}': {e}") from e

            except ValueError as e:
                raise EnrichmentError(f"Marchon API returned invalid JSON for '{style}'") from e

            if attempt < max_retries - 1:
                wait_time = self.config.retry_delay * (2**attempt)
                logger.warning(
                    f"Marchon API {last_error} for '{style}', retrying in {wait_time}s "
                    f"(attempt {attempt + 1}/{max_retries})",
                    extra={"stage": "enrich", "vendor": "marchon"},
                )
                time.sleep(wait_time)

        raise EnrichmentError(
            f"Marchon API failed after {max_retries} attempts: {last_error}", retryable=True
        )

    def lookup(self, style: str) -> dict:
        """All SKUs of a style; each style is requested once per run."""
        key = style.strip().upper()
        return self._cache.get_or_load(key, lambda: parse_sku_response(self._post(key), key))


class MarchonEnrichmentAdapter(EnrichmentAdapter):
    """Validates Marchon frames against the SKU API."""

    source = "api"

    def __init__(self, config: PipelineConfig, client: Optional[MarchonCatalogClient] = None):
        super().__init__(config)
        self.client = client or MarchonCatalogClient(config)

    def enrich_item(self, item: ParsedLineItem, vendor) -> EnrichmentResult:
        if not item.model:
            return EnrichmentResult(
                item=item, success=False, source=self.source, error="No model name available"
            )

        product = self.client.lookup(item.model)
        if not product["found"]:
            return EnrichmentResult(
                item=item,
                success=False,
                source=self.source,
                error=f"No API data found for {item.model}: {product['reason']}",
            )

        best, accepted = select_best_variant(
            item,
            product["variants"],
            product["brand"],
            product["model"],
            min_confidence=self.config.min_confidence,
        )
        return scored_result(item, best, accepted, self.source)
