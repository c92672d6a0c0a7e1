"""
Enrichment - External sources for cache-miss line items

Adapters by vendor enrichment strategy:
- api: safilo_api.py (Safilo catalog filter API), marchon_api.py (Marchon SKU API),
  lamy_api.py (L'Amy America filter API searched by UPC)
- web_scrape: modern_optical_web.py (Modern Optical product pages),
  europa_web.py (Europa product pages),
  ideal_optics_web.py (I-Deal Optics product pages)
- none: pass-through, items stay incomplete

Usage:
    from pipeline.enrichment import run_enrichment

    stats = run_enrichment(items, vendor, config)
"""

from typing import Optional

from config import EnrichmentStrategy, PipelineConfig, load_pipeline_config
from pipeline.logging_config import get_logger
from pipeline.types import ParsedLineItem

from .base import EnrichmentAdapter, NoneAdapter, apply_result, summarize
from .europa_web import EuropaEnrichmentAdapter, EuropaScraper
from .ideal_optics_web import IdealOpticsEnrichmentAdapter, IdealOpticsScraper
from .lamy_api import LamyCatalogClient, LamyEnrichmentAdapter
from .marchon_api import MarchonCatalogClient, MarchonEnrichmentAdapter
from .modern_optical_web import ModernOpticalEnrichmentAdapter, ModernOpticalScraper
from .safilo_api import SafiloCatalogClient, SafiloEnrichmentAdapter

logger = get_logger(__name__)

# Strategy -> vendor code -> adapter class
ADAPTERS: dict[EnrichmentStrategy, dict[str, type[EnrichmentAdapter]]] = {
    EnrichmentStrategy.API: {
        "safilo": SafiloEnrichmentAdapter,
        "marchon": MarchonEnrichmentAdapter,
        "lamy_america": LamyEnrichmentAdapter,
    },
    EnrichmentStrategy.WEB_SCRAPE: {
        "modern_optical": ModernOpticalEnrichmentAdapter,
        "europa": EuropaEnrichmentAdapter,
        "ideal_optics": IdealOpticsEnrichmentAdapter,
    },
}


def get_adapter(vendor, config: PipelineConfig) -> EnrichmentAdapter:
    """Select the adapter for a vendor's enrichment strategy."""
    try:
        strategy = EnrichmentStrategy(getattr(vendor, "enrichment_strategy", None) or "none")
    except ValueError:
        logger.warning(
            f"Unknown enrichment strategy for {vendor.code}: {vendor.enrichment_strategy}",
            extra={"stage": "enrich", "vendor": vendor.code},
        )
        return NoneAdapter(config)

    adapter_class = ADAPTERS.get(strategy, {}).get(getattr(vendor, "code", None))
    if adapter_class is None:
        if strategy != EnrichmentStrategy.NONE:
            logger.warning(
                f"No {strategy.value} adapter registered for {vendor.code}",
                extra={"stage": "enrich", "vendor": vendor.code},
            )
        return NoneAdapter(config)
    return adapter_class(config)


def run_enrichment(
    items: list[ParsedLineItem],
    vendor,
    config: Optional[PipelineConfig] = None,
    adapter: Optional[EnrichmentAdapter] = None,
) -> dict:
    """
    Enrich the items that still need it and record outcomes on them.

    Args:
        items: Line items after the catalog check
        vendor: VendorIdentity of the detected vendor
        config: Pipeline config (loaded from the environment when omitted)
        adapter: Optional adapter override

    Returns:
        Dict with attempted, enriched, failed, skipped and source
    """
    config = config or load_pipeline_config()
    pending = [item for item in items if item.needs_enrichment]

    if not pending:
        stats = summarize([])
        stats["source"] = None
        return stats

    if adapter is None:
        adapter = get_adapter(vendor, config) if config.enrichment_enabled else NoneAdapter(config)

    results = adapter.enrich(pending, vendor)
    for result in results:
        apply_result(result)

    stats = summarize(results)
    stats["source"] = adapter.source
    logger.info(
        f"Enrichment ({adapter.source}): {stats['enriched']}/{stats['attempted']} enriched, "
        f"{stats['failed']} failed",
        extra={"stage": "enrich", "vendor": getattr(vendor, "code", None)},
    )
    return stats


__all__ = [
    "ADAPTERS",
    "EnrichmentAdapter",
    "EuropaEnrichmentAdapter",
    "EuropaScraper",
    "IdealOpticsEnrichmentAdapter",
    "IdealOpticsScraper",
    "LamyCatalogClient",
    "LamyEnrichmentAdapter",
    "MarchonCatalogClient",
    "MarchonEnrichmentAdapter",
    "ModernOpticalEnrichmentAdapter",
    "ModernOpticalScraper",
    "NoneAdapter",
    "SafiloCatalogClient",
    "SafiloEnrichmentAdapter",
    "get_adapter",
    "run_enrichment",
]
