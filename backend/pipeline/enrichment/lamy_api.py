"""
L'Amy America Catalog API

L'Amy runs the same catalog filter service as Safilo, so the Safilo client
is reused against the L'Amy host. Searches use the UPC read from the order
email's image URLs instead of a model name.
"""

from typing import Optional

from config import PipelineConfig
from pipeline.enrichment.base import EnrichmentAdapter, scored_result
from pipeline.enrichment.safilo_api import SafiloCatalogClient
from pipeline.enrichment.scoring import select_best_variant
from pipeline.types import EnrichmentResult, ParsedLineItem


class LamyCatalogClient(SafiloCatalogClient):
    label = "L'Amy"
    vendor = "lamy_america"

    def __init__(self, config: PipelineConfig):
        super().__init__(config, base_url=config.lamy_api_base)


class LamyEnrichmentAdapter(EnrichmentAdapter):
    """Enriches L'Amy frames by UPC search."""

    source = "api"

    def __init__(self, config: PipelineConfig, client: Optional[LamyCatalogClient] = None):
        super().__init__(config)
        self.client = client or LamyCatalogClient(config)

    def enrich_item(self, item: ParsedLineItem, vendor) -> EnrichmentResult:
        if not item.upc:
            return EnrichmentResult(
                item=item, success=False, source=self.source, error="No UPC available"
            )

        product = self.client.search(item.upc)
        if not product["found"]:
            return EnrichmentResult(
                item=item,
                success=False,
                source=self.source,
                error=f"No API data found for UPC {item.upc}: {product['reason']}",
            )

        # The searched UPC names one size of one color; score only that variant
        variants = [v for v in product["variants"] if v.get("upc") == item.upc]
        best, accepted = select_best_variant(
            item,
            variants or product["variants"],
            product["brand"],
            product["model"],
            min_confidence=self.config.min_confidence,
        )
        return scored_result(item, best, accepted, self.source)
