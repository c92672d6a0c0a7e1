"""
Enrichment adapter base.

An adapter turns cache-miss line items into EnrichmentResults. Items are
processed in bounded batches on a thread pool with a short pause between
batches; one item's failure is recorded on that item and never aborts the
batch.
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

from config import PipelineConfig
from pipeline.enrichment.scoring import INSUFFICIENT_REASON, VALIDATED_REASON, VariantScore
from pipeline.errors import EnrichmentError
from pipeline.logging_config import get_logger
from pipeline.types import EnrichmentResult, ParsedLineItem

logger = get_logger(__name__)


class RunCache:
    """Per-run lookup cache shared by the threads of one enrichment run.

    Concurrent lookups of the same key wait on the first caller's Future, so
    each key is fetched once. A failed load is not cached: waiting callers see
    the same error and a later call tries again.
    """

    def __init__(self):
        self._entries: dict[str, Future] = {}
        self._lock = threading.Lock()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
        with self._lock:
            future = self._entries.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._entries[key] = future

        if not owner:
            logger.debug(f"Run cache hit: {key}", extra={"stage": "enrich"})
            return future.result()

        try:
            result = loader()
        except BaseException as e:
            with self._lock:
                self._entries.pop(key, None)
            future.set_exception(e)
            raise
        future.set_result(result)
        return result


class EnrichmentAdapter:
    """Base class for enrichment sources."""

    source = "none"

    def __init__(self, config: PipelineConfig):
        self.config = config

    def enrich_item(self, item: ParsedLineItem, vendor) -> EnrichmentResult:
        raise NotImplementedError

    def _safe_enrich(self, item: ParsedLineItem, vendor) -> EnrichmentResult:
        try:
            return self.enrich_item(item, vendor)
        except EnrichmentError as e:
            logger.warning(
                f"{self.source} enrichment gave up on {item.brand} {item.model}: {e}",
                extra={"stage": "enrich"},
            )
            return EnrichmentResult(item=item, success=False, source=self.source, error=str(e))
        except Exception as e:
            logger.error(
                f"Unexpected {self.source} enrichment failure for {item.brand} {item.model}: {e}",
                exc_info=True,
                extra={"stage": "enrich"},
            )
            return EnrichmentResult(
                item=item,
                success=False,
                source=self.source,
                error=f"{type(e).__name__}: {e}",
            )

    def enrich(self, items: list[ParsedLineItem], vendor) -> list[EnrichmentResult]:
        """
        Enrich items in batches of ``config.batch_size``.

        Returns:
            One EnrichmentResult per input item, in input order
        """
        results: list[EnrichmentResult] = []
        batch_size = self.config.batch_size
        total_batches = (len(items) + batch_size - 1) // batch_size

        with ThreadPoolExecutor(max_workers=batch_size) as pool:
            for start in range(0, len(items), batch_size):
                batch = items[start:start + batch_size]
                logger.debug(
                    f"Enrichment batch {start // batch_size + 1}/{total_batches} "
                    f"({len(batch)} items, source={self.source})",
                    extra={"stage": "enrich"},
                )
                results.extend(pool.map(lambda item: self._safe_enrich(item, vendor), batch))

                if start + batch_size < len(items) and self.config.batch_delay:
                    time.sleep(self.config.batch_delay)

        return results


class NoneAdapter(EnrichmentAdapter):
    """Pass-through for vendors without an enrichment source."""

    source = "none"

    def enrich_item(self, item: ParsedLineItem, vendor) -> EnrichmentResult:
        return EnrichmentResult(item=item, success=False, source=self.source)

    def enrich(self, items: list[ParsedLineItem], vendor) -> list[EnrichmentResult]:
        return [self.enrich_item(item, vendor) for item in items]


def _first_present(*values):
    for value in values:
        if value not in (None, ""):
            return value
    return None


def apply_variant(item: ParsedLineItem, best: VariantScore, accepted: bool, source: str) -> None:
    """Fold the best variant's attributes into the item."""
    variant = best.variant
    if not accepted:
        # A rejected lookup never downgrades what the catalog already had
        if not item.cached:
            item.confidence_score = best.score
            item.validation_reason = INSUFFICIENT_REASON
        return

    item.confidence_score = best.score
    item.validation_reason = VALIDATED_REASON
    item.upc = _first_present(variant.get("upc"), item.upc)
    item.ean = _first_present(variant.get("ean"), item.ean)
    item.wholesale_price = _first_present(variant.get("wholesale"), item.wholesale_price)
    item.msrp = _first_present(variant.get("msrp"), item.msrp)
    item.material = _first_present(variant.get("material"), item.material)
    item.gender = _first_present(variant.get("gender"), item.gender)
    item.stock_status = _first_present(variant.get("availability"), item.stock_status)
    if variant.get("in_stock") is not None:
        item.in_stock = bool(variant["in_stock"])
    item.api_verified = source == "api"
    item.data_source = source
    item.cache_incomplete = not item.upc or item.wholesale_price is None


def apply_result(result: EnrichmentResult) -> bool:
    """
    Record an adapter outcome on its item.

    Returns:
        True when the item was enriched
    """
    item = result.item
    if result.success:
        item.enrichment_source = result.source
        item.enrichment_error = None
        item.needs_enrichment = False
        return True

    item.enrichment_source = result.source
    if result.source == "none":
        item.cache_incomplete = True
        if not item.cached:
            item.confidence_score = 0
    else:
        item.enrichment_error = result.error or item.validation_reason or "No match found"
    return False


def summarize(results: list[EnrichmentResult]) -> dict:
    enriched = sum(1 for r in results if r.success)
    return {
        "attempted": len(results),
        "enriched": enriched,
        "failed": sum(1 for r in results if not r.success and r.source != "none"),
        "skipped": sum(1 for r in results if r.source == "none"),
    }


def scored_result(
    item: ParsedLineItem, best: Optional[VariantScore], accepted: bool, source: str
) -> EnrichmentResult:
    """Build the EnrichmentResult for a scored lookup and apply the variant."""
    if best is None:
        return EnrichmentResult(item=item, success=False, source=source, error="No variants returned")

    apply_variant(item, best, accepted, source)
    return EnrichmentResult(
        item=item,
        success=accepted,
        confidence=best.score,
        matched_variant=best.variant,
        source=source,
        error=None if accepted else f"{INSUFFICIENT_REASON} (score {best.score})",
    )
