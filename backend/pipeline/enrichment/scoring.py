"""
Variant Scoring

Cross-references a parsed line item against the variants an enrichment
source returned. Each agreeing attribute adds its weight:

    brand 20, model 25, color 20, eye size 10, bridge 10, temple 10

Brand+model alone scores 45 and never passes the default threshold (50);
adding a color match and two size dimensions scores 85.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from pipeline.types import ParsedLineItem

WEIGHTS = {
    "brand": 20,
    "model": 25,
    "color": 20,
    "eye_size": 10,
    "bridge": 10,
    "temple": 10,
}

VALIDATED_REASON = "Cross-reference successful"
INSUFFICIENT_REASON = "Insufficient matches"

ColorMatcher = Callable[[ParsedLineItem, dict], bool]


@dataclass
class VariantScore:
    variant: dict
    score: int = 0
    matches: dict[str, bool] = field(default_factory=dict)


def _squash(value) -> str:
    return re.sub(r"\s+", " ", str(value or "")).strip().lower()


def contains_either(a, b) -> bool:
    """Case-insensitive substring test in either direction; empty never matches."""
    a, b = _squash(a), _squash(b)
    return bool(a and b) and (a in b or b in a)


MIN_CODE_OVERLAP = 3


def codes_match(a, b) -> bool:
    """Compare color codes: equal, or the shorter code (3+ chars) inside the longer.

    "807" matches "807/IR", but "0" or "80" only ever match themselves.
    """
    a, b = _squash(a), _squash(b)
    if not a or not b:
        return False
    if a == b:
        return True
    shorter, longer = sorted((a, b), key=len)
    return len(shorter) >= MIN_CODE_OVERLAP and shorter in longer


def _same_dimension(expected, actual) -> bool:
    if actual in (None, "") or expected in (None, ""):
        return False
    return str(expected).strip() == str(actual).strip()


def match_color_code(item: ParsedLineItem, variant: dict) -> bool:
    """Compare the vendor color code, falling back to the color string."""
    return codes_match(item.color_code or item.color, variant.get("color_code"))


def score_variant(
    item: ParsedLineItem,
    variant: dict,
    product_brand: str,
    product_model: str,
    color_matcher: ColorMatcher = match_color_code,
) -> VariantScore:
    """Score one variant of a product against a parsed item."""
    matches = {
        "brand": contains_either(item.brand, product_brand),
        "model": contains_either(item.model, product_model),
        "color": color_matcher(item, variant),
        "eye_size": _same_dimension(item.eye_size, variant.get("eye_size")),
        "bridge": _same_dimension(item.bridge, variant.get("bridge")),
        "temple": _same_dimension(item.temple, variant.get("temple")),
    }
    score = sum(WEIGHTS[name] for name, matched in matches.items() if matched)
    return VariantScore(variant=variant, score=score, matches=matches)


def select_best_variant(
    item: ParsedLineItem,
    variants: list[dict],
    product_brand: str,
    product_model: str,
    min_confidence: int = 50,
    color_matcher: ColorMatcher = match_color_code,
) -> tuple[Optional[VariantScore], bool]:
    """
    Pick the highest scoring variant.

    Ties keep the earlier variant.

    Returns:
        Tuple of (best score or None when there are no variants,
        whether the best score meets ``min_confidence``)
    """
    best = None
    for variant in variants:
        scored = score_variant(item, variant, product_brand, product_model, color_matcher)
        if best is None or scored.score > best.score:
            best = scored

    if best is None:
        return None, False
    return best, best.score >= min_confidence
