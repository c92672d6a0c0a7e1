"""
Vendor Parser Base - Shared Utilities and Registry

Contains:
- Parser registry and decorator for vendor-specific parsers
- Common utility functions for amount, date, size and color parsing
- Type definitions for parser functions

Every parser takes a ParserInput and returns a ParseResult. Parsers never
raise on unexpected content: a missing anchor yields an empty item list with
a diagnostic, and rows or lines that do not match are skipped.
"""

import re
from typing import Callable, Optional

from pipeline.types import ParsedLineItem, ParseResult, ParserInput

# Type alias for parser functions
VendorParser = Callable[[ParserInput], ParseResult]


# Registry of vendor code -> parser function
PARSERS: dict[str, VendorParser] = {}


def register_parser(code: str):
    """Decorator to register a parser for a vendor code."""
    def decorator(func: VendorParser):
        PARSERS[code] = func
        return func
    return decorator


def get_parser(code: str) -> Optional[VendorParser]:
    """
    Get the parser registered for a vendor code.

    Args:
        code: Vendor code (e.g., 'modern_optical')

    Returns:
        Parser function or None if no parser is registered
    """
    if not code:
        return None
    return PARSERS.get(code.lower())


def parse_amount(text: str) -> Optional[float]:
    """Extract numeric amount from text like '$1,234.50' or '120.00 USD'."""
    if not text:
        return None

    cleaned = re.sub(r"[$€£\s]", "", text)

    # European format: comma as decimal separator (e.g., "63,75")
    if re.match(r"^\d+,\d{2}$", cleaned):
        cleaned = cleaned.replace(",", ".")
    else:
        cleaned = cleaned.replace(",", "")

    match = re.search(r"(\d+\.?\d*)", cleaned)
    if match:
        try:
            return float(match.group(1))
        except ValueError:
            pass
    return None


def parse_date_text(text: str) -> Optional[str]:
    """Parse vendor date formats to YYYY-MM-DD.

    Vendor portals are US based, so numeric slash dates are month first.
    """
    if not text:
        return None

    month_pattern = r"(?:Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|Jun(?:e)?|Jul(?:y)?|Aug(?:ust)?|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)"

    patterns = [
        # January 15, 2024 or Jan 15 2024
        (rf"({month_pattern})\s+(\d{{1,2}}),?\s+(\d{{4}})", "MDY_FULL"),
        # 15 January 2024
        (rf"(\d{{1,2}})\s+({month_pattern})\s+(\d{{4}})", "DMY_FULL"),
        # 2024-01-15
        (r"(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})", "YMD"),
        # 01/15/2024 or 1/15/24
        (r"(\d{1,2})[/\-](\d{1,2})[/\-](\d{2,4})", "MDY"),
    ]

    months = {
        "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
        "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
    }

    for pattern, fmt in patterns:
        match = re.search(pattern, text, re.IGNORECASE)
        if not match:
            continue
        try:
            if fmt == "MDY_FULL":
                month = months[match.group(1).lower()[:3]]
                day = int(match.group(2))
                year = int(match.group(3))
            elif fmt == "DMY_FULL":
                day = int(match.group(1))
                month = months[match.group(2).lower()[:3]]
                year = int(match.group(3))
            elif fmt == "YMD":
                year = int(match.group(1))
                month = int(match.group(2))
                day = int(match.group(3))
            else:
                month = int(match.group(1))
                day = int(match.group(2))
                year = int(match.group(3))
                if year < 100:
                    year += 2000

            if not (1 <= month <= 12 and 1 <= day <= 31):
                continue
            return f"{year:04d}-{month:02d}-{day:02d}"
        except (ValueError, KeyError):
            continue

    return None


def parse_int(text: str, default: int = 1) -> int:
    """Parse an integer quantity, falling back to default."""
    match = re.search(r"\d+", text or "")
    if not match:
        return default
    return int(match.group(0)) or default


def clean_text(text: str) -> str:
    """Collapse whitespace (including non-breaking spaces)."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text.replace("\xa0", " ")).strip()


SIZE_TOKEN = re.compile(r"(\d{2})\s*[-/]\s*(\d{2})\s*[-/\s]\s*(\d{3})")


def split_size(size: str) -> tuple[Optional[str], Optional[str], Optional[str]]:
    """Split a size string into (eye, bridge, temple).

    Handles '54-18-140', '54/18/140', '54/18 140' and a bare eye size '54'.
    """
    if not size:
        return None, None, None
    match = SIZE_TOKEN.search(size)
    if match:
        return match.group(1), match.group(2), match.group(3)
    eye = re.match(r"^\s*(\d{2})\b", size)
    if eye:
        return eye.group(1), None, None
    return None, None, None


def make_sku(*parts: Optional[str]) -> str:
    """Build a SKU like BRAND-MODEL-COLOR with spaces and slashes as '_'."""
    return "-".join(re.sub(r"[\s/]+", "_", p.strip()) for p in parts if p and p.strip())


# ============================================================================
# COLOR NORMALIZATION
# ============================================================================

COLOR_ABBREVIATIONS = {
    "BLK": "Black", "BLACK": "Black",
    "GM": "Gunmetal", "GUN": "Gunmetal", "GUNMETAL": "Gunmetal",
    "SIL": "Silver", "SILVER": "Silver",
    "GLD": "Gold", "GOLD": "Gold",
    "BR": "Brown", "BRN": "Brown", "BROWN": "Brown",
    "BL": "Blue", "BLU": "Blue", "BLUE": "Blue",
    "GR": "Gray", "GRY": "Gray", "GRAY": "Gray", "GREY": "Grey",
    "GN": "Green", "GRN": "Green", "GREEN": "Green",
    "RD": "Red", "RED": "Red",
    "WH": "White", "WHT": "White", "WHITE": "White",
    "CL": "Clear", "CLEAR": "Clear",
    "TORT": "Tortoise", "TORTOISE": "Tortoise",
    "DEMI": "Demi",
    "NAVY": "Navy", "NVY": "Navy",
    "AQUA": "Aqua",
    "TEAL": "Teal",
    "PINK": "Pink", "PK": "Pink",
    "RUST": "Rust",
    "BURG": "Burgundy", "BURGUNDY": "Burgundy",
    "FADE": "Fade",
    "CRY": "Crystal", "CRYST": "Crystal", "CRYSTAL": "Crystal",
    "CLEO": "Cleo",
}


def _normalize_color_part(part: str) -> str:
    if not part:
        return ""
    upper = part.upper()
    if upper in COLOR_ABBREVIATIONS:
        return COLOR_ABBREVIATIONS[upper]
    # Long abbreviations embedded in a word (e.g. "MATTEBLACK")
    for abbrev, full in COLOR_ABBREVIATIONS.items():
        if len(abbrev) > 3 and abbrev in upper:
            return full
    return part[:1].upper() + part[1:].lower()


def normalize_color(color: str) -> str:
    """Expand color abbreviations: 'BLK/GM' -> 'Black/Gunmetal'."""
    if not color:
        return ""
    color = clean_text(color)
    if "/" in color:
        return "/".join(_normalize_color_part(p.strip()) for p in color.split("/"))
    return " ".join(_normalize_color_part(w) for w in color.split(" "))


def finalize_items(items: list[ParsedLineItem]) -> list[ParsedLineItem]:
    """Fill derived fields every parser shares (size split, sku, color name)."""
    for item in items:
        if item.size and not item.eye_size:
            item.eye_size, bridge, temple = split_size(item.size)
            item.bridge = item.bridge or bridge
            item.temple = item.temple or temple
        if item.eye_size and item.bridge and item.temple and not item.full_size:
            item.full_size = f"{item.eye_size}-{item.bridge}-{item.temple}"
        if not item.color_name and item.color:
            item.color_name = normalize_color(item.color)
        if not item.sku:
            item.sku = make_sku(item.brand, item.model, item.color, item.size)
    return items


def total_quantity(items: list[ParsedLineItem]) -> int:
    return sum(item.quantity for item in items)
