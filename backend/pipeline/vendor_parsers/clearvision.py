"""
ClearVision Email Parser

CVOGo rep orders ("Dana Price - New CVOGo Order: 40012345") carry a line
item table whose header row names its columns:

    Line No. | Image | SKU | Model | Description | Qty | List Price

Descriptions put the brand prefix first and the size last:
"ADV MT69 GUNMETAL MATTE/GREEN 54/17/145". The SKU (ADMT69GUN5417) is the
fallback when the description has no known prefix.
"""

import re
from typing import Optional

from bs4 import BeautifulSoup

from pipeline.logging_config import get_logger
from pipeline.types import ParsedLineItem, ParsedOrder, ParseResult, ParserInput

from .base import (
    clean_text,
    finalize_items,
    parse_amount,
    parse_date_text,
    parse_int,
    register_parser,
    total_quantity,
)

logger = get_logger(__name__)

VENDOR_NAME = "ClearVision"

BRAND_PREFIXES = {
    "ADV": "Advantage",
    "ASP": "Aspire",
    "DD": "Dilli Dalli",
    "JMC": "Jessica McClintock",
    "JM": "Jessica McClintock",
    "IZX": "Izod Xtreme",
    "IZ": "Izod",
    "PT": "Project Runway",
    "OP": "OP Ocean Pacific",
    "CVO": "CVO",
    "BD": "BD Eyewear",
}

TRAILING_SIZE = re.compile(r"(\d{2})[/-](\d{1,2})[/-](\d{2,3})$")


def _prefixes_longest_first():
    return sorted(BRAND_PREFIXES, key=len, reverse=True)


def brand_from_sku(sku: str) -> Optional[str]:
    upper = (sku or "").upper()
    for prefix in _prefixes_longest_first():
        if upper.startswith(prefix):
            return BRAND_PREFIXES[prefix]
    match = re.match(r"^([A-Z]{2,3})", upper)
    return match.group(1) if match else None


def split_description(description: str, model: str) -> dict:
    """Split a line description into brand, color name and size parts."""
    result = {"brand": None, "color_name": "", "eye_size": None, "bridge": None, "temple": None}
    rest = clean_text(description)
    if not rest:
        return result

    match = TRAILING_SIZE.search(rest)
    if match:
        result["eye_size"], result["bridge"], result["temple"] = match.groups()
        rest = rest[: match.start()].strip()

    for prefix in _prefixes_longest_first():
        if rest.upper().startswith(prefix + " "):
            result["brand"] = BRAND_PREFIXES[prefix]
            rest = rest[len(prefix) + 1:].strip()
            break

    if model and rest.upper().startswith(model.upper()):
        rest = rest[len(model):].strip()

    result["color_name"] = rest
    return result


def _extract_rep(content: ParserInput, text: str) -> Optional[str]:
    for source in (content.subject or "", text):
        match = re.search(r"([A-Za-z]+\s+[A-Za-z]+)\s*-\s*New\s*CVOGo", source, re.IGNORECASE)
        if match:
            return match.group(1).strip()

    match = re.search(r"From:[^<\n]*?([A-Za-z]+),\s*([A-Za-z]+)\s*<", text)
    if match:
        return f"{match.group(2)} {match.group(1)}"

    match = re.search(r"Kind\s+regards,?\s*\n*\s*([A-Za-z]+\s+[A-Za-z]+)", text, re.IGNORECASE)
    return match.group(1).strip() if match else None


def _is_item_table(header_cells) -> bool:
    names = [clean_text(c.get_text(" ")).lower() for c in header_cells]
    return "sku" in names and "model" in names and any("qty" in name for name in names)


def _parse_rows(soup: BeautifulSoup) -> list[ParsedLineItem]:
    items = []
    for table in soup.find_all("table"):
        rows = table.find_all("tr")
        if not rows:
            continue
        header_cells = rows[0].find_all("th", recursive=False) or rows[0].find_all(
            "td", recursive=False
        )
        if not _is_item_table(header_cells):
            continue

        for row in rows[1:]:
            cells = row.find_all("td")
            if len(cells) < 6 or cells[0].get("colspan"):
                continue
            values = [clean_text(c.get_text(" ")) for c in cells]
            sku, model, description, qty_text = values[2], values[3], values[4], values[5]
            if not (sku and model):
                continue

            parts = split_description(description, model)
            item = ParsedLineItem(
                brand=parts["brand"] or brand_from_sku(sku) or VENDOR_NAME,
                model=model,
                color=parts["color_name"],
                color_name=parts["color_name"] or None,
                eye_size=parts["eye_size"],
                bridge=parts["bridge"],
                temple=parts["temple"],
                sku=sku,
                quantity=parse_int(qty_text),
                wholesale_price=parse_amount(values[6]) if len(values) > 6 else None,
            )
            if item.eye_size:
                item.size = f"{item.eye_size}/{item.bridge}/{item.temple}"
            items.append(item)
    return items


@register_parser("clearvision")
def parse_clearvision(content: ParserInput) -> ParseResult:
    """Parse a ClearVision CVOGo order email."""
    html = content.html or ""
    soup = BeautifulSoup(html, "html.parser") if html else None
    text = content.text or (soup.get_text("\n") if soup else "")

    order = ParsedOrder(vendor=VENDOR_NAME)

    match = re.search(r"Order\s*(?:Reference\s*)?#[:\s]*(\d+)", text, re.IGNORECASE)
    if not match:
        match = re.search(
            r"CVOGo\s*Order[:\s]*(\d+)", f"{content.subject or ''}\n{text}", re.IGNORECASE
        )
    if match:
        order.order_number = match.group(1)

    match = re.search(r"Date[:\s]*([\d/]+)", text)
    if match:
        order.order_date = parse_date_text(match.group(1)) or match.group(1)

    order.rep_name = _extract_rep(content, text)

    match = re.search(r"Customer\s*ID[:\s]*(\d+)", text, re.IGNORECASE)
    if match:
        order.account_number = match.group(1)
        order.customer_code = order.account_number

    match = re.search(r"Customer(?!\s*(?:ID|Email))[:\s]+([^\n]+)", text, re.IGNORECASE)
    if match:
        order.customer_name = clean_text(match.group(1)) or None

    items = _parse_rows(soup) if soup else []
    diagnostics = []
    if not items:
        diagnostics.append("no line item table with SKU, Model and Qty columns")
    else:
        unbranded = sum(1 for item in items if item.brand == VENDOR_NAME)
        if unbranded:
            diagnostics.append(f"{unbranded} items with unrecognized brand prefix")
            logger.debug(
                f"{unbranded} ClearVision items without a brand prefix",
                extra={"vendor": "clearvision", "stage": "parse"},
            )

    order.total_pieces = total_quantity(items)
    priced = [item for item in items if item.wholesale_price is not None]
    if priced:
        order.total_amount = round(sum(i.wholesale_price * i.quantity for i in priced), 2)

    return ParseResult(
        order=order,
        items=finalize_items(items),
        diagnostics=diagnostics,
        parse_method="html_table",
    )
