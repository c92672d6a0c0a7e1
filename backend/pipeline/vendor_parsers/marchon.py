"""
Marchon Email Parser

Marchon order confirmations list one frame per three-cell row:

    [image link] | SF2223N LIGHT GOLD/BURGUNDY (54 eye) | 1

The style cell holds the model (first token) and color, with the eye size
on its own line. The image link points at the product detail page, whose
query string carries the color code and the eye+bridge size:

    detail.cfm?frame=SF2223N&coll=SF&pickColor=744&pickSize=5417

Brands are not printed; they come from the model prefix.
"""

import re
from typing import Optional
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup

from pipeline.logging_config import get_logger
from pipeline.normalizer import unwrap_url
from pipeline.types import ParsedLineItem, ParsedOrder, ParseResult, ParserInput

from .base import (
    clean_text,
    finalize_items,
    parse_date_text,
    register_parser,
    total_quantity,
)

logger = get_logger(__name__)

VENDOR_NAME = "Marchon"

MODEL_PREFIX_BRANDS = {
    "SF": "Salvatore Ferragamo",
    "CK": "Calvin Klein",
    "CKJ": "Calvin Klein Jeans",
    "NK": "Nike",
    "NIKE": "Nike",
    "COL": "Columbia",
    "C": "Columbia",
    "DG": "Dragon",
    "DRAGON": "Dragon",
    "FL": "Flexon",
    "FLEXON": "Flexon",
    "L": "Lacoste",
    "LACOSTE": "Lacoste",
    "LO": "Longchamp",
    "MNY": "Marchon NYC",
    "MNYC": "Marchon NYC",
    "NW": "Nine West",
    "SKAGA": "Skaga",
    "SEAN": "Sean John",
    "JOE": "Joe by Joseph Abboud",
    "JSK": "JS Kids",
    "MCM": "MCM",
    "CHLOE": "Chloe",
    "CH": "Chloe",
    "LIU": "Liu Jo",
    "KARL": "Karl Lagerfeld",
    "KL": "Karl Lagerfeld",
    "DKNY": "DKNY",
    "DK": "Donna Karan",
}

HEADER_ROW_COLORS = ("#b2b4b2", "178, 180, 178", "178,180,178")
EYE_SIZE = re.compile(r"\((\d{2})\s*eye\)", re.IGNORECASE)


def brand_from_model(model: str) -> str:
    """Map a model number to its brand; the longest matching prefix wins."""
    upper = (model or "").upper()
    for prefix in sorted(MODEL_PREFIX_BRANDS, key=len, reverse=True):
        if upper.startswith(prefix):
            return MODEL_PREFIX_BRANDS[prefix]
    return VENDOR_NAME


def product_params(href: Optional[str]) -> dict:
    """Read frame, coll, pickColor and pickSize from a product detail link."""
    if not href:
        return {}
    query = parse_qs(urlparse(unwrap_url(href)).query)
    return {key: values[0] for key, values in query.items() if values}


def _is_header_row(row) -> bool:
    marker = " ".join(
        [row.get("bgcolor") or "", row.get("style") or ""]
        + [cell.get("style") or "" for cell in row.find_all("td", recursive=False)[:1]]
    ).lower()
    return any(color in marker for color in HEADER_ROW_COLORS)


def _extract_customer(text: str, order: ParsedOrder) -> None:
    match = re.search(r"Customer[:\s]*\n\s*([^(\n]+?)\s*\((\d+)\)", text, re.IGNORECASE)
    if match:
        order.customer_name = clean_text(match.group(1))
        order.account_number = match.group(2)
        order.customer_code = order.account_number


def _parse_rows(soup: BeautifulSoup) -> list[ParsedLineItem]:
    items = []
    seen = set()
    for row in soup.find_all("tr"):
        cells = row.find_all("td", recursive=False)
        if len(cells) != 3 or _is_header_row(row):
            continue

        style_text = cells[1].get_text("\n")
        qty_text = clean_text(cells[2].get_text(" "))
        size_match = EYE_SIZE.search(style_text)
        if not size_match or not qty_text.isdigit() or int(qty_text) == 0:
            continue

        style_and_color = clean_text(style_text[: size_match.start()])
        model, _, color = style_and_color.partition(" ")
        if not model:
            continue

        link = cells[0].find("a")
        params = product_params(link.get("href") if link else None)

        item = ParsedLineItem(
            brand=brand_from_model(model),
            model=model,
            color=color.strip(),
            color_name=color.strip() or None,
            color_code=params.get("pickColor"),
            size=size_match.group(1),
            eye_size=size_match.group(1),
            collection=params.get("coll"),
            quantity=int(qty_text),
        )
        pick_size = params.get("pickSize") or ""
        if len(pick_size) == 4 and pick_size.isdigit():
            item.bridge = pick_size[2:]

        key = (item.model, item.color_code or item.color, item.size)
        if key in seen:
            continue
        seen.add(key)
        items.append(item)
    return items


@register_parser("marchon")
def parse_marchon(content: ParserInput) -> ParseResult:
    """Parse a Marchon order confirmation."""
    html = content.html or ""
    soup = BeautifulSoup(html, "html.parser") if html else None
    text = content.text or (soup.get_text("\n") if soup else "")

    order = ParsedOrder(vendor=VENDOR_NAME)

    match = re.search(r"Order ID[:\s]*([A-Z0-9]+)", text, re.IGNORECASE)
    if match:
        order.order_number = match.group(1)

    match = re.search(r"SALES REP[:\s]*([^\n]+)", text, re.IGNORECASE)
    if match:
        order.rep_name = match.group(1).strip()

    match = re.search(r"\bDATE[:\s]*([\d-]+)", text, re.IGNORECASE)
    if match:
        order.order_date = parse_date_text(match.group(1)) or match.group(1)

    _extract_customer(text, order)

    items = _parse_rows(soup) if soup else []
    diagnostics = []
    if not items:
        diagnostics.append("no frame rows found in order table")
    else:
        missing_code = sum(1 for item in items if not item.color_code)
        if missing_code:
            diagnostics.append(f"{missing_code} items missing color codes")
            logger.debug(
                f"{missing_code} Marchon items without product link color code",
                extra={"vendor": "marchon", "stage": "parse"},
            )

    order.total_pieces = total_quantity(items)

    return ParseResult(
        order=order,
        items=finalize_items(items),
        diagnostics=diagnostics,
        parse_method="html_table",
    )
