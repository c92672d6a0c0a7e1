"""
L'Amy America Email Parser

"Your receipt for EyeRep Order Number ..." emails come from the same rep
portal as Kenmark and Modern Optical: Image | Model | Color | Size | Qty.
Rows always read "Brand - Model", accounts are alphanumeric (U00271302), and
image URLs end in the UPC:
https://imageserver.jiecosystem.net/image/lamy/730638445897
"""

import re
from typing import Optional
from urllib.parse import unquote

from bs4 import BeautifulSoup

from pipeline.logging_config import get_logger
from pipeline.normalizer import unwrap_url
from pipeline.types import ParsedLineItem, ParsedOrder, ParseResult, ParserInput

from .base import (
    clean_text,
    finalize_items,
    parse_date_text,
    parse_int,
    register_parser,
    split_size,
    total_quantity,
)

logger = get_logger(__name__)

VENDOR_NAME = "L'Amy America"

ACCOUNT = r"\(([A-Z0-9]{8,10})\)"
COLOR_WITH_CODE = re.compile(r"^([A-Z0-9]{2,4})\s+(.+)$")


def upc_from_image(src: Optional[str]) -> Optional[str]:
    if not src:
        return None
    decoded = unwrap_url(unquote(src))
    match = re.search(r"/lamy/(\d+)", decoded) or re.search(r"lamy%2f(\d+)", src, re.IGNORECASE)
    return match.group(1) if match else None


def _extract_customer(soup: Optional[BeautifulSoup], text: str, order: ParsedOrder) -> None:
    match = re.search(ACCOUNT, text)
    if match:
        order.account_number = match.group(1)

    if soup is not None:
        for header in soup.find_all("h3"):
            if header.get_text(strip=True) != "Customer":
                continue
            para = header.find_next_sibling("p")
            if para is not None:
                match = re.search(r"([A-Z][A-Z0-9\s&.,'-]+?)\s*" + ACCOUNT, para.get_text("\n"))
                if match:
                    order.customer_name = clean_text(match.group(1))
                    order.account_number = match.group(2)
            break

    if not order.customer_name:
        match = re.search(r"([A-Z][A-Z0-9\s&.,'-]{3,60}?)\s*" + ACCOUNT, text)
        if match:
            order.customer_name = clean_text(match.group(1))

    order.customer_code = order.account_number


def _parse_rows(soup: BeautifulSoup) -> list[ParsedLineItem]:
    items = []
    for row in soup.select("tbody tr"):
        cells = row.find_all("td", recursive=False) or row.find_all("td")
        if len(cells) < 5:
            continue

        model_cell, color_cell, size_cell, qty_cell = (
            clean_text(c.get_text(" ")) for c in cells[1:5]
        )
        if not (model_cell and color_cell and qty_cell) or " - " not in model_cell:
            continue
        if "Model" in model_cell or "Image" in model_cell:
            continue

        brand, _, model = (p.strip() for p in model_cell.partition(" - "))
        if not (brand and model):
            continue

        eye, bridge, temple = split_size(size_cell)
        item = ParsedLineItem(
            brand=brand,
            model=model,
            color=color_cell,
            color_name=color_cell,
            size=size_cell,
            eye_size=eye or size_cell or None,
            bridge=bridge,
            temple=temple,
            quantity=parse_int(qty_cell),
        )

        match = COLOR_WITH_CODE.match(color_cell)
        if match:
            item.color_code, item.color_name = match.group(1), match.group(2)

        img = cells[0].find("img")
        item.upc = upc_from_image(img.get("src") if img else None)
        items.append(item)
    return items


@register_parser("lamy_america")
def parse_lamy_america(content: ParserInput) -> ParseResult:
    """Parse an L'Amy America EyeRep receipt."""
    html = content.html or ""
    soup = BeautifulSoup(html, "html.parser") if html else None
    text = content.text or (soup.get_text("\n") if soup else "")

    order = ParsedOrder(vendor=VENDOR_NAME)

    match = re.search(r"Order Number[:\s]*(\d+)", text, re.IGNORECASE)
    if not match and content.subject:
        match = re.search(r"Order Number[:\s]*(\d+)", content.subject, re.IGNORECASE)
    if match:
        order.order_number = match.group(1)

    match = re.search(r"Placed By Rep:\s*([^\n]+)", text)
    if match:
        order.rep_name = match.group(1).strip()

    match = re.search(r"Date:\s*([\d/]+)", text)
    if match:
        order.order_date = parse_date_text(match.group(1)) or match.group(1)

    _extract_customer(soup, text, order)

    items = _parse_rows(soup) if soup else []
    diagnostics = []
    if not items:
        diagnostics.append("no Brand - Model rows found in order table")
    else:
        missing_upc = sum(1 for item in items if not item.upc)
        if missing_upc:
            diagnostics.append(f"{missing_upc} items missing UPC codes")
            logger.debug(
                f"{missing_upc} L'Amy items without image UPC",
                extra={"vendor": "lamy_america", "stage": "parse"},
            )

    order.total_pieces = total_quantity(items)

    return ParseResult(
        order=order,
        items=finalize_items(items),
        diagnostics=diagnostics,
        parse_method="html_table",
    )
