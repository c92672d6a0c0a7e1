"""
Kenmark Email Parser

Kenmark runs on the same rep-portal backend as Modern Optical, so receipts
share the Image | Model | Color | Size | Qty table. Two differences:

- The model cell is often just the model; brand then defaults to Kenmark.
- Product image URLs end in the UPC:
  https://imageserver.jiecosystem.net/image/kenmark/715317146401
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
    total_quantity,
)

logger = get_logger(__name__)

VENDOR_NAME = "Kenmark"

COLOR_WITH_CODE = re.compile(r"^([A-Z0-9]{2,4})\s+(.+)$")
FULL_SIZE = re.compile(r"(\d{2})[-/](\d{2})[-/](\d{3})")


def extract_upc_from_image(src: Optional[str]) -> Optional[str]:
    """Read the UPC from a (possibly link-protected) Kenmark image URL."""
    if not src:
        return None
    decoded = unwrap_url(unquote(src))
    match = re.search(r"/kenmark/(\d+)", decoded) or re.search(
        r"kenmark%2f(\d+)", src, re.IGNORECASE
    )
    return match.group(1) if match else None


def _extract_customer(soup: Optional[BeautifulSoup], text: str, order: ParsedOrder) -> None:
    match = re.search(r"\((\d{5,10})\)", text)
    if match:
        order.account_number = match.group(1)

    if soup is not None:
        for header in soup.find_all("h3"):
            if header.get_text(strip=True) != "Customer":
                continue
            para = header.find_next_sibling("p")
            if para is None:
                continue
            match = re.search(
                r"([A-Z][A-Za-z0-9\s&.,'-]+?)\s*\((\d{5,10})\)", para.get_text("\n")
            )
            if match:
                order.customer_name = clean_text(match.group(1))
                order.account_number = match.group(2)
            break

    if not order.customer_name:
        match = re.search(r"([A-Z][A-Za-z0-9\s&.,'-]{3,60}?)\s*\((\d{5,10})\)", text)
        if match:
            order.customer_name = clean_text(match.group(1))
            order.account_number = order.account_number or match.group(2)

    order.customer_code = order.account_number


def _parse_rows(soup: BeautifulSoup) -> list[ParsedLineItem]:
    items = []
    for row in soup.select("tbody tr"):
        cells = row.find_all("td", recursive=False) or row.find_all("td")
        if len(cells) < 5:
            continue

        model_cell = clean_text(cells[1].get_text(" "))
        color_cell = clean_text(cells[2].get_text(" "))
        size_cell = clean_text(cells[3].get_text(" "))
        qty_cell = clean_text(cells[4].get_text(" "))

        if not (model_cell and color_cell and qty_cell):
            continue
        if "Model" in model_cell or "Image" in model_cell:
            continue

        brand, model = VENDOR_NAME, model_cell
        if " - " in model_cell:
            brand, _, model = (p.strip() for p in model_cell.partition(" - "))

        item = ParsedLineItem(
            brand=brand,
            model=model,
            color=color_cell,
            color_name=color_cell,
            size=size_cell,
            quantity=parse_int(qty_cell),
        )

        img = cells[0].find("img")
        item.upc = extract_upc_from_image(img.get("src") if img else None)

        match = COLOR_WITH_CODE.match(color_cell)
        if match:
            item.color_code, item.color_name = match.group(1), match.group(2)

        match = FULL_SIZE.search(size_cell)
        if match:
            item.eye_size, item.bridge, item.temple = match.groups()
        else:
            item.eye_size = size_cell or None

        items.append(item)
    return items


@register_parser("kenmark")
def parse_kenmark(content: ParserInput) -> ParseResult:
    """Parse a Kenmark Eyewear order receipt."""
    html = content.html or ""
    soup = BeautifulSoup(html, "html.parser") if html else None
    text = content.text or (soup.get_text("\n") if soup else "")

    order = ParsedOrder(vendor=VENDOR_NAME)

    match = re.search(r"(?:Order Number|Receipt for Order Number)[:\s]*(\d+)", text, re.IGNORECASE)
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
        diagnostics.append("no frame rows found in order table")
    else:
        missing_upc = sum(1 for item in items if not item.upc)
        if missing_upc:
            diagnostics.append(f"{missing_upc} items missing UPC codes")
            logger.debug(
                f"{missing_upc} Kenmark items without image UPC",
                extra={"vendor": "kenmark", "stage": "parse"},
            )

    order.total_pieces = total_quantity(items)

    return ParseResult(
        order=order,
        items=finalize_items(items),
        diagnostics=diagnostics,
        parse_method="html_table",
    )
