"""
Europa Email Parser

Europa customer receipts are nested layout tables. The two that matter are
found by their header cells (class x_tableheader / x_secondaryheader, or the
navy and grey header backgrounds when classes were stripped):

- "Customer": Account | Name | Address | Address 2 | City | Province | Postal | Phone
- "Order Items": Order Type | Model | Color | Size | Qty | Availability

Model cells read "Brand - Model"; color cells lead with the color number,
e.g. "1 Black - Green Nylon Polarized".
"""

import re
from typing import Optional

from bs4 import BeautifulSoup, Tag

from pipeline.logging_config import get_logger
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

VENDOR_NAME = "Europa"

HEADER_CLASSES = {"x_tableheader", "x_secondaryheader", "tableheader", "secondaryheader"}
HEADER_BACKGROUNDS = ("rgb(11,27,87)", "#0b1b57", "rgb(204,204,204)", "#cccccc")
COLOR_WITH_NUMBER = re.compile(r"^(\d+)\s+(.+)$")
SKIPPED_ORDER_TYPES = {"displays / pop"}


def is_header_cell(cell: Tag) -> bool:
    if HEADER_CLASSES & set(cell.get("class") or []):
        return True
    style = (cell.get("style") or "").replace(" ", "").lower()
    return any(bg in style for bg in HEADER_BACKGROUNDS)


def find_section_table(soup: BeautifulSoup, header: str) -> Optional[Tag]:
    """Innermost table holding a header cell that reads exactly ``header``."""
    for cell in soup.find_all("td"):
        if cell.find("table") is not None or not is_header_cell(cell):
            continue
        if clean_text(cell.get_text(" ")) == header:
            return cell.find_parent("table")
    return None


def _data_rows(table: Tag, min_cells: int):
    for row in table.find_all("tr"):
        cells = row.find_all("td")
        if len(cells) < min_cells:
            continue
        if any(is_header_cell(c) or c.get("colspan") for c in cells):
            continue
        yield [clean_text(c.get_text(" ")) for c in cells]


def _extract_customer(soup: BeautifulSoup, order: ParsedOrder) -> None:
    table = find_section_table(soup, "Customer")
    if table is None:
        return
    for values in _data_rows(table, 8):
        order.account_number = values[0] or None
        order.customer_code = order.account_number
        order.customer_name = values[1] or None
        break


def _parse_rows(soup: BeautifulSoup) -> list[ParsedLineItem]:
    table = find_section_table(soup, "Order Items")
    if table is None:
        return []

    items = []
    for values in _data_rows(table, 5):
        order_type, model_cell, color_cell, size_cell, qty_cell = values[:5]
        availability = values[5] if len(values) > 5 else ""

        if order_type.lower() in SKIPPED_ORDER_TYPES:
            continue
        if not model_cell or model_cell == "Model":
            continue

        brand, model = VENDOR_NAME, model_cell
        if " - " in model_cell:
            brand, _, model = (p.strip() for p in model_cell.partition(" - "))

        item = ParsedLineItem(
            brand=brand,
            model=model,
            color=color_cell,
            size=size_cell,
            eye_size=size_cell or None,
            quantity=parse_int(qty_cell),
            stock_status=availability or None,
            in_stock=availability.lower() != "back-ordered" if availability else None,
        )

        match = COLOR_WITH_NUMBER.match(color_cell)
        if match:
            item.color_code, item.color_name = match.group(1), match.group(2)

        items.append(item)
    return items


@register_parser("europa")
def parse_europa(content: ParserInput) -> ParseResult:
    """Parse a Europa customer receipt."""
    html = content.html or ""
    soup = BeautifulSoup(html, "html.parser") if html else None
    text = content.text or (soup.get_text("\n") if soup else "")

    order = ParsedOrder(vendor=VENDOR_NAME)

    match = re.search(r"Order\s*#[:\s]*(\d+)", text, re.IGNORECASE)
    if not match and content.subject:
        match = re.search(r"Order\s*#?[:\s]*(\d+)", content.subject, re.IGNORECASE)
    if match:
        order.order_number = match.group(1)

    match = re.search(r"Order Placed By Rep[:\s]*([^\n]+)", text, re.IGNORECASE)
    if match:
        order.rep_name = match.group(1).strip()

    match = re.search(r"Date[:\s]*([\d/]+)", text)
    if match:
        order.order_date = parse_date_text(match.group(1)) or match.group(1)

    items = []
    if soup is not None:
        _extract_customer(soup, order)
        items = _parse_rows(soup)

    diagnostics = []
    if not items:
        diagnostics.append("no frame rows found in Order Items table")
    else:
        backordered = sum(1 for item in items if item.in_stock is False)
        if backordered:
            diagnostics.append(f"{backordered} items back-ordered")
            logger.debug(
                f"{backordered} Europa items back-ordered",
                extra={"vendor": "europa", "stage": "parse"},
            )

    order.total_pieces = total_quantity(items)

    return ParseResult(
        order=order,
        items=finalize_items(items),
        diagnostics=diagnostics,
        parse_method="html_table",
    )
