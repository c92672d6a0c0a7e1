"""
Luxottica Email Parser

My Luxottica cart confirmations are a single <pre> block of <br>-separated
lines. Brand and model headers are large bold italic fonts:

    <font size="5"><b><i>BURBERRY (12)</i></b></font>
    <font size="5"><b><i>0BE1375 - DOUGLAS (1)</i></b></font>
    114513  -  LIGHT GOLD / BROWN GRADIENT
    59  8053672321005        USD 136.52     1       09-10-2025

Item lines are: eye size, UPC, unit price, quantity, ship date.
"""

import re
from typing import Optional

from bs4 import BeautifulSoup

from pipeline.types import ParsedLineItem, ParsedOrder, ParseResult, ParserInput

from .base import (
    clean_text,
    finalize_items,
    make_sku,
    parse_amount,
    parse_date_text,
    register_parser,
    total_quantity,
)

VENDOR_NAME = "Luxottica"

HEADER_FONT = r'<font\s+size="?5"?>\s*<b>\s*<i>'
BRAND_HEADER = re.compile(HEADER_FONT + r"([A-Z\s&]+?)\s*\((\d+)\)\s*</i>\s*</b>\s*</font>")
MODEL_HEADER = re.compile(HEADER_FONT + r"([^<]+)</i>\s*</b>\s*</font>")
COLOR_LINE = re.compile(r"^(\w+)\s*-\s*(.+)$")
ITEM_LINE = re.compile(r"^(\d+)\s+(\d+)\s+USD\s+([\d,]+\.\d{2})\s+(\d+)\s+([\d\-]+)")

BRAND_NAMES = {
    "DOLCE E GABBANA": "DOLCE & GABBANA",
    "D&G": "DOLCE & GABBANA",
    "RAYBAN": "RAY-BAN",
    "POLO": "POLO RALPH LAUREN",
}


def _parse_model_header(header: str) -> tuple[str, Optional[str]]:
    """'0BE1375 - DOUGLAS (1)' -> ('0BE1375', 'DOUGLAS'); '0BE3080 (1)' -> ('0BE3080', None)"""
    match = re.match(r"^(.+?)\s*-\s*([^(]+?)\s*\((\d+)\)", header)
    if match:
        return match.group(1).strip(), match.group(2).strip()
    match = re.match(r"^(.+?)\s*\((\d+)\)", header)
    if match:
        return match.group(1).strip(), None
    return header.strip(), None


def _split_lines(fragment: str) -> list[str]:
    lines = (re.sub(r"<[^>]*>", "", line) for line in re.split(r"<br\s*/?>|\n", fragment))
    return [clean_text(line) for line in lines if line.strip()]


def _extract_model_items(section: str, header: str, brand: str) -> list[ParsedLineItem]:
    models = [m for m in MODEL_HEADER.finditer(section) if header not in m.group(1)]

    items = []
    for idx, match in enumerate(models):
        end = models[idx + 1].start() if idx + 1 < len(models) else len(section)
        model, collection = _parse_model_header(clean_text(match.group(1)))

        color_code = color_desc = None
        for line in _split_lines(section[match.end():end]):
            color = COLOR_LINE.match(line)
            if color:
                color_code, color_desc = color.group(1), color.group(2).strip()
                continue

            item = ITEM_LINE.match(line)
            if item and color_code:
                size, upc, price, qty, _ship_date = item.groups()
                items.append(
                    ParsedLineItem(
                        brand=brand,
                        model=model,
                        collection=collection,
                        color=color_desc,
                        color_code=color_code,
                        color_name=color_desc,
                        size=size,
                        eye_size=size,
                        upc=upc,
                        wholesale_price=parse_amount(price),
                        quantity=int(qty),
                        sku=make_sku(brand, model, color_code, size),
                    )
                )
    return items


@register_parser("luxottica")
def parse_luxottica(content: ParserInput) -> ParseResult:
    """Parse a My Luxottica cart confirmation."""
    body = content.html or ""
    if body:
        pre = BeautifulSoup(body, "html.parser").find("pre")
        if pre is not None:
            body = pre.decode_contents()
    else:
        body = (content.text or "").replace("\n", "<br>\n")

    order = ParsedOrder(vendor=VENDOR_NAME)

    match = re.search(r"Agent reference:\s*([^(<]+?)\s*\((\d+)\)", body)
    if match:
        order.rep_name = match.group(1).strip()

    match = re.search(
        r"Customer Reference:\s*([^<\n\r]+?)(?=\s*(?:<br|Customer code|$))",
        body,
        re.IGNORECASE | re.MULTILINE,
    )
    if match:
        order.customer_name = match.group(1).strip()
        order.reference_number = order.customer_name

    match = re.search(r"Customer code:\s*(\d+)", body)
    if match:
        order.account_number = order.customer_code = match.group(1)

    match = re.search(r"Cart number:\s*(\d+)", body)
    if match:
        order.order_number = match.group(1)

    match = re.search(r"Order date:\s*([\d\-/]+)", body)
    if match:
        order.order_date = parse_date_text(match.group(1))

    match = re.search(r"Total:\s*([\d,]+\.\d{2})\s*USD", body)
    if match:
        order.total_amount = parse_amount(match.group(1))

    brands = [m for m in BRAND_HEADER.finditer(body) if not m.group(1).strip()[:1].isdigit()]
    tail = body.find("Total Number of Items")

    items: list[ParsedLineItem] = []
    for idx, match in enumerate(brands):
        if idx + 1 < len(brands):
            end = brands[idx + 1].start()
        else:
            end = tail if tail > match.start() else len(body)
        raw_brand = clean_text(match.group(1))
        brand = BRAND_NAMES.get(raw_brand.upper(), raw_brand)
        items.extend(_extract_model_items(body[match.start():end], raw_brand, brand))

    diagnostics = []
    if not brands:
        diagnostics.append("no brand sections found in cart body")
    elif not items:
        diagnostics.append("brand sections found but no item lines matched")

    order.total_pieces = total_quantity(items)

    return ParseResult(
        order=order,
        items=finalize_items(items),
        diagnostics=diagnostics,
        parse_method="pre_text",
    )
