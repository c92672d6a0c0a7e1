"""
Modern Optical Email Parser

Handles "Receipt for Order Number" emails sent by custsvc@modernoptical.com
from the rep ordering portal. Frames are listed in a table with one row per
colorway:

    | image | BRAND - MODEL | COLOR | SIZE | QTY |

Customer and account appear in a "Customer" card as ``NAME (ACCOUNT)``.
"""

import re
from typing import Optional

from bs4 import BeautifulSoup

from pipeline.logging_config import get_logger
from pipeline.types import ParsedLineItem, ParsedOrder, ParseResult, ParserInput

from .base import (
    clean_text,
    finalize_items,
    make_sku,
    normalize_color,
    parse_date_text,
    parse_int,
    register_parser,
    total_quantity,
)

logger = get_logger(__name__)

VENDOR_NAME = "Modern Optical"

ACCOUNT_PATTERNS = [
    # 5-6 digits in parentheses, not a phone number
    re.compile(r"\((\d{5,6})\)(?![\s\d-])"),
    re.compile(r"Customer[\s\S]*?([A-Z\s&.]+)\s*\((\d{4,6})\)"),
    re.compile(r"Account\s*#?\s*:?\s*(\d{4,6})\b", re.IGNORECASE),
]


def extract_account_number(text: str) -> Optional[str]:
    for pattern in ACCOUNT_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(match.lastindex)
    return None


def extract_customer_name(html: str, text: str) -> Optional[str]:
    """
    Find the customer name in the Customer card.

    Tries, in order:
    1. ``Customer</h3> ... <p>NAME (12345)`` in the raw HTML
    2. The first capitalised line of a ``card-text`` block after the header
    3. The first capitalised line of the stripped Customer section
    4. ``NAME (12345)`` anywhere in the plain text
    """
    source = html or ""

    match = re.search(
        r"Customer</h3>[\s\S]*?<p[^>]*>\s*([A-Z][A-Z0-9\s&.,'@-]+?)\s*\((\d{4,6})\)",
        source,
    )
    if match:
        name = clean_text(match.group(1))
        if len(name) > 2 and name != "Customer":
            return name

    match = re.search(
        r"Customer</h3>[\s\S]*?card-text[^>]*>\s*([A-Z][A-Z0-9\s&.,'@()-]+?)\s*(?:\(|<br|</)",
        source,
        re.IGNORECASE,
    )
    if match:
        name = re.sub(r"\s*\(\d{4,6}\).*$", "", clean_text(match.group(1)))
        if len(name) > 2 and name != "Customer":
            return name

    match = re.search(r"Customer</h3>[\s\S]{0,500}?</div>", source)
    if match:
        lines = [line.strip() for line in re.sub(r"<[^>]*>", "\n", match.group(0)).split("\n")]
        for line in lines:
            if (
                len(line) > 2
                and line[0].isupper()
                and line != "Customer"
                and not line.isdigit()
                and not re.match(r"^Phone:", line, re.IGNORECASE)
            ):
                name = re.sub(r"\s*\(\d{4,6}\).*$", "", line).strip()
                if name:
                    return name

    match = re.search(r"([A-Z][A-Z0-9\s&.,'@-]{3,50}?)\s*\((\d{4,6})\)", text)
    if match:
        name = clean_text(match.group(1))
        if (
            len(name) > 3
            and not re.search(r"order|receipt|subject|from:|to:", name, re.IGNORECASE)
            and not name[0].isdigit()
        ):
            return name

    return None


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

        if not (model_cell and color_cell and size_cell and qty_cell):
            continue
        if "Model" in model_cell or "Image" in model_cell or " - " not in model_cell:
            continue

        brand, _, model = model_cell.partition(" - ")
        brand, model = brand.strip(), model.strip()
        if not brand or not model:
            continue

        items.append(
            ParsedLineItem(
                brand=brand,
                model=model,
                color=color_cell,
                color_name=normalize_color(color_cell),
                size=size_cell,
                quantity=parse_int(qty_cell),
                sku=make_sku(brand, model, color_cell),
            )
        )
    return items


@register_parser("modern_optical")
def parse_modern_optical(content: ParserInput) -> ParseResult:
    """
    Parse a Modern Optical order receipt.

    Header fields come from the plain text (or the HTML's text when no plain
    part exists); line items come from the HTML table.
    """
    html = content.html or ""
    soup = BeautifulSoup(html, "html.parser") if html else None
    text = content.text or (soup.get_text("\n") if soup else "")

    order = ParsedOrder(vendor=VENDOR_NAME)

    match = re.search(r"Order\s*(?:Number|#)?\s*:?\s*(\d+)", text, re.IGNORECASE)
    if match:
        order.order_number = match.group(1)

    match = re.search(r"Placed By Rep:\s*([^\n]+)", text)
    if match:
        order.rep_name = match.group(1).strip()

    match = re.search(r"Date:\s*([\d/]+)", text)
    if match:
        order.order_date = parse_date_text(match.group(1)) or match.group(1)

    order.account_number = extract_account_number(text)
    order.customer_code = order.account_number
    order.customer_name = extract_customer_name(html, text)

    items = _parse_rows(soup) if soup else []
    diagnostics = []
    if not items:
        diagnostics.append("no frame rows found in order table")
        logger.warning(
            "Modern Optical email contained no frame rows",
            extra={"vendor": "modern_optical", "stage": "parse"},
        )

    match = re.search(r"Total Pieces:\s*(\d+)", text)
    order.total_pieces = int(match.group(1)) if match else total_quantity(items)

    return ParseResult(
        order=order,
        items=finalize_items(items),
        diagnostics=diagnostics,
        parse_method="html_table",
    )
