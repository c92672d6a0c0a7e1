"""
Ideal Optics Email Parser

I-Deal Optics web order confirmations are nested tables:
- Label/value rows where the label cell is bold ("Web Order #", "Order Date")
- An "Account Information" table (account, contact, address, city, state, zip)
- An items table headed Style Name | Color | Size | Quantity | Notes

The brand is always Ideal Optics; style name is the model.
"""

from typing import Optional

from bs4 import BeautifulSoup, Tag

from pipeline.types import ParsedLineItem, ParsedOrder, ParseResult, ParserInput

from .base import (
    clean_text,
    finalize_items,
    make_sku,
    parse_date_text,
    parse_int,
    register_parser,
    split_size,
    total_quantity,
)

VENDOR_NAME = "Ideal Optics"

HEADER_BACKGROUND = "CCCCCC"


def _is_header_cell(cell: Tag) -> bool:
    style = (cell.get("style") or "").upper()
    classes = " ".join(cell.get("class") or [])
    return (
        HEADER_BACKGROUND in style
        or "header" in classes
        or cell.find("strong") is not None
    )


def _is_bold_label(cell: Tag) -> bool:
    classes = " ".join(cell.get("class") or [])
    return "boldtext" in classes or cell.find(["b", "strong"]) is not None


def _table_with_header(soup: BeautifulSoup, header: str) -> Optional[Tag]:
    for cell in soup.find_all("td"):
        if clean_text(cell.get_text()) == header:
            return cell.find_parent("table")
    return None


def _extract_order_info(soup: BeautifulSoup, order: ParsedOrder) -> None:
    for cell in soup.find_all("td"):
        if not _is_bold_label(cell):
            continue
        label = clean_text(cell.get_text())
        value_cell = cell.find_next_sibling("td")
        # Layout cells wrapping the whole block are not labels
        if value_cell is None or len(label) > 40:
            continue
        value = clean_text(value_cell.get_text())

        if "Web Order #" in label:
            order.order_number = value
        elif "Order Date" in label:
            order.order_date = parse_date_text(value) or value
        elif "Ordered By" in label:
            order.rep_name = value
        elif "Purchase Order" in label:
            order.reference_number = value or None


def _extract_account(soup: BeautifulSoup, order: ParsedOrder) -> None:
    table = _table_with_header(soup, "Account Information")
    if table is None:
        return
    for row in table.find_all("tr"):
        cells = row.find_all("td")
        if len(cells) < 5 or _is_header_cell(cells[0]):
            continue
        account = clean_text(cells[0].get_text())
        if account and "Account" not in account and len(account) < 20:
            order.account_number = order.customer_code = account
            order.customer_name = clean_text(cells[1].get_text()) or None
            return


def _extract_items(soup: BeautifulSoup) -> list[ParsedLineItem]:
    table = _table_with_header(soup, "Style Name")
    if table is None:
        return []

    items = []
    for row in table.find_all("tr"):
        cells = row.find_all("td")
        if len(cells) < 4 or _is_header_cell(cells[0]):
            continue

        style_name = clean_text(cells[0].get_text())
        if not style_name or style_name == "Style Name" or "total" in style_name.lower():
            continue

        color = clean_text(cells[1].get_text())
        size = clean_text(cells[2].get_text())
        eye, bridge, temple = split_size(size)
        if size and not bridge:
            # Non-standard sizes like "53-16" keep whatever parts exist
            parts = [p.strip() for p in size.split("-")]
            eye = parts[0] or eye
            bridge = parts[1] if len(parts) > 1 and parts[1] else None

        items.append(
            ParsedLineItem(
                brand=VENDOR_NAME,
                model=style_name,
                color=color,
                color_name=color,
                size=size,
                full_size=size or None,
                eye_size=eye,
                bridge=bridge,
                temple=temple,
                quantity=parse_int(cells[3].get_text()),
                sku=make_sku(style_name, color, size).replace("_", "-"),
            )
        )
    return items


@register_parser("ideal_optics")
def parse_ideal_optics(content: ParserInput) -> ParseResult:
    """Parse an I-Deal Optics web order confirmation."""
    html = content.html or ""

    # Forwarded copies: start at the block holding the I-Deal logo
    marker = html.find("i-deal-optics-logo-mail.png")
    if marker > -1:
        head = html[:marker]
        start = max(head.rfind("<div"), head.rfind("<table"))
        if start > -1:
            html = html[start:]

    order = ParsedOrder(vendor=VENDOR_NAME)
    if not html:
        return ParseResult(
            order=order,
            diagnostics=["no html body"],
            parse_method="html_table",
        )

    soup = BeautifulSoup(html, "html.parser")
    _extract_order_info(soup, order)
    _extract_account(soup, order)
    items = _extract_items(soup)

    diagnostics = []
    if not items:
        diagnostics.append("items table with 'Style Name' header not found or empty")

    order.total_pieces = total_quantity(items)

    return ParseResult(
        order=order,
        items=finalize_items(items),
        diagnostics=diagnostics,
        parse_method="html_table",
    )
