"""
Etnia Barcelona PDF Order Parser

Sales order PDFs list each frame as a block of lines:

    09/15/2025100000000019343001            <- date + line reference
    4 RANIA 53O TQGR                         <- qty, model, size+type, color code
    RANIA 53O TQGR - METAL OPTICAL           <- description (2-3 lines)
    TURQUOISE. GREEN 53-19-142 (O)
    8434146123456                            <- 13 digit UPC
    1.00 PC120.00 USD10.00%108.00 USD        <- qty, unit price, discount, net

Brand is always Etnia Barcelona. The unit price is the wholesale cost.
"""

import re
from typing import Optional

from pipeline.types import ParsedLineItem, ParsedOrder, ParseResult, ParserInput

from .base import clean_text, finalize_items, make_sku, parse_date_text, register_parser

BRAND = "ETNIA BARCELONA"
VENDOR_NAME = "Etnia Barcelona"

FRAME_START = re.compile(r"^(\d{2}/\d{2}/\d{4})(\d+)")
UPC_LINE = re.compile(r"^\d{13}$")
PRICE_LINE = re.compile(r"([\d.]+)\s*PC\s*([\d.]+)\s*USD\s*([\d.]+)%\s*([\d.]+)\s*USD")
SIZE = re.compile(r"(\d{2})-(\d{2})-(\d{3})")

# "RANIA 53O TQGR - METAL OPTICAL TURQUOISE. GREEN 53-19-142 (O)"
CAPS_DESCRIPTION = re.compile(
    r"^.+?\s+-\s+([A-Z]+)\s+(OPTICAL|SUN)\s+(?!Frame\s)(.+?)\s+(\d{2}-\d{2}-\d{3})"
)
# "COCO Grey Havana - Acetate Optical Frame 51-16-140"
FRAME_DESCRIPTION = re.compile(
    r"^(.+?)\s+-\s+([A-Za-z]+)\s+(Optical|Sun)\s+Frame\s+(\d{2}-\d{2}-\d{3})", re.IGNORECASE
)
# "ROADRUNNER 56O HVGR - acetate optical frame havana verde 56-16-148"
LOWER_DESCRIPTION = re.compile(
    r"^.+?\s+-\s+([a-z]+)\s+(optical|sun)\s+frame\s+(.+?)\s+(\d{2}-\d{2}-\d{3})", re.IGNORECASE
)


def _describe(full_model: str, description: str) -> dict:
    """Pull material, frame type, color and size out of the description."""
    model_name = re.split(r"\s+\d+", full_model)[0]
    info = {"model": model_name, "material": None, "frame_type": None, "color": "", "size": None}

    match = CAPS_DESCRIPTION.match(description)
    if match:
        info["material"], info["frame_type"] = match.group(1), match.group(2).upper()
        info["color"] = re.sub(r"\s*\(\w\)\s*$", "", match.group(3)).rstrip(".").strip()
        info["size"] = match.group(4)
        return info

    match = FRAME_DESCRIPTION.match(description)
    if match:
        info["material"] = match.group(2).upper()
        info["frame_type"] = match.group(3).upper()
        info["size"] = match.group(4)
        split = re.match(r"^([A-Z]+)\s+(.+)$", match.group(1).strip())
        if split:
            info["model"], info["color"] = split.group(1), split.group(2)
        else:
            head, _, rest = match.group(1).strip().partition(" ")
            info["model"], info["color"] = head, rest
        return info

    match = LOWER_DESCRIPTION.match(description)
    if match:
        info["material"] = match.group(1).upper()
        info["frame_type"] = match.group(2).upper()
        info["color"] = match.group(3).strip()
        info["size"] = match.group(4)
        return info

    size = SIZE.search(description)
    info["size"] = size.group(0) if size else None
    info["color"] = re.sub(r"\s*\(\w\)\s*$", "", description).strip()
    if re.search(r"ACETATE", description, re.IGNORECASE):
        info["material"] = "ACETATE"
    if re.search(r"METAL", description, re.IGNORECASE):
        info["material"] = "METAL"
    if re.search(r"OPTICAL", description, re.IGNORECASE):
        info["frame_type"] = "OPTICAL"
    if re.search(r"SUN", description, re.IGNORECASE):
        info["frame_type"] = "SUN"
    return info


def _parse_block(model_line: str, desc_lines: list[str], upc_line: str, price_line: str) -> Optional[ParsedLineItem]:
    match = re.match(r"^[\d\s]+(.+)$", model_line)
    if not match:
        return None
    full_model = match.group(1).strip()

    info = _describe(full_model, clean_text(" ".join(desc_lines)))

    upc = re.search(r"(\d{13})", upc_line)
    price = PRICE_LINE.search(price_line)
    code = re.search(r"([A-Z]{4,6})$", full_model)

    item = ParsedLineItem(
        brand=BRAND,
        model=info["model"] or full_model.split(" ")[0],
        color=info["color"],
        color_code=code.group(1) if code else None,
        color_name=info["color"] or None,
        size=info["size"],
        full_size=info["size"],
        material=info["material"],
        upc=upc.group(1) if upc else None,
        quantity=int(float(price.group(1))) if price else 1,
        wholesale_price=float(price.group(2)) if price else None,
        sku=make_sku(BRAND, full_model),
    )
    if info["size"]:
        item.eye_size, item.bridge, item.temple = info["size"].split("-")
    return item


def parse_frames(lines: list[str]) -> list[ParsedLineItem]:
    items = []
    i = 0
    while i < len(lines):
        if not FRAME_START.match(lines[i]) or i + 1 >= len(lines):
            i += 1
            continue

        model_line = lines[i + 1]
        desc_lines = []
        cursor = i + 2
        while cursor < len(lines) and cursor < i + 6:
            line = lines[cursor]
            if UPC_LINE.match(line) or re.match(r"^\d+\.\d+\s+PC", line) or FRAME_START.match(line):
                break
            desc_lines.append(line)
            cursor += 1

        if cursor + 1 >= len(lines):
            break

        item = _parse_block(model_line, desc_lines, lines[cursor], lines[cursor + 1])
        if item:
            items.append(item)
        i = cursor + 2
    return items


def parse_order_header(text: str) -> ParsedOrder:
    order = ParsedOrder(vendor=VENDOR_NAME)

    match = re.search(r"Sales Order\s+(\d+)", text)
    if match:
        order.order_number = match.group(1)

    match = re.search(r"Date[ \t]+(\d{2}/\d{2}/\d{4})", text, re.IGNORECASE) or re.search(
        r"\n(\d{2}/\d{2}/\d{4})\n", text
    )
    if match:
        order.order_date = parse_date_text(match.group(1))

    match = re.search(r"Customer ID\s+(\d+)", text, re.IGNORECASE)
    if match:
        order.account_number = order.customer_code = match.group(1)

    match = re.search(r"Customer Reference\s+([\w\-]+)", text, re.IGNORECASE)
    if match:
        order.reference_number = match.group(1)

    match = re.search(r"Billing Address:\s*\n\s*([A-Z][A-Z\s]+?)\s*\n", text)
    if match:
        order.customer_name = match.group(1).strip()

    return order


@register_parser("etnia_barcelona")
def parse_etnia(content: ParserInput) -> ParseResult:
    """Parse an Etnia Barcelona sales order from its PDF text."""
    text = content.pdf_text or content.text or ""
    lines = [line.strip() for line in text.split("\n")]

    order = parse_order_header(text)
    items = parse_frames(lines)

    diagnostics = []
    if not items:
        diagnostics.append("no frame blocks (date + reference lines) found in PDF text")

    order.total_pieces = sum(item.quantity for item in items)

    return ParseResult(
        order=order,
        items=finalize_items(items),
        diagnostics=diagnostics,
        parse_method="pdf_positional",
    )
