"""
Safilo PDF Order Parser

Safilo emails carry the order as a PDF attachment. The parser works on the
extracted page text (see pipeline.pdf_text). Frame lines follow the
"Item Description" header and can wrap across up to four physical lines:

    CARRERA 8862 807 BLACK 54/18 145
    CH 1002 086 HAVANA 52/18
    140

Brand is implied by a short prefix; each prefix fixes how many tokens belong
to the model before the color code.
"""

import re
from typing import Optional

from pipeline.logging_config import get_logger
from pipeline.types import ParsedLineItem, ParsedOrder, ParseResult, ParserInput

from .base import (
    clean_text,
    finalize_items,
    make_sku,
    parse_date_text,
    register_parser,
    total_quantity,
)

logger = get_logger(__name__)

VENDOR_NAME = "Safilo"

ANCHOR = "Item Description"
FRAME_PREFIX = re.compile(r"^\s*(CARRERA|VICTORY|CARDUC|CH\s|KS\s|CATRINA|JOLIET|MIS\s)")
STOP_PREFIX = re.compile(r"^\s*(CARRERA|VICTORY|CARDUC|CH\s|KS\s|CATRINA|JOLIET|MIS\s|KSP\s|Total)")
SIZE_TOKEN = re.compile(r"(\d{2})/(\d{2})\s+(\d{3})")
PARTIAL_SIZE = re.compile(r"\d{2}/\d{2}\s*$")
DATE_LINE = re.compile(r"^\d+/\d+/\d+")
DATE_STAMP = re.compile(r"\d{5}/\d{2}/\d{4}\.?")
LOOKAHEAD = 3

# prefix -> (brand, number of model tokens, include the prefix token in the model)
PREFIX_RULES = [
    ("CARRERA ", "CARRERA", 1, False),
    ("VICTORY ", "CARRERA", 3, True),
    ("CARDUC ", "CARRERA DUCATI", 2, True),
    ("CH ", "CHESTERFIELD", 2, True),
    ("KS ", "KATE SPADE", 3, True),
    ("CATRINA", "KATE SPADE", 1, True),
    ("JOLIET", "KATE SPADE", 1, True),
    ("MIS ", "MISSONI", 2, True),
]


def parse_frame_line(line: str) -> Optional[ParsedLineItem]:
    """Decompose one (joined) frame line into brand/model/color/size.

    Returns None when the line carries no size token or too few tokens.
    """
    line = DATE_STAMP.sub("", clean_text(line))
    line = clean_text(line)

    size = SIZE_TOKEN.search(line)
    if not size:
        return None
    eye, bridge, temple = size.groups()

    before = line[: size.start()].strip()
    parts = before.split()
    if len(parts) < 3:
        return None

    for prefix, brand, model_tokens, keep_prefix in PREFIX_RULES:
        if before.startswith(prefix):
            start = 0 if keep_prefix else 1
            model = " ".join(parts[start:start + model_tokens])
            code_idx = start + model_tokens
            break
    else:
        # Unrecognised prefix: brand, then two model tokens, remainder is color
        brand = parts[0]
        model = " ".join(parts[1:3])
        code_idx = None

    if code_idx is None:
        color_code = None
        color_name = " ".join(parts[3:])
    else:
        color_code = parts[code_idx] if code_idx < len(parts) else None
        color_name = " ".join(parts[code_idx + 1:])
    color_name = clean_text(color_name.replace("_", " "))

    return ParsedLineItem(
        brand=brand,
        model=model,
        color=color_name or (color_code or ""),
        color_code=color_code,
        color_name=color_name or None,
        size=f"{eye}/{bridge}/{temple}",
        eye_size=eye,
        bridge=bridge,
        temple=temple,
        full_size=f"{eye}-{bridge}-{temple}",
        quantity=1,
        sku=make_sku(brand, model, color_code, eye),
    )


def _is_frame_start(line: str) -> bool:
    return bool(FRAME_PREFIX.match(line) or SIZE_TOKEN.search(line))


def parse_frames(lines: list[str]) -> tuple[list[ParsedLineItem], Optional[str]]:
    """Parse frame lines after the anchor. Returns (items, diagnostic)."""
    start = next((i + 1 for i, line in enumerate(lines) if ANCHOR in line), None)
    if start is None:
        return [], f"anchor '{ANCHOR}' not found in PDF text"

    items = []
    i = start
    while i < len(lines):
        line = lines[i]
        if not line or "Total" in line or "*Date Available" in line or not _is_frame_start(line):
            i += 1
            continue

        joined = line
        nxt = i + 1
        while nxt < len(lines) and nxt <= i + LOOKAHEAD:
            follow = lines[nxt]
            if STOP_PREFIX.match(follow) or DATE_LINE.match(follow):
                break
            if SIZE_TOKEN.search(joined) and SIZE_TOKEN.search(follow):
                break
            if re.fullmatch(r"\d{3}", follow):
                # Temple wrapped onto its own line
                if PARTIAL_SIZE.search(joined):
                    joined += " " + follow
                    nxt += 1
                    continue
                break
            if len(follow) > 3 and not follow.isdigit() and not SIZE_TOKEN.search(joined):
                joined += " " + follow
                nxt += 1
                continue
            break

        item = parse_frame_line(joined)
        if item:
            items.append(item)
        else:
            logger.debug(
                f"Skipped Safilo line without size token: {joined[:80]}",
                extra={"vendor": "safilo", "stage": "parse"},
            )
        i = nxt

    if not items:
        return [], "no frame lines with a size token after anchor"
    return items, None


def parse_order_header(lines: list[str], text: str) -> ParsedOrder:
    order = ParsedOrder(vendor=VENDOR_NAME)

    for i, line in enumerate(lines):
        if line == "Account Number:" and i + 5 < len(lines):
            # Three stacked labels followed by three stacked values
            order.account_number = lines[i + 3] or None
            order.reference_number = lines[i + 4] or None
            order.order_number = lines[i + 5] or None
            break
        match = re.search(r"Order Reference Number[:\s]*(\d+)", line)
        if match:
            order.order_number = match.group(1)
        match = re.search(r"EyeRep Order Number[:\s]*(\d+)", line)
        if match:
            order.reference_number = match.group(1)
        if "Account" in line and not order.account_number:
            match = re.search(r"(\d{6,})", line)
            if match:
                order.account_number = match.group(1)

    for i, line in enumerate(lines):
        if line == "Placed By:" and i + 2 < len(lines):
            placed = lines[i + 2]
            match = re.match(r"^(\d+)\s+(.+)$", placed)
            order.rep_name = match.group(2) if match else placed
            break
        match = re.match(r"^Placed By:\s*(?:\d+\s+)?(.+)$", line)
        if match:
            order.rep_name = match.group(1).strip()
            break

    for i, line in enumerate(lines):
        if "Date:" not in line:
            continue
        # Value is on the same line or one of the next two
        window = " ".join(lines[i:i + 3]) if line == "Date:" else line
        match = re.search(r"(\d{2}/\d{2}/\d{4})", window)
        if match:
            order.order_date = parse_date_text(match.group(1))
            break

    match = re.search(r"Customer:\s*([^(\n]+)\s*\(([^)]+)\)", text)
    if match:
        order.customer_name = match.group(1).strip()
        order.customer_code = match.group(2).strip()

    return order


@register_parser("safilo")
def parse_safilo(content: ParserInput) -> ParseResult:
    """Parse a Safilo order from its PDF text."""
    text = content.pdf_text or content.text or ""
    lines = [line.strip() for line in text.split("\n")]

    order = parse_order_header(lines, text)
    items, diagnostic = parse_frames(lines)

    order.total_pieces = total_quantity(items)

    return ParseResult(
        order=order,
        items=finalize_items(items),
        diagnostics=[diagnostic] if diagnostic else [],
        parse_method="pdf_positional",
    )
