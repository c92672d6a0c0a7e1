"""Tests for vendor order parsers.

HTML parsers run against the sample emails in fixtures/sample_emails; the
PDF parsers (Safilo, Etnia) run against extracted page text.
"""

import pytest

from pipeline.types import ParserInput
from pipeline.vendor_parsers import PARSERS, get_parser
from pipeline.vendor_parsers.base import normalize_color, parse_amount, parse_date_text, split_size
from pipeline.vendor_parsers.clearvision import split_description
from pipeline.vendor_parsers.kenmark import extract_upc_from_image
from pipeline.vendor_parsers.lamy_america import upc_from_image
from pipeline.vendor_parsers.marchon import brand_from_model
from pipeline.vendor_parsers.safilo import parse_frame_line

# ============================================================================
# SHARED UTILITIES
# ============================================================================


def test_registry_has_every_parsed_vendor():
    assert set(PARSERS) == {
        "modern_optical",
        "kenmark",
        "luxottica",
        "ideal_optics",
        "safilo",
        "etnia_barcelona",
        "europa",
        "marchon",
        "clearvision",
        "lamy_america",
    }
    assert get_parser("unlisted_vendor") is None
    assert get_parser("") is None


@pytest.mark.parametrize(
    "size,expected",
    [
        ("54-18-140", ("54", "18", "140")),
        ("54/18/140", ("54", "18", "140")),
        ("54/18 140", ("54", "18", "140")),
        ("54", ("54", None, None)),
        ("", (None, None, None)),
    ],
)
def test_split_size(size, expected):
    assert split_size(size) == expected


def test_normalize_color_expands_abbreviations():
    assert normalize_color("BLK/GM") == "Black/Gunmetal"
    assert normalize_color("BLUE FADE") == "Blue Fade"


def test_parse_amount_formats():
    assert parse_amount("$1,234.50") == 1234.50
    assert parse_amount("63,75") == 63.75
    assert parse_amount("") is None


def test_parse_date_formats():
    assert parse_date_text("3/14/2025") == "2025-03-14"
    assert parse_date_text("April 2, 2025") == "2025-04-02"
    assert parse_date_text("2025-09-03") == "2025-09-03"
    assert parse_date_text("not a date") is None


# ============================================================================
# HTML PARSERS
# ============================================================================


def test_modern_optical_receipt(sample_email):
    html = sample_email("modern_optical_order.html")

    result = get_parser("modern_optical")(ParserInput(html=html))

    order = result.order
    assert order.order_number == "6817195"
    assert order.rep_name == "Jordan Blake"
    assert order.order_date == "2025-03-14"
    assert order.account_number == "93277"
    assert order.customer_name == "EYE CARE CENTER OF SPRINGFIELD"
    assert order.total_pieces == 6

    assert len(result.items) == 5
    first = result.items[0]
    assert (first.brand, first.model, first.color) == ("B.M.E.C.", "BIG RIVER", "BLACK")
    assert first.eye_size == "54"
    assert first.quantity == 1
    assert result.items[2].quantity == 2
    assert result.items[3].color_name == "Black/Gunmetal"
    assert result.parse_method == "html_table"
    assert result.diagnostics == []


MODERN_OPTICAL_ROWS = [
    ("B.M.E.C.", "BIG AIR", "BLACK", "54"),
    ("B.M.E.C.", "BIG RIVER", "GUNMETAL", "56"),
    ("GENEVIEVE", "BRAVO", "BLK/GM", "52"),
    ("MODZ KIDS", "GAMER", "BLUE FADE", "46"),
    ("FUL VUE", "MELROSE", "BROWN", "51"),
]


def test_modern_optical_total_pieces_derived_from_rows(sample_email):
    html = sample_email("modern_optical_receipt.html")

    result = get_parser("modern_optical")(ParserInput(html=html))

    assert result.order.order_number == "6821044"
    assert result.order.total_pieces == 5
    assert [
        (item.brand, item.model, item.color, item.size) for item in result.items
    ] == MODERN_OPTICAL_ROWS
    assert all(item.quantity == 1 for item in result.items)


def test_modern_optical_without_table_reports_diagnostic():
    result = get_parser("modern_optical")(ParserInput(html="<p>Receipt for Order Number: 5</p>"))

    assert result.items == []
    assert result.order.order_number == "5"
    assert "no frame rows found in order table" in result.diagnostics


def test_kenmark_receipt(sample_email):
    html = sample_email("kenmark_order.html")

    result = get_parser("kenmark")(ParserInput(html=html))

    assert result.order.order_number == "4471203"
    assert result.order.account_number == "2041187"
    assert result.order.customer_name == "Lakeside Vision Clinic"
    assert result.order.total_pieces == 4

    allure, leon, riviera = result.items
    assert (allure.brand, allure.model) == ("Kenmark", "ALLURE")
    assert allure.upc == "715317146401"
    assert (allure.color_code, allure.color_name) == ("01", "Black")
    assert (allure.eye_size, allure.bridge, allure.temple) == ("52", "17", "140")

    # Model-only cell defaults the brand
    assert (leon.brand, leon.model) == ("Kenmark", "LEON")
    assert leon.color_code == "TORT"

    assert riviera.upc is None
    assert riviera.eye_size == "50"
    assert "1 items missing UPC codes" in result.diagnostics


def test_kenmark_upc_from_protected_link():
    src = (
        "https://linkprotect.cudasvc.com/url?a=https%3a%2f%2fimageserver.jiecosystem.net"
        "%2fimage%2fkenmark%2f715317146418&c=E"
    )
    assert extract_upc_from_image(src) == "715317146418"
    assert extract_upc_from_image(None) is None


def test_lamy_america_receipt(sample_email):
    html = sample_email("lamy_america_order.html")

    result = get_parser("lamy_america")(ParserInput(html=html))

    assert result.order.order_number == "5523108"
    assert result.order.rep_name == "Morgan Avery"
    assert result.order.order_date == "2025-03-18"
    assert result.order.account_number == "U00271302"
    assert result.order.customer_name == "NORTHFIELD EYE CARE"
    assert result.order.total_pieces == 4

    # Rows without "Brand - Model" are not frames
    champion, bridget, elise = result.items
    assert (champion.brand, champion.model) == ("Champion", "CU4012")
    assert (champion.color_code, champion.color_name) == ("C01", "BLACK")
    assert (champion.eye_size, champion.bridge, champion.temple) == ("53", "17", "140")
    assert champion.upc == "730638445897"
    assert champion.quantity == 2

    assert (bridget.brand, bridget.model) == ("Nicole Miller", "BRIDGET")
    assert bridget.upc == "730638446023"
    assert (bridget.eye_size, bridget.bridge) == ("51", None)

    assert elise.brand == "Ooh La La"
    assert elise.color_code is None
    assert elise.upc is None
    assert "1 items missing UPC codes" in result.diagnostics


def test_lamy_america_upc_from_image():
    assert upc_from_image("https://imageserver.jiecosystem.net/image/lamy%2F730638445897") == (
        "730638445897"
    )
    assert upc_from_image("https://www.example.com/frame.png") is None
    assert upc_from_image(None) is None


def test_luxottica_cart(sample_email):
    html = sample_email("luxottica_order.html")

    result = get_parser("luxottica")(ParserInput(html=html))

    order = result.order
    assert order.order_number == "1187734521"
    assert order.order_date == "2025-09-03"
    assert order.rep_name == "Riley Chen"
    assert order.customer_name == "BRIGHTON EYEWORKS"
    assert order.account_number == "0001029384"
    assert order.total_amount == 558.44

    assert len(result.items) == 4
    douglas = result.items[0]
    assert douglas.brand == "BURBERRY"
    assert douglas.model == "0BE1375"
    assert douglas.collection == "DOUGLAS"
    assert douglas.color_code == "114513"
    assert douglas.color == "LIGHT GOLD / BROWN GRADIENT"
    assert douglas.eye_size == "59"
    assert douglas.upc == "8053672321005"
    assert douglas.wholesale_price == 136.52

    assert result.items[2].model == "0BE2345"
    assert result.items[2].collection is None

    prada = result.items[3]
    assert prada.brand == "PRADA"
    assert prada.model == "0PR 17WV"
    assert prada.wholesale_price == 187.00


def test_luxottica_without_brand_sections():
    result = get_parser("luxottica")(ParserInput(html="<pre>Cart number: 1</pre>"))

    assert result.items == []
    assert "no brand sections found in cart body" in result.diagnostics


def test_ideal_optics_web_order(sample_email):
    html = sample_email("ideal_optics_order.html")

    result = get_parser("ideal_optics")(ParserInput(html=html))

    order = result.order
    assert order.order_number == "W118822"
    assert order.order_date == "2025-04-02"
    assert order.rep_name == "Sam Patel"
    assert order.reference_number is None
    assert order.account_number == "55812"
    assert order.customer_name == "Northside Optometry"

    annie, halston = result.items
    assert (annie.brand, annie.model, annie.color) == ("Ideal Optics", "ANNIE", "Black Crystal")
    assert (annie.eye_size, annie.bridge, annie.temple) == ("52", "17", "140")
    assert annie.quantity == 2
    assert (halston.eye_size, halston.bridge, halston.temple) == ("53", "16", None)
    assert order.total_pieces == 3


def test_europa_receipt(sample_email):
    html = sample_email("europa_order.html")

    result = get_parser("europa")(ParserInput(html=html))

    order = result.order
    assert order.order_number == "318842"
    assert order.rep_name == "Jordan Ellis"
    assert order.order_date == "2025-05-12"
    assert order.account_number == "E20417"
    assert order.customer_name == "Harbor Point Optical"

    # Display material and the totals row are not frames
    cinzia, stj = result.items
    assert (cinzia.brand, cinzia.model) == ("Cinzia", "CIN-5124")
    assert (cinzia.color_code, cinzia.color_name) == ("1", "Black - Green Nylon")
    assert cinzia.eye_size == "52"
    assert cinzia.quantity == 2
    assert cinzia.in_stock is True

    assert (stj.brand, stj.model) == ("Europa", "STJ-3077")
    assert stj.in_stock is False
    assert order.total_pieces == 3
    assert "1 items back-ordered" in result.diagnostics


def test_europa_without_order_items_table():
    result = get_parser("europa")(ParserInput(html="<p>Order #: 12</p>"))

    assert result.items == []
    assert result.order.order_number == "12"
    assert result.order.total_pieces == 0


def test_marchon_confirmation(sample_email):
    html = sample_email("marchon_order.html")

    result = get_parser("marchon")(ParserInput(html=html))

    order = result.order
    assert order.order_number == "M48213377"
    assert order.rep_name == "Riley Santos"
    assert order.order_date == "2025-06-03"
    assert order.customer_name == "WESTGATE EYE ASSOCIATES"
    assert order.account_number == "30771942"

    # The repeated CKJ22612 row is collapsed
    ferragamo, jeans, house = result.items
    assert (ferragamo.brand, ferragamo.model) == ("Salvatore Ferragamo", "SF2223N")
    assert ferragamo.color == "LIGHT GOLD/BURGUNDY"
    assert (ferragamo.color_code, ferragamo.eye_size, ferragamo.bridge) == ("744", "54", "17")

    assert jeans.brand == "Calvin Klein Jeans"
    assert (jeans.color_code, jeans.quantity) == ("001", 2)

    assert (house.brand, house.model, house.color) == ("Marchon", "M-5001", "SATIN NAVY")
    assert house.color_code is None
    assert order.total_pieces == 4
    assert "1 items missing color codes" in result.diagnostics


@pytest.mark.parametrize(
    "model,brand",
    [("CK2044", "Calvin Klein"), ("DKNY501", "DKNY"), ("DK7003", "Donna Karan"), ("XYZ1", "Marchon")],
)
def test_marchon_brand_from_model_prefix(model, brand):
    assert brand_from_model(model) == brand


def test_clearvision_order(sample_email):
    html = sample_email("clearvision_order.html")

    result = get_parser("clearvision")(
        ParserInput(html=html, subject="Dana Price - New CVOGo Order: 40012345")
    )

    order = result.order
    assert order.order_number == "40012345"
    assert order.order_date == "2025-04-10"
    assert order.rep_name == "Dana Price"
    assert order.account_number == "118264"
    assert order.customer_name == "Brightside Family Vision"
    assert order.total_pieces == 4
    assert order.total_amount == 165.50

    advantage, izod, unknown = result.items
    assert (advantage.brand, advantage.model, advantage.color) == (
        "Advantage",
        "MT69",
        "GUNMETAL MATTE/GREEN",
    )
    assert (advantage.eye_size, advantage.bridge, advantage.temple) == ("54", "17", "145")
    assert advantage.sku == "ADMT69GUN5417"
    assert advantage.wholesale_price == 42.00

    assert izod.brand == "Izod Xtreme"
    assert izod.color == "BLACK"

    # No known prefix: the SKU letters stand in for the brand
    assert (unknown.brand, unknown.color) == ("QQ", "TORTOISE")


def test_clearvision_description_split():
    parts = split_description("ADV MT69 GUNMETAL MATTE/GREEN 54/17/145", "MT69")

    assert parts["brand"] == "Advantage"
    assert parts["color_name"] == "GUNMETAL MATTE/GREEN"
    assert (parts["eye_size"], parts["bridge"], parts["temple"]) == ("54", "17", "145")


# ============================================================================
# PDF PARSERS
# ============================================================================

SAFILO_PDF_TEXT = """SAFILO USA, INC
Order Confirmation
Account Number:
EyeRep Order Number:
Order Reference Number:
0000123456
77001
5512340
Placed By:
Rep
4410 Morgan Lee
Date:
09/22/2025
Customer: VISION SOURCE DOWNTOWN (VS-881)
Item Description Qty Price
CARRERA 8862 807 BLACK 54/18 145
CH 1002 086 HAVANA 52/18
140
KS ADRIA CS 807 BLACK 53/17 140
MIS 0110 J5G GOLD 55/18 145
Total 4
"""


def test_safilo_pdf_text():
    result = get_parser("safilo")(ParserInput(pdf_text=SAFILO_PDF_TEXT))

    order = result.order
    assert order.account_number == "0000123456"
    assert order.reference_number == "77001"
    assert order.order_number == "5512340"
    assert order.rep_name == "Morgan Lee"
    assert order.order_date == "2025-09-22"
    assert order.customer_name == "VISION SOURCE DOWNTOWN"
    assert order.customer_code == "VS-881"

    assert [(i.brand, i.model, i.color_code) for i in result.items] == [
        ("CARRERA", "8862", "807"),
        ("CHESTERFIELD", "CH 1002", "086"),
        ("KATE SPADE", "KS ADRIA CS", "807"),
        ("MISSONI", "MIS 0110", "J5G"),
    ]
    wrapped = result.items[1]
    assert (wrapped.eye_size, wrapped.bridge, wrapped.temple) == ("52", "18", "140")
    assert result.items[0].color_name == "BLACK"
    assert order.total_pieces == 4
    assert result.parse_method == "pdf_positional"


def test_safilo_unknown_prefix_falls_back_to_brand_and_two_model_tokens():
    item = parse_frame_line("POLAROID PLD 6120 807 BLACK 50/20 145")

    assert item.brand == "POLAROID"
    assert item.model == "PLD 6120"
    assert item.color_code is None
    assert item.color == "807 BLACK"


def test_safilo_without_anchor():
    result = get_parser("safilo")(ParserInput(pdf_text="Order Confirmation\nno frames"))

    assert result.items == []
    assert result.diagnostics == ["anchor 'Item Description' not found in PDF text"]


ETNIA_PDF_TEXT = """ETNIA BARCELONA LLC
Sales Order 300145
Date 09/15/2025
Customer ID 40877
Customer Reference PO-5521
Billing Address:
HARBOR OPTICAL
12 Bay Street
09/15/2025100000000019343001
1 RANIA 53O TQGR
RANIA 53O TQGR - METAL OPTICAL
TURQUOISE. GREEN 53-19-142 (O)
8434146123456
1.00 PC120.00 USD10.00%108.00 USD
09/15/2025100000000019343002
2 COCO 51O GRHV
COCO Grey Havana - Acetate Optical Frame 51-16-140
8434146654321
2.00 PC98.00 USD10.00%176.40 USD
"""


def test_etnia_pdf_text():
    result = get_parser("etnia_barcelona")(ParserInput(pdf_text=ETNIA_PDF_TEXT))

    order = result.order
    assert order.order_number == "300145"
    assert order.order_date == "2025-09-15"
    assert order.account_number == "40877"
    assert order.reference_number == "PO-5521"
    assert order.customer_name == "HARBOR OPTICAL"

    rania, coco = result.items
    assert rania.brand == "ETNIA BARCELONA"
    assert rania.model == "RANIA"
    assert rania.color == "TURQUOISE. GREEN"
    assert rania.material == "METAL"
    assert rania.color_code == "TQGR"
    assert (rania.eye_size, rania.bridge, rania.temple) == ("53", "19", "142")
    assert rania.upc == "8434146123456"
    assert rania.wholesale_price == 120.00

    assert coco.model == "COCO"
    assert coco.color == "Grey Havana"
    assert coco.material == "ACETATE"
    assert coco.quantity == 2
    assert order.total_pieces == 3
