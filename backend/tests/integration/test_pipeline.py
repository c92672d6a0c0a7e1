"""End-to-end tests for the vendor email pipeline.

Runs real fixture emails through detect -> parse -> catalog check ->
enrich -> catalog write -> persist against the in-memory database.
External enrichment sources are replaced with the pass-through adapter
or mocked with responses.
"""

import base64
import json
from pathlib import Path

import pytest
import responses

from database import get_catalog_entries, get_inventory, get_processed_emails
from pipeline.enrichment import NoneAdapter
from pipeline.orchestrator import process_vendor_email
from pipeline.types import Attachment, InboundEmail

FIXTURES = Path(__file__).parent.parent / "fixtures" / "sample_emails"
SAFILO_FILTER_URL = "https://www.mysafilo.com/US/api/CatalogAPI/filter"
MARCHON_SKU_URL = "https://www.mymarchon.com//ProductCatologWebWeb/Frame/sku"
ACCOUNT = 1

SAFILO_TEXT = """SAFILO USA, INC
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
KS ADRIA CS 807 BLACK 53/17 140
Total 2
"""


def _fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


def _modern_optical_email() -> InboundEmail:
    return InboundEmail(
        sender="custsvc@modernoptical.com",
        subject="Receipt for Order Number 6817195",
        html=_fixture("modern_optical_order.html"),
    )


def _safilo_email(with_pdf: bool = True) -> InboundEmail:
    attachments = []
    if with_pdf:
        attachments.append(
            Attachment(
                filename="SO_5512340.pdf",
                content_type="application/pdf",
                data=base64.b64encode(b"%PDF-1.4 order confirmation").decode(),
            )
        )
    return InboundEmail(
        sender="orders@safilo.com",
        subject="Safilo order confirmation",
        html="<p>Your order has been received. Details are attached.</p>",
        attachments=attachments,
    )


@pytest.fixture
def offline_adapters(pipeline_config):
    return {
        "modern_optical": NoneAdapter(pipeline_config),
        "safilo": NoneAdapter(pipeline_config),
    }


# ============================================================================
# HAPPY PATH
# ============================================================================


def test_modern_optical_order_end_to_end(vendor_ids, pipeline_config, offline_adapters):
    result = process_vendor_email(
        _modern_optical_email(),
        account_id=ACCOUNT,
        adapters=offline_adapters,
        config=pipeline_config,
    )

    assert result.success, result.failure
    assert result.vendor_code == "modern_optical"
    assert result.detection.confidence == 95
    assert result.vendor_id == vendor_ids["modern_optical"]
    assert result.order.order_number == "6817195"
    assert len(result.items) == 5
    assert result.stats["cache_hits"] == 0
    assert result.stats["cache_misses"] == 5
    assert result.stats["cached"] == 5
    assert not result.duplicate

    # Unenriched items are still cached, flagged incomplete
    entries = get_catalog_entries(vendor_id=vendor_ids["modern_optical"])
    assert len(entries) == 5
    assert {e["data_source"] for e in entries} == {"email_parse"}

    assert len(get_inventory(ACCOUNT)) == 5
    log = get_processed_emails(account_id=ACCOUNT)
    assert log[0]["parse_status"] == "parsed"
    assert log[0]["items_count"] == 5
    assert log[0]["order_id"] == result.order_id


def test_second_run_is_served_from_catalog(vendor_ids, pipeline_config, offline_adapters):
    process_vendor_email(
        _modern_optical_email(), account_id=ACCOUNT, adapters=offline_adapters, config=pipeline_config
    )

    result = process_vendor_email(
        _modern_optical_email(), account_id=ACCOUNT, adapters=offline_adapters, config=pipeline_config
    )

    assert result.success
    assert result.stats["cache_hits"] == 5
    assert result.stats["cache_misses"] == 0
    assert result.stats["hit_rate"] == 100.0
    assert result.duplicate
    assert all(item.cached for item in result.items)
    # The repeat order counted once more against every entry, not duplicated
    entries = get_catalog_entries(vendor_id=vendor_ids["modern_optical"])
    assert len(entries) == 5
    assert {e["times_ordered"] for e in entries} == {2}
    assert len(get_inventory(ACCOUNT)) == 5


def test_five_row_receipt_derives_pieces_and_warms_catalog(
    vendor_ids, pipeline_config, offline_adapters
):
    email = InboundEmail(
        sender="custsvc@modernoptical.com",
        subject="Receipt for Order Number 6821044",
        html=_fixture("modern_optical_receipt.html"),
    )

    first = process_vendor_email(
        email, account_id=ACCOUNT, adapters=offline_adapters, config=pipeline_config
    )

    assert first.success, first.failure
    assert first.order.total_pieces == 5
    assert [(i.brand, i.model, i.color, i.size) for i in first.items] == [
        ("B.M.E.C.", "BIG AIR", "BLACK", "54"),
        ("B.M.E.C.", "BIG RIVER", "GUNMETAL", "56"),
        ("GENEVIEVE", "BRAVO", "BLK/GM", "52"),
        ("MODZ KIDS", "GAMER", "BLUE FADE", "46"),
        ("FUL VUE", "MELROSE", "BROWN", "51"),
    ]
    assert first.stats["cache_misses"] == 5

    second = process_vendor_email(
        email, account_id=ACCOUNT, adapters=offline_adapters, config=pipeline_config
    )

    assert second.stats["cache_hits"] == 5
    assert second.stats["cache_misses"] == 0
    assert second.to_dict()["order"]["total_pieces"] == 5


def test_persist_false_writes_no_order_or_log(vendor_ids, pipeline_config, offline_adapters):
    result = process_vendor_email(
        _modern_optical_email(),
        account_id=ACCOUNT,
        persist=False,
        adapters=offline_adapters,
        config=pipeline_config,
    )

    assert result.success
    assert result.order_id is None
    assert get_inventory(ACCOUNT) == []
    assert get_processed_emails() == []


def test_safilo_pdf_order(vendor_ids, pipeline_config, offline_adapters, mocker):
    extract = mocker.patch("pipeline.orchestrator.extract_text_from_pdf", return_value=SAFILO_TEXT)

    result = process_vendor_email(
        _safilo_email(), account_id=ACCOUNT, adapters=offline_adapters, config=pipeline_config
    )

    assert result.success, result.failure
    extract.assert_called_once_with(b"%PDF-1.4 order confirmation")
    assert result.vendor_code == "safilo"
    assert result.order.order_number == "5512340"
    assert [(i.brand, i.model) for i in result.items] == [
        ("CARRERA", "8862"),
        ("KATE SPADE", "KS ADRIA CS"),
    ]


@responses.activate
def test_enrichment_failures_do_not_fail_the_run(vendor_ids, pipeline_config, mocker):
    mocker.patch("pipeline.orchestrator.extract_text_from_pdf", return_value=SAFILO_TEXT)
    responses.add(responses.POST, SAFILO_FILTER_URL, status=503)

    result = process_vendor_email(_safilo_email(), account_id=ACCOUNT, config=pipeline_config)

    assert result.success
    assert result.stats["enriched"] == 0
    assert result.stats["enrichment_failed"] == 2
    assert all(item.enrichment_error for item in result.items)
    assert result.stats["cached"] == 2


def _marchon_sku_lookup(request):
    style = json.loads(request.body)["style"]
    if style != "SF2223N":
        return (200, {}, json.dumps({"serviceStatus": {"resultCode": 1, "message": "No style"}}))
    sku = {
        "style": "SF2223N",
        "marketingGroupDescription": "Salvatore Ferragamo",
        "color": "744",
        "colorDescription": "LIGHT GOLD/BURGUNDY",
        "SSA": "54",
        "SSDBL": "17",
        "templeLength": "140",
        "upcNumber": "886895512345",
        "retail": "98.00",
        "msrp": "245.00",
        "stockStatus": "Available",
    }
    return (200, {}, json.dumps({"serviceStatus": {"resultCode": 0}, "skuDetail": [sku]}))


@responses.activate
def test_marchon_order_enriched_from_sku_api(vendor_ids, pipeline_config):
    responses.add_callback(
        responses.POST,
        MARCHON_SKU_URL,
        callback=_marchon_sku_lookup,
        content_type="application/json",
    )
    email = InboundEmail(
        sender="noreply@marchon.com",
        subject="Marchon Order Confirmation for WESTGATE EYE ASSOCIATES",
        html=_fixture("marchon_order.html"),
    )

    result = process_vendor_email(email, account_id=ACCOUNT, config=pipeline_config)

    assert result.success, result.failure
    assert result.vendor_code == "marchon"
    assert result.order.total_pieces == 4
    assert result.stats["enriched"] == 1
    assert result.stats["enrichment_failed"] == 2

    ferragamo = result.items[0]
    assert ferragamo.upc == "886895512345"
    assert ferragamo.wholesale_price == 98.0
    assert ferragamo.api_verified
    assert result.items[1].enrichment_error


# ============================================================================
# FAILURES
# ============================================================================


def test_missing_content(vendor_ids, pipeline_config):
    result = process_vendor_email(
        InboundEmail(sender="custsvc@modernoptical.com", subject="Order", html="  ", text=""),
        config=pipeline_config,
    )

    assert not result.success
    assert result.failure.code == "missing_content"
    assert not result.failure.manual_review
    assert result.to_dict()["error"]["code"] == "missing_content"
    assert get_processed_emails()[0]["parse_status"] == "failed"


def test_pdf_vendor_without_attachment(vendor_ids, pipeline_config, offline_adapters):
    result = process_vendor_email(
        _safilo_email(with_pdf=False), adapters=offline_adapters, config=pipeline_config
    )

    assert not result.success
    assert result.vendor_code == "safilo"
    assert result.failure.code == "missing_pdf"


def test_unknown_vendor_goes_to_manual_review(vendor_ids, pipeline_config):
    result = process_vendor_email(
        InboundEmail(sender="friend@gmail.com", subject="lunch?", html="<p>See you at noon</p>"),
        account_id=ACCOUNT,
        config=pipeline_config,
    )

    assert not result.success
    assert result.failure.code == "unknown_vendor"
    assert result.failure.manual_review
    log = get_processed_emails(parse_status="manual_review")
    assert len(log) == 1
    assert log[0]["error_code"] == "unknown_vendor"
    assert get_inventory(ACCOUNT) == []


def test_no_items_goes_to_manual_review(vendor_ids, pipeline_config, offline_adapters):
    result = process_vendor_email(
        InboundEmail(
            sender="custsvc@modernoptical.com",
            subject="Receipt for Order Number 1",
            html="<p>Thanks for your order</p>",
        ),
        adapters=offline_adapters,
        config=pipeline_config,
    )

    assert not result.success
    assert result.failure.code == "no_items"
    assert result.failure.manual_review
    assert result.parse_status == "manual_review"
