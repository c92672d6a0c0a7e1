"""Integration tests for the Marchon SKU API client.

Tests critical integration points:
- Request body and response flattening (retail is the wholesale price)
- Retry on 5xx and per-run style cache
- Variant selection by color code and eye/bridge size
"""

import json
import time

import pytest
import responses

from pipeline.enrichment.marchon_api import (
    MarchonCatalogClient,
    MarchonEnrichmentAdapter,
    build_sku_request,
    parse_sku_response,
)
from pipeline.errors import EnrichmentError
from pipeline.types import ParsedLineItem

SKU_URL = "https://www.mymarchon.com//ProductCatologWebWeb/Frame/sku"


def _sku(color, description, eye, bridge, upc, stock="Available"):
    return {
        "style": "SF2223N",
        "styleName": "SF2223N",
        "marketingGroupDescription": "Salvatore Ferragamo",
        "color": color,
        "colorDescription": description,
        "SSA": eye,
        "SSDBL": bridge,
        "templeLength": "140",
        "upcNumber": f"{upc}   ",
        "retail": "98.00",
        "msrp": "245.00",
        "stockStatus": stock,
        "planMaterial": "Metal",
        "gender": "Female",
    }


SF2223N = {
    "serviceStatus": {"resultCode": 0, "message": "OK"},
    "skuDetail": [
        _sku("744", "LIGHT GOLD/BURGUNDY", "54", "17", "886895512345"),
        _sku("744", "LIGHT GOLD/BURGUNDY", "56", "17", "886895512346", stock="Backorder"),
        _sku("001", "BLACK", "54", "17", "886895512347"),
    ],
}


def _ferragamo():
    return ParsedLineItem(
        brand="Salvatore Ferragamo",
        model="SF2223N",
        color="LIGHT GOLD/BURGUNDY",
        color_code="744",
        eye_size="54",
        bridge="17",
    )


# ============================================================================
# REQUEST AND RESPONSE
# ============================================================================


def test_sku_request_names_the_style():
    body = build_sku_request("SF2223N")

    assert body["style"] == "SF2223N"
    assert body["itemType"] == "FRAME"
    assert body["userCredential"]["countryCode"] == "US"


def test_parse_sku_response_flattens_variants():
    product = parse_sku_response(SF2223N, "SF2223N")

    assert product["found"]
    assert product["brand"] == "Salvatore Ferragamo"
    assert product["model"] == "SF2223N"
    first = product["variants"][0]
    assert first["upc"] == "886895512345"
    assert first["wholesale"] == 98.0
    assert first["msrp"] == 245.0
    assert first["in_stock"] is True
    assert product["variants"][1]["in_stock"] is False


def test_parse_sku_response_errors():
    failed = parse_sku_response({"serviceStatus": {"resultCode": 1, "message": "Bad style"}}, "X")
    assert failed == {"found": False, "reason": "Bad style"}

    empty = parse_sku_response({"serviceStatus": {"resultCode": 0}, "skuDetail": []}, "X")
    assert not empty["found"]


# ============================================================================
# RETRY AND CACHE
# ============================================================================


@responses.activate
def test_retries_server_error_then_succeeds(pipeline_config):
    responses.add(responses.POST, SKU_URL, status=502)
    responses.add(responses.POST, SKU_URL, json=SF2223N, status=200)

    client = MarchonCatalogClient(pipeline_config)
    product = client.lookup("SF2223N")

    assert product["found"]
    assert client.request_count == 2
    assert json.loads(responses.calls[1].request.body)["style"] == "SF2223N"


@responses.activate
def test_gives_up_after_max_retries(pipeline_config):
    responses.add(responses.POST, SKU_URL, status=503)

    client = MarchonCatalogClient(pipeline_config)
    with pytest.raises(EnrichmentError) as exc_info:
        client.lookup("SF2223N")

    assert exc_info.value.retryable
    assert client.request_count == pipeline_config.max_retries


@responses.activate
def test_concurrent_items_share_one_style_lookup(pipeline_config):
    def slow_response(request):
        time.sleep(0.2)
        return (200, {}, json.dumps(SF2223N))

    responses.add_callback(
        responses.POST, SKU_URL, callback=slow_response, content_type="application/json"
    )
    items = [
        ParsedLineItem(brand="Salvatore Ferragamo", model=model, color_code=code, eye_size="54")
        for model, code in (("SF2223N", "744"), ("sf2223n", "001"), ("SF2223N", "744"))
    ]

    adapter = MarchonEnrichmentAdapter(pipeline_config)
    adapter.enrich(items, vendor=None)

    assert adapter.client.request_count == 1


# ============================================================================
# ENRICHMENT
# ============================================================================


@responses.activate
def test_adapter_enriches_matching_sku(pipeline_config):
    responses.add(responses.POST, SKU_URL, json=SF2223N, status=200)
    item = _ferragamo()

    results = MarchonEnrichmentAdapter(pipeline_config).enrich([item], vendor=None)

    assert results[0].success
    # brand + model + color + eye + bridge
    assert results[0].confidence == 85
    assert item.upc == "886895512345"
    assert item.wholesale_price == 98.0
    assert item.in_stock is True
    assert item.api_verified


@responses.activate
def test_adapter_reports_unknown_style(pipeline_config):
    responses.add(
        responses.POST,
        SKU_URL,
        json={"serviceStatus": {"resultCode": 1, "message": "Style not found"}},
        status=200,
    )
    item = _ferragamo()

    results = MarchonEnrichmentAdapter(pipeline_config).enrich([item], vendor=None)

    assert not results[0].success
    assert "Style not found" in results[0].error
    assert item.upc is None


def test_adapter_requires_model(pipeline_config):
    results = MarchonEnrichmentAdapter(pipeline_config).enrich([ParsedLineItem()], vendor=None)

    assert results[0].error == "No model name available"
