"""Integration tests for L'Amy America enrichment by UPC."""

import json

import pytest
import responses

from pipeline.enrichment.lamy_api import LamyCatalogClient, LamyEnrichmentAdapter
from pipeline.errors import EnrichmentError
from pipeline.types import ParsedLineItem

LAMY_FILTER_URL = "https://www.lamyamerica.com/US/api/CatalogAPI/filter"

CHAMPION_CU4012 = [
    {
        "collectionName": "CHAMPION",
        "styleCode": "CU4012",
        "colorGroup": [
            {
                "color": "C01",
                "colorName": "BLACK",
                "sizes": [
                    {
                        "eyeSize": 53,
                        "bridge": 17,
                        "temple": 140,
                        "upc": "730638445897",
                        "wholesale": "64.00",
                        "msrp": "139.00",
                        "isInStock": True,
                        "availableStatus": "AVAILABLE",
                    },
                    {
                        "eyeSize": 55,
                        "bridge": 17,
                        "temple": 140,
                        "upc": "730638445903",
                        "wholesale": "64.00",
                    },
                ],
            },
            {
                "color": "C02",
                "colorName": "TORTOISE",
                "sizes": [
                    {
                        "eyeSize": 53,
                        "bridge": 17,
                        "temple": 140,
                        "upc": "730638445910",
                        "wholesale": "64.00",
                        "isInStock": False,
                    },
                ],
            },
        ],
    }
]


def _champion(upc, color_code="C01"):
    return ParsedLineItem(
        brand="Champion",
        model="CU4012",
        color=f"{color_code} BLACK",
        color_code=color_code,
        eye_size="53",
        bridge="17",
        temple="140",
        upc=upc,
    )


@responses.activate
def test_search_goes_to_lamy_host_by_upc(pipeline_config):
    responses.add(responses.POST, LAMY_FILTER_URL, json=CHAMPION_CU4012, status=200)

    product = LamyCatalogClient(pipeline_config).search("730638445897")

    assert product["found"]
    assert product["model"] == "CU4012"
    body = json.loads(responses.calls[0].request.body)
    assert body["search"] == "730638445897"


@responses.activate
def test_adapter_enriches_from_upc_match(pipeline_config):
    responses.add(responses.POST, LAMY_FILTER_URL, json=CHAMPION_CU4012, status=200)
    item = _champion("730638445897")

    result = LamyEnrichmentAdapter(pipeline_config).enrich_item(item, vendor=None)

    assert result.success
    assert result.confidence == 95
    assert item.wholesale_price == 64.0
    assert item.msrp == 139.0
    assert item.in_stock is True
    assert item.api_verified
    assert not item.cache_incomplete


@responses.activate
def test_upc_picks_the_variant_over_a_mistyped_color(pipeline_config):
    responses.add(responses.POST, LAMY_FILTER_URL, json=CHAMPION_CU4012, status=200)
    item = _champion("730638445910", color_code="C01")

    result = LamyEnrichmentAdapter(pipeline_config).enrich_item(item, vendor=None)

    assert result.success
    assert result.matched_variant["color_code"] == "C02"
    assert result.confidence == 75
    assert item.in_stock is False


def test_item_without_upc_is_not_searched(pipeline_config):
    adapter = LamyEnrichmentAdapter(pipeline_config)

    result = adapter.enrich_item(_champion(None), vendor=None)

    assert not result.success
    assert result.error == "No UPC available"
    assert adapter.client.request_count == 0


@responses.activate
def test_unknown_upc(pipeline_config):
    responses.add(responses.POST, LAMY_FILTER_URL, json=[], status=200)

    result = LamyEnrichmentAdapter(pipeline_config).enrich_item(_champion("000000000000"), None)

    assert not result.success
    assert "No results returned" in result.error


@responses.activate
def test_gives_up_after_max_retries(pipeline_config):
    responses.add(responses.POST, LAMY_FILTER_URL, status=503)

    client = LamyCatalogClient(pipeline_config)
    with pytest.raises(EnrichmentError) as exc_info:
        client.search("730638445897")

    assert exc_info.value.retryable
    assert "L'Amy API failed" in str(exc_info.value)
    assert client.request_count == pipeline_config.max_retries
