"""Integration tests for the Safilo catalog API client.

Tests critical integration points:
- Retry with backoff on 5xx and connection failures
- Per-run search cache (identical terms hit the API once)
- Variant scoring and enrichment of parsed Safilo items
"""

import json
import time

import pytest
import requests
import responses

from pipeline.enrichment.safilo_api import (
    SafiloCatalogClient,
    SafiloEnrichmentAdapter,
    build_filter_body,
    parse_catalog_response,
    search_variations,
)
from pipeline.errors import EnrichmentError
from pipeline.types import ParsedLineItem

FILTER_URL = "https://www.mysafilo.com/US/api/CatalogAPI/filter"

CARRERA_8862 = [
    {
        "collectionName": "CARRERA",
        "styleCode": "CARRERA 8862",
        "description": "Rectangular optical frame",
        "colorGroup": [
            {
                "color": "807",
                "colorName": "BLACK",
                "sizes": [
                    {
                        "eyeSize": 54,
                        "bridge": 18,
                        "temple": 145,
                        "upc": "762753000001",
                        "wholesale": "82.50",
                        "msrp": "165.00",
                        "isInStock": True,
                        "availableStatus": "AVAILABLE",
                        "additionalData": [{"name": "FITTING", "value": "STANDARD"}],
                    },
                    {
                        "eyeSize": 56,
                        "bridge": 18,
                        "temple": 145,
                        "upc": "762753000002",
                        "wholesale": "82.50",
                        "msrp": "165.00",
                        "isInStock": False,
                    },
                ],
            },
            {
                "color": "086",
                "colorName": "HAVANA",
                "sizes": [{"eyeSize": 54, "bridge": 18, "temple": 145, "upc": "762753000003"}],
            },
        ],
    }
]


def _carrera():
    return ParsedLineItem(
        brand="CARRERA",
        model="8862",
        color="807",
        color_code="807",
        eye_size="54",
        bridge="18",
        temple="145",
    )


# ============================================================================
# RESPONSE PARSING
# ============================================================================


def test_filter_body_only_varies_search():
    body = build_filter_body("KS ADRIA")

    assert body["search"] == "KS ADRIA"
    assert body["ASizes"] == {"min": -1, "max": -1}
    assert body["Collections"] == []


def test_parse_catalog_response_flattens_variants():
    product = parse_catalog_response(CARRERA_8862, "8862")

    assert product["found"]
    assert product["brand"] == "CARRERA"
    assert product["model"] == "CARRERA 8862"
    assert len(product["variants"]) == 3
    first = product["variants"][0]
    assert first["eye_size"] == "54"
    assert first["wholesale"] == 82.5
    assert first["in_stock"] is True
    assert first["fitting"] == "STANDARD"
    # Zero or missing prices are unknown, not free
    assert product["variants"][2]["wholesale"] is None


def test_parse_catalog_response_empty():
    assert parse_catalog_response([], "x") == {"found": False, "reason": "No results returned"}
    assert not parse_catalog_response([{"colorGroup": []}], "x")["found"]


def test_search_variations_expand_prefixes():
    item = ParsedLineItem(brand="KATE SPADE", model="KS ADRIA")

    assert search_variations(item) == [
        "KS ADRIA",
        "KATE SPADE KS ADRIA",
        "KATE KS ADRIA",
        "KATE SPADE ADRIA",
    ]


# ============================================================================
# RETRY AND CACHE
# ============================================================================


@responses.activate
def test_retries_server_error_then_succeeds(pipeline_config):
    responses.add(responses.POST, FILTER_URL, json={"error": "busy"}, status=500)
    responses.add(responses.POST, FILTER_URL, json=CARRERA_8862, status=200)

    client = SafiloCatalogClient(pipeline_config)
    product = client.search("8862")

    assert product["found"]
    assert client.request_count == 2
    assert len(responses.calls) == 2


@responses.activate
def test_retries_connection_error(pipeline_config):
    responses.add(responses.POST, FILTER_URL, body=requests.ConnectionError("reset"))
    responses.add(responses.POST, FILTER_URL, json=CARRERA_8862, status=200)

    product = SafiloCatalogClient(pipeline_config).search("8862")

    assert product["found"]


@responses.activate
def test_gives_up_after_max_retries(pipeline_config):
    responses.add(responses.POST, FILTER_URL, status=503)

    client = SafiloCatalogClient(pipeline_config)
    with pytest.raises(EnrichmentError) as exc_info:
        client.search("8862")

    assert exc_info.value.retryable
    assert client.request_count == pipeline_config.max_retries


@responses.activate
def test_client_error_is_not_retried(pipeline_config):
    responses.add(responses.POST, FILTER_URL, status=400)

    client = SafiloCatalogClient(pipeline_config)
    with pytest.raises(EnrichmentError) as exc_info:
        client.search("8862")

    assert not exc_info.value.retryable
    assert client.request_count == 1


@responses.activate
def test_identical_searches_hit_the_api_once(pipeline_config):
    responses.add(responses.POST, FILTER_URL, json=CARRERA_8862, status=200)

    client = SafiloCatalogClient(pipeline_config)
    client.search("8862")
    client.search("8862")

    assert client.request_count == 1
    assert len(responses.calls) == 1


def _slow_catalog_response(request):
    time.sleep(0.2)
    return (200, {}, json.dumps(CARRERA_8862))


@responses.activate
def test_concurrent_items_share_one_search(pipeline_config):
    responses.add_callback(
        responses.POST, FILTER_URL, callback=_slow_catalog_response, content_type="application/json"
    )
    items = [
        ParsedLineItem(brand="CARRERA", model="8862", color=color, eye_size="54")
        for color in ("807", "086", "003")
    ]

    adapter = SafiloEnrichmentAdapter(pipeline_config)
    adapter.enrich(items, vendor=None)

    assert adapter.client.request_count == 1
    assert len(responses.calls) == 1


@responses.activate
def test_failed_search_is_not_cached(pipeline_config):
    responses.add(responses.POST, FILTER_URL, status=400)
    responses.add(responses.POST, FILTER_URL, json=CARRERA_8862, status=200)

    client = SafiloCatalogClient(pipeline_config)
    with pytest.raises(EnrichmentError):
        client.search("8862")

    assert client.search("8862")["found"]
    assert client.request_count == 2


# ============================================================================
# ENRICHMENT
# ============================================================================


@responses.activate
def test_adapter_enriches_matching_variant(pipeline_config):
    responses.add(responses.POST, FILTER_URL, json=CARRERA_8862, status=200)
    item = _carrera()

    results = SafiloEnrichmentAdapter(pipeline_config).enrich([item], vendor=None)

    assert results[0].success
    assert results[0].confidence == 95
    assert item.upc == "762753000001"
    assert item.wholesale_price == 82.5
    assert item.msrp == 165.0
    assert item.in_stock is True
    assert item.api_verified


@responses.activate
def test_adapter_tries_next_search_term(pipeline_config):
    responses.add(responses.POST, FILTER_URL, json=[], status=200)
    responses.add(responses.POST, FILTER_URL, json=CARRERA_8862, status=200)
    item = _carrera()

    adapter = SafiloEnrichmentAdapter(pipeline_config)
    results = adapter.enrich([item], vendor=None)

    assert results[0].success
    assert adapter.client.request_count == 2


@responses.activate
def test_adapter_records_api_failure_on_item(pipeline_config):
    responses.add(responses.POST, FILTER_URL, status=500)
    item = _carrera()

    results = SafiloEnrichmentAdapter(pipeline_config).enrich([item], vendor=None)

    assert not results[0].success
    assert "failed after 3 attempts" in results[0].error
    assert item.upc is None


@responses.activate
def test_adapter_rejects_weak_match(pipeline_config):
    responses.add(responses.POST, FILTER_URL, json=CARRERA_8862, status=200)
    item = ParsedLineItem(brand="CARRERA", model="8862", color="999", eye_size="60")

    results = SafiloEnrichmentAdapter(pipeline_config).enrich([item], vendor=None)

    assert not results[0].success
    assert results[0].confidence == 45
    assert item.upc is None
