"""Integration tests for the Modern Optical product page scraper.

Tests critical integration points:
- Detail URL spellings for dotted brands and multi-word models
- Product page detection (404 shells and short pages rejected)
- Variant extraction and enrichment of parsed Modern Optical items
"""

import time

import pytest
import responses

from pipeline.enrichment.modern_optical_web import (
    ModernOpticalEnrichmentAdapter,
    ModernOpticalScraper,
    build_product_urls,
    is_product_page,
    parse_product_page,
)
from pipeline.errors import EnrichmentError
from pipeline.types import ParsedLineItem

BASE = "https://www.modernoptical.com"
BIG_RIVER_URL = f"{BASE}/Detail/BMEC/BIG-RIVER"


def _variant_row(color, eye, temple, bridge, upc):
    return (
        "<tr>"
        f"<td>{color}</td><td>{eye}</td><td>{eye}</td><td>38</td><td>{bridge}</td>"
        f"<td>58</td><td>{temple}</td><td>{bridge}</td>"
        f'<td><span id="ctl00_MainContentArea_rptSizes_ctl01_Label1">{upc}</span></td>'
        "</tr>"
    )


def product_page(out_of_stock=False):
    rows = "".join([
        _variant_row("Black", "54", "145", "17", "675254000011"),
        _variant_row("Gunmetal", "56", "145", "17", "675254000012"),
        "<tr><td>Header only</td></tr>",
        _variant_row("Tortoise", "54", "145", "17", ""),
    ])
    banner_style = "" if out_of_stock else "display: none"
    return f"""
    <html><body>
    <div id="MainContentArea">
      <h1 class="label-custom-green">BIG RIVER</h1>
      <a id="ctl00_MainContentArea_lnkCollection" href="/Collection/BMEC">B.M.E.C.</a>
      <div id="ctl00_MainContentArea_outofstock" style="{banner_style}">Currently unavailable</div>
      <div class="spec"><label>Material</label><p>Titanium</p></div>
      <div class="spec"><label>Gender</label><p>Men</p></div>
      <div class="product-data-table">
        <table class="table">
          <thead><tr><th>Color</th><th>Eye</th><th>A</th><th>B</th><th>DBL</th>
          <th>ED</th><th>Temple</th><th>Bridge</th><th>UPC</th></tr></thead>
          <tbody>{rows}</tbody>
        </table>
      </div>
      <!-- {"x" * 1200} -->
    </div>
    </body></html>
    """


# ============================================================================
# URL BUILDING AND PAGE DETECTION
# ============================================================================


def test_dotted_brand_builds_compact_slug_first():
    urls = build_product_urls(BASE, "B.M.E.C.", "BIG RIVER")

    assert urls[0] == BIG_RIVER_URL
    assert f"{BASE}/Detail/BMEC/BIG_RIVER" in urls
    assert len(urls) == len(set(urls))


def test_is_product_page():
    assert is_product_page(200, product_page())
    assert not is_product_page(500, product_page())
    assert not is_product_page(200, "<html>label-custom-green</html>")
    assert not is_product_page(200, "<html>Page Not Found" + " " * 2000 + "</html>")
    assert not is_product_page(200, "<html>" + " " * 2000 + "</html>")


def test_parse_product_page():
    page = parse_product_page(product_page())

    assert page["model"] == "BIG RIVER"
    assert page["collection"] == "B.M.E.C."
    assert page["material"] == "Titanium"
    assert page["gender"] == "men"
    assert not page["out_of_stock"]
    # Short rows and rows without a UPC are skipped
    assert [v["upc"] for v in page["variants"]] == ["675254000011", "675254000012"]
    black = page["variants"][0]
    assert black["eye_size"] == "54"
    assert black["temple"] == "145"
    assert black["bridge"] == "17"
    assert black["in_stock"] is True


def test_parse_out_of_stock_page():
    page = parse_product_page(product_page(out_of_stock=True))

    assert page["out_of_stock"]
    assert all(v["in_stock"] is False for v in page["variants"])


# ============================================================================
# SCRAPING AND ENRICHMENT
# ============================================================================


@responses.activate
def test_scraper_finds_product_page(pipeline_config):
    responses.add(responses.GET, BIG_RIVER_URL, body=product_page(), status=200)

    page = ModernOpticalScraper(pipeline_config).scrape_product("B.M.E.C.", "BIG RIVER")

    assert page["url"] == BIG_RIVER_URL
    assert len(page["variants"]) == 2


@responses.activate
def test_scraper_caches_pages_per_run(pipeline_config):
    responses.add(responses.GET, BIG_RIVER_URL, body=product_page(), status=200)

    scraper = ModernOpticalScraper(pipeline_config)
    scraper.scrape_product("B.M.E.C.", "BIG RIVER")
    scraper.scrape_product("b.m.e.c.", "big river")

    assert len(responses.calls) == 1


@responses.activate
def test_concurrent_items_share_one_page_fetch(pipeline_config):
    def slow_page(request):
        time.sleep(0.2)
        return (200, {}, product_page())

    responses.add_callback(responses.GET, BIG_RIVER_URL, callback=slow_page)
    items = [
        ParsedLineItem(brand="B.M.E.C.", model="BIG RIVER", color=color, eye_size="54")
        for color in ("Black", "Gunmetal", "Tortoise")
    ]

    ModernOpticalEnrichmentAdapter(pipeline_config).enrich(items, vendor=None)

    assert len(responses.calls) == 1


def test_scraper_raises_when_site_unreachable(pipeline_config):
    # No registered URLs: every request fails with ConnectionError
    with responses.RequestsMock(assert_all_requests_are_fired=False):
        with pytest.raises(EnrichmentError) as exc_info:
            ModernOpticalScraper(pipeline_config).scrape_product("B.M.E.C.", "BIG RIVER")

    assert exc_info.value.retryable


def test_scraper_returns_none_when_no_product_page(pipeline_config):
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        rsps.add(responses.GET, BIG_RIVER_URL, body="<html>Page not found</html>", status=404)

        page = ModernOpticalScraper(pipeline_config).scrape_product("B.M.E.C.", "BIG RIVER")

    assert page is None


@responses.activate
def test_adapter_enriches_item(pipeline_config):
    responses.add(responses.GET, BIG_RIVER_URL, body=product_page(), status=200)
    item = ParsedLineItem(brand="B.M.E.C.", model="BIG RIVER", color="BLACK", eye_size="54")

    results = ModernOpticalEnrichmentAdapter(pipeline_config).enrich([item], vendor=None)

    assert results[0].success
    # brand + model + color + eye size
    assert results[0].confidence == 75
    assert item.upc == "675254000011"
    assert item.in_stock is True
    assert item.material == "Titanium"
    assert item.data_source == "web_scrape"
    assert not item.api_verified


def test_adapter_requires_brand_and_model(pipeline_config):
    item = ParsedLineItem(model="BIG RIVER")

    results = ModernOpticalEnrichmentAdapter(pipeline_config).enrich([item], vendor=None)

    assert not results[0].success
    assert results[0].error == "Brand and model required"
