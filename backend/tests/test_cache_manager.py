"""Tests for the Redis catalog cache and its graceful degradation."""

import json

import redis

import cache_manager


def test_disabled_cache_calls_through():
    calls = []

    @cache_manager.cached("catalog:test")
    def compute():
        calls.append(1)
        return {"value": 1}

    assert compute() == {"value": 1}
    assert compute() == {"value": 1}
    assert len(calls) == 2
    assert cache_manager.get_redis_client() is None


def test_cached_value_is_served_from_redis(mocker):
    client = mocker.MagicMock()
    client.get.return_value = json.dumps({"totalItems": 7})
    mocker.patch("cache_manager.get_redis_client", return_value=client)
    compute = mocker.MagicMock(return_value={"totalItems": 0})

    result = cache_manager.cached("catalog:stats")(compute)()

    assert result == {"totalItems": 7}
    compute.assert_not_called()


def test_miss_stores_result_with_ttl(mocker):
    client = mocker.MagicMock()
    client.get.return_value = None
    mocker.patch("cache_manager.get_redis_client", return_value=client)

    @cache_manager.cached("catalog:vendor", key_func=lambda vendor_id: f"catalog:vendor:{vendor_id}")
    def analytics(vendor_id):
        return {"vendorId": vendor_id}

    assert analytics(4) == {"vendorId": 4}
    client.setex.assert_called_once_with(
        "catalog:vendor:4", cache_manager.DEFAULT_TTL, json.dumps({"vendorId": 4})
    )


def test_redis_errors_degrade_to_misses(mocker):
    client = mocker.MagicMock()
    client.get.side_effect = redis.ConnectionError("gone")
    client.setex.side_effect = redis.ConnectionError("gone")
    mocker.patch("cache_manager.get_redis_client", return_value=client)

    assert cache_manager.cache_get("catalog:stats") is None
    assert cache_manager.cache_set("catalog:stats", {"a": 1}) is False


def test_invalidate_catalog_deletes_matching_keys(mocker):
    client = mocker.MagicMock()
    client.scan_iter.return_value = iter(["catalog:stats", "catalog:vendor:1"])
    client.delete.return_value = 2
    mocker.patch("cache_manager.get_redis_client", return_value=client)

    cache_manager.cache_invalidate_catalog()

    client.scan_iter.assert_called_once_with(match="catalog:*")
    client.delete.assert_called_once_with("catalog:stats", "catalog:vendor:1")
