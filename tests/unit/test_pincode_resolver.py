"""
Unit tests for PIN code resolution
"""

import asyncio

import httpx
import pytest
from unittest.mock import AsyncMock

from conftest import PINCODE_API_URL, FakePostalClient, postal_payload
from core.config import Settings
from ingestion.cache import GeocodeCache, LocalTTLCache
from ingestion.enrichment.pincode_resolver import PincodeResolver


def make_resolver(responses, cache=None):
    client = FakePostalClient(responses)
    cache = cache or GeocodeCache(LocalTTLCache())
    return PincodeResolver(client, cache, api_url=PINCODE_API_URL), client, cache


class TestResolve:
    @pytest.mark.asyncio
    async def test_resolves_and_caches(self):
        resolver, client, cache = make_resolver({
            "Alpha": postal_payload(("100001", "Alpha B.O", "Test District")),
        })

        assert await resolver.resolve("Alpha") == "100001"
        assert await cache.get("alpha-") == "100001"

    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(self):
        resolver, client, _ = make_resolver({
            "Alpha": postal_payload(("100001", "Alpha B.O", "Test District")),
        })

        first = await resolver.resolve("Alpha", "Test District")
        second = await resolver.resolve("Alpha", "Test District")

        assert first == second == "100001"
        assert client.calls == ["Alpha"]

    @pytest.mark.asyncio
    async def test_prefers_office_in_matching_district(self):
        resolver, _, _ = make_resolver({
            "Rampur": postal_payload(
                ("244901", "Rampur H.O", "Rampur"),
                ("413513", "Rampur B.O", "Latur"),
            ),
        })

        assert await resolver.resolve("Rampur", "latur") == "413513"

    @pytest.mark.asyncio
    async def test_first_office_without_district_match(self):
        resolver, _, _ = make_resolver({
            "Rampur": postal_payload(
                ("244901", "Rampur H.O", "Rampur"),
                ("413513", "Rampur B.O", "Latur"),
            ),
        })

        assert await resolver.resolve("Rampur", "Pune") == "244901"

    @pytest.mark.asyncio
    async def test_falls_back_to_district_lookup(self):
        resolver, client, cache = make_resolver({
            "Mysuru": postal_payload(("570001", "Mysore H.O", "Mysuru")),
        })

        assert await resolver.resolve("Hamlet", "Mysuru") == "570001"
        assert client.calls == ["Hamlet", "Mysuru"]
        assert await cache.get("hamlet-mysuru") == "570001"

    @pytest.mark.asyncio
    async def test_no_district_fallback_without_district(self):
        resolver, client, _ = make_resolver({})

        assert await resolver.resolve("Hamlet") is None
        assert client.calls == ["Hamlet"]

    @pytest.mark.asyncio
    async def test_rejects_malformed_pin(self):
        resolver, _, cache = make_resolver({
            "Alpha": postal_payload(("10001", "Alpha B.O", "Test District")),
        })

        assert await resolver.resolve("Alpha") is None
        assert await cache.get("alpha-") is None

    @pytest.mark.asyncio
    async def test_empty_village_does_no_io(self):
        client = AsyncMock()
        resolver = PincodeResolver(client, GeocodeCache(LocalTTLCache()), api_url=PINCODE_API_URL)

        assert await resolver.resolve(None) is None
        assert await resolver.resolve("   ", "Mysuru") is None
        client.get.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cache_hit_does_no_io(self):
        client = AsyncMock()
        local = LocalTTLCache()
        local.set("alpha-", "100001")
        resolver = PincodeResolver(client, GeocodeCache(local), api_url=PINCODE_API_URL)

        assert await resolver.resolve("Alpha") == "100001"
        client.get.assert_not_awaited()


class TestLookupFailures:
    @pytest.mark.asyncio
    async def test_timeout_is_none(self):
        resolver, _, _ = make_resolver({
            "Alpha": httpx.ReadTimeout("timed out"),
        })
        assert await resolver.resolve("Alpha") is None

    @pytest.mark.asyncio
    async def test_server_error_is_none(self):
        resolver, _, cache = make_resolver({
            "Alpha": httpx.Response(503, text="Service Unavailable"),
        })
        assert await resolver.resolve("Alpha") is None
        assert await cache.get("alpha-") is None

    @pytest.mark.asyncio
    async def test_malformed_json_is_none(self):
        resolver, _, _ = make_resolver({
            "Alpha": httpx.Response(200, text="<html>oops</html>"),
        })
        assert await resolver.resolve("Alpha") is None

    @pytest.mark.asyncio
    async def test_unexpected_shape_is_none(self):
        resolver, _, _ = make_resolver({
            "Alpha": {"Status": "Success"},
        })
        assert await resolver.resolve("Alpha") is None

    @pytest.mark.asyncio
    async def test_error_status_is_none(self):
        resolver, _, _ = make_resolver({
            "Alpha": postal_payload(status="Error"),
        })
        assert await resolver.resolve("Alpha") is None


class TestLookupAll:
    @pytest.mark.asyncio
    async def test_lists_all_offices(self):
        resolver, _, _ = make_resolver({
            "Rampur": postal_payload(
                ("244901", "Rampur H.O", "Rampur"),
                ("413513", "Rampur B.O", "Latur"),
            ),
        })

        offices = await resolver.lookup_all("Rampur")
        assert offices == [
            ("244901", "Rampur H.O", "Rampur"),
            ("413513", "Rampur B.O", "Latur"),
        ]

    @pytest.mark.asyncio
    async def test_filters_by_district_substring(self):
        resolver, client, _ = make_resolver({
            "Rampur": postal_payload(
                ("244901", "Rampur H.O", "Rampur"),
                ("413513", "Rampur B.O", "Latur"),
            ),
        })

        assert await resolver.lookup_all("Rampur", "LAT") == [("413513", "Rampur B.O", "Latur")]
        # Cached listing
        assert await resolver.lookup_all("Rampur", "LAT") == [("413513", "Rampur B.O", "Latur")]
        assert client.calls == ["Rampur"]

    @pytest.mark.asyncio
    async def test_failure_is_empty(self):
        resolver, _, _ = make_resolver({"Rampur": httpx.ConnectError("refused")})
        assert await resolver.lookup_all("Rampur") == []


def test_tls_verification_enabled_by_default():
    assert Settings.model_fields["PINCODE_VERIFY_TLS"].default is True


class TestConcurrentResolve:
    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_lookup(self):
        client = FakePostalClient(
            {"Alpha": postal_payload(("100001", "Alpha B.O", "Test District"))},
            latency=0.01
        )
        resolver = PincodeResolver(client, GeocodeCache(LocalTTLCache()), api_url=PINCODE_API_URL)

        pins = await asyncio.gather(*(resolver.resolve("Alpha", "Test District") for _ in range(20)))

        assert pins == ["100001"] * 20
        assert client.calls == ["Alpha"]

    @pytest.mark.asyncio
    async def test_distinct_places_resolved_independently(self):
        client = FakePostalClient(
            {
                "Alpha": postal_payload(("100001", "Alpha B.O", "Test District")),
                "Beta": postal_payload(("100002", "Beta B.O", "Test District")),
            },
            latency=0.01
        )
        resolver = PincodeResolver(client, GeocodeCache(LocalTTLCache()), api_url=PINCODE_API_URL)

        pins = await asyncio.gather(
            resolver.resolve("Alpha"), resolver.resolve("Beta"), resolver.resolve("Alpha")
        )

        assert pins == ["100001", "100002", "100001"]
        assert sorted(client.calls) == ["Alpha", "Beta"]

    @pytest.mark.asyncio
    async def test_failed_lookup_is_not_remembered(self):
        client = FakePostalClient({"Alpha": httpx.ConnectError("refused")})
        resolver = PincodeResolver(client, GeocodeCache(LocalTTLCache()), api_url=PINCODE_API_URL)

        assert await resolver.resolve("Alpha") is None

        client.responses["Alpha"] = postal_payload(("100001", "Alpha B.O", "Test District"))
        assert await resolver.resolve("Alpha") == "100001"
        assert client.calls == ["Alpha", "Alpha"]
