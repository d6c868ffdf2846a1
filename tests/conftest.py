"""
Pytest configuration and fixtures
"""

import asyncio
from typing import Any, Dict, List, Optional
from urllib.parse import unquote

import httpx
import pytest

from core.exceptions import BulkWriteError, DatabaseConnectionError, UpstreamError
from ingestion.cache import GeocodeCache, LocalTTLCache
from ingestion.enrichment.pincode_resolver import PincodeResolver
from schemas.ingestion import UpsertResult

PINCODE_API_URL = "https://pincode.test/postoffice"
WRIS_QUERY_URL = "https://wris.test/MapServer/0/query"


def make_feature(
    state: Optional[str] = "Test State",
    village: Optional[str] = None,
    district: Optional[str] = None,
    station: Optional[str] = None,
    level: Any = 5.2,
    date: Any = "2024-01-15",
    x: Optional[float] = 78.5,
    y: Optional[float] = 17.4,
    **extra
) -> Dict[str, Any]:
    """Raw WRIS feature as returned by the MapServer query endpoint"""
    attributes = {
        "state_name": state,
        "district_name": district,
        "village_name": village,
        "station_code": station,
        "water_level": level,
        "measurement_date": date,
    }
    attributes.update(extra)
    return {
        "attributes": {k: v for k, v in attributes.items() if v is not None},
        "geometry": {"x": x, "y": y},
    }


def postal_payload(*offices, status: str = "Success") -> List[Dict[str, Any]]:
    """Postal lookup response body: a one-element list"""
    return [{
        "Message": "Number of pincode(s) found",
        "Status": status,
        "PostOffice": [
            {"Name": name, "District": district, "Pincode": pincode}
            for pincode, name, district in offices
        ] or None,
    }]


class FakePostalClient:
    """
    Stand-in for httpx.AsyncClient answering postal lookups by place name.

    Unknown places answer with the service's "Error" status.
    """

    def __init__(self, responses: Optional[Dict[str, Any]] = None, latency: float = 0.0):
        self.responses = responses or {}
        self.latency = latency
        self.calls: List[str] = []

    async def get(self, url: str, timeout: Optional[float] = None) -> httpx.Response:
        place = unquote(url.rsplit("/", 1)[-1])
        self.calls.append(place)
        if self.latency:
            await asyncio.sleep(self.latency)
        request = httpx.Request("GET", url)

        answer = self.responses.get(place)
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, httpx.Response):
            answer.request = request
            return answer
        if answer is None:
            answer = postal_payload(status="Error")
        return httpx.Response(200, json=answer, request=request)


class FakePageFetcher:
    """
    Serves features per clause, honoring offset and count.

    `failures` maps a clause to the number of leading calls that fail with
    UpstreamError; `always_fail` makes every call for a clause fail.
    """

    def __init__(
        self,
        pages: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        failures: Optional[Dict[str, int]] = None,
        always_fail: Optional[set] = None
    ):
        self.pages = pages or {}
        self.failures = dict(failures or {})
        self.always_fail = always_fail or set()
        self.calls: List[tuple] = []

    @property
    def clauses_sent(self) -> List[str]:
        seen: List[str] = []
        for clause, _, _ in self.calls:
            if clause not in seen:
                seen.append(clause)
        return seen

    async def fetch_page(self, clause: str, offset: int, count: int) -> List[Dict[str, Any]]:
        self.calls.append((clause, offset, count))
        if clause in self.always_fail:
            raise UpstreamError("connection reset", {"clause": clause, "offset": offset})
        if self.failures.get(clause, 0) > 0:
            self.failures[clause] -= 1
            raise UpstreamError("upstream timeout", {"clause": clause, "offset": offset})
        return self.pages.get(clause, [])[offset:offset + count]


class InMemoryWriter:
    """
    Writer fake with the PostgresLoader contract.

    Rows are keyed on the idempotency key; a record with the same content
    hash as the stored one is counted as unchanged.
    """

    def __init__(self, fail_on_loads: Optional[set] = None, reachable: bool = True):
        self.rows: Dict[str, Any] = {}
        self.hashes: Dict[str, str] = {}
        self.runs: List[Any] = []
        self.load_calls = 0
        self.fail_on_loads = fail_on_loads or set()
        self.reachable = reachable

    async def ping(self) -> None:
        if not self.reachable:
            raise DatabaseConnectionError("Document store unreachable", {"operation": "PING"})

    async def load(self, records) -> UpsertResult:
        self.load_calls += 1
        if self.load_calls in self.fail_on_loads:
            raise BulkWriteError("Failed to write page batch", {"batch_size": len(records)})

        result = UpsertResult()
        for record in records:
            key = record.idempotency_key
            digest = record.content_hash
            if key not in self.rows:
                result.inserted += 1
            elif self.hashes[key] == digest:
                result.unchanged += 1
                continue
            else:
                result.updated += 1
            self.rows[key] = record
            self.hashes[key] = digest
        return result

    async def record_run(self, run, started_at, error_message=None) -> None:
        self.runs.append(run.model_copy())


async def no_sleep(delay: float) -> None:
    return None


@pytest.fixture
def local_cache():
    return LocalTTLCache(default_ttl=3600, maxsize=100)


@pytest.fixture
def geocode_cache(local_cache):
    return GeocodeCache(local_cache)


@pytest.fixture
def postal_client():
    return FakePostalClient({
        "Alpha": postal_payload(("100001", "Alpha B.O", "Test District")),
    })


@pytest.fixture
def resolver(postal_client, geocode_cache):
    return PincodeResolver(postal_client, geocode_cache, api_url=PINCODE_API_URL)


@pytest.fixture
def writer():
    return InMemoryWriter()
