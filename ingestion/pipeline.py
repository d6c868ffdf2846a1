"""
Wiring for the ingestion pipeline.

IngestionPipeline owns every long-lived resource the orchestrator needs:
the two httpx clients, the Redis client, the geocode cache and the
database session factory. Use it as an async context manager:

    async with IngestionPipeline() as pipeline:
        result = await pipeline.ingest("Tamil Nadu")
        print(result.model_dump(by_alias=True)["savedCount"])
"""

import asyncio
import logging
from typing import Optional

import httpx
import redis.asyncio as redis

from core.config import Settings, settings as default_settings
from ingestion.cache import GeocodeCache, LocalTTLCache, RedisCacheTier
from ingestion.enrichment.pincode_resolver import PincodeResolver
from ingestion.extractors.wris_extractor import WrisPageFetcher
from ingestion.loaders.postgres_loader import PostgresLoader
from ingestion.retry import RetryPolicy
from ingestion.runner import IngestionOrchestrator
from ingestion.transformers.normalizer import RecordNormalizer
from schemas.ingestion import IngestResult

logger = logging.getLogger(__name__)


def build_geocode_cache(settings: Settings, redis_client=None) -> GeocodeCache:
    """Local TTL tier plus (optionally) the Redis tier"""
    local = LocalTTLCache(
        default_ttl=settings.GEOCODE_LOCAL_TTL,
        maxsize=settings.GEOCODE_LOCAL_MAXSIZE
    )
    remote = None
    if redis_client is not None:
        remote = RedisCacheTier(
            redis_client,
            default_ttl=settings.GEOCODE_REDIS_TTL,
            prefix=settings.GEOCODE_KEY_PREFIX
        )
    return GeocodeCache(local, remote, remote_ttl=settings.GEOCODE_REDIS_TTL)


def build_pincode_client(settings: Settings) -> httpx.AsyncClient:
    """HTTP client for the postal lookup service"""
    if not settings.PINCODE_VERIFY_TLS:
        logger.warning("TLS certificate verification DISABLED for the postal lookup service")
    return httpx.AsyncClient(
        timeout=settings.PINCODE_TIMEOUT,
        verify=settings.PINCODE_VERIFY_TLS,
        follow_redirects=True
    )


class IngestionPipeline:
    """
    Owns clients and builds the orchestrator.

    A single GeocodeCache instance is shared by every ingest() call made
    through the same pipeline, so concurrent regions benefit from each
    other's lookups.
    """

    def __init__(self, settings: Optional[Settings] = None, session_factory=None):
        self.settings = settings or default_settings
        self._session_factory = session_factory
        self.stop_event = asyncio.Event()
        self.wris_client: Optional[httpx.AsyncClient] = None
        self.pincode_client: Optional[httpx.AsyncClient] = None
        self.redis_client = None
        self.cache: Optional[GeocodeCache] = None
        self.orchestrator: Optional[IngestionOrchestrator] = None

    async def __aenter__(self) -> "IngestionPipeline":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def start(self) -> None:
        s = self.settings

        if self._session_factory is None:
            from core.database import async_session_maker
            self._session_factory = async_session_maker

        if s.REDIS_URL:
            self.redis_client = redis.from_url(
                s.REDIS_URL,
                decode_responses=True,
                socket_timeout=s.REDIS_SOCKET_TIMEOUT,
                socket_connect_timeout=s.REDIS_SOCKET_TIMEOUT
            )
        else:
            logger.info("REDIS_URL not set; geocode cache runs process-local only")

        self.cache = build_geocode_cache(s, self.redis_client)
        self.wris_client = httpx.AsyncClient(timeout=s.WRIS_TIMEOUT)
        self.pincode_client = build_pincode_client(s)

        resolver = PincodeResolver(
            self.pincode_client,
            self.cache,
            api_url=s.PINCODE_API_URL,
            timeout=s.PINCODE_TIMEOUT
        )
        self.orchestrator = IngestionOrchestrator(
            fetcher=WrisPageFetcher(self.wris_client, s.WRIS_QUERY_URL, timeout=s.WRIS_TIMEOUT),
            normalizer=RecordNormalizer(resolver, concurrency=s.PINCODE_CONCURRENCY),
            writer=PostgresLoader(self._session_factory),
            retry_policy=RetryPolicy(max_attempts=s.MAX_RETRIES, base_delay=s.RETRY_BASE_DELAY),
            page_size=s.WRIS_PAGE_SIZE,
            safety_cap=s.INGEST_SAFETY_CAP,
            include_catch_all=s.INGEST_INCLUDE_CATCH_ALL,
            stop_event=self.stop_event
        )

    async def ingest(self, region: str, sub_region: Optional[str] = None) -> IngestResult:
        if self.orchestrator is None:
            raise RuntimeError("IngestionPipeline.start() has not been called")
        return await self.orchestrator.ingest(region, sub_region)

    def request_stop(self) -> None:
        """Stop starting new page fetches; in-flight requests finish or time out"""
        self.stop_event.set()

    async def close(self) -> None:
        for client in (self.wris_client, self.pincode_client):
            if client is not None:
                await client.aclose()
        if self.redis_client is not None:
            await self.redis_client.aclose()
        logger.info("Ingestion pipeline closed")
