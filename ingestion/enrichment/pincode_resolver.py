"""
Postal (PIN) code resolution for groundwater stations.

Resolution order for resolve(village, district):
    1. Geocode cache (local tier, then Redis)
    2. Lookup service queried by village name
    3. Lookup service queried by district name (only if a district was given)

Only a six-digit code is accepted and cached. Every lookup failure
(timeout, non-2xx, malformed body) is logged and reported as None.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx
from pydantic import ValidationError as PydanticValidationError

from core.exceptions import EnrichmentError
from ingestion.cache import GeocodeCache, LocalTTLCache, place_key
from schemas.groundwater import PIN_CODE_PATTERN
from schemas.upstream import PostalLookupResult, PostOffice

logger = logging.getLogger(__name__)


class PincodeResolver:
    """
    Resolve a village (optionally scoped by district) to a PIN code.

    Attributes:
        client: Shared httpx.AsyncClient (TLS verification configured by the owner)
        cache: Injected GeocodeCache
        api_url: Base URL of the lookup service; the place name is appended
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: GeocodeCache,
        api_url: str,
        timeout: float = 8.0,
        listing_cache: Optional[LocalTTLCache] = None
    ):
        self.client = client
        self.cache = cache
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.listing_cache = listing_cache or LocalTTLCache()
        self._in_flight: Dict[str, "asyncio.Future[Optional[str]]"] = {}

    async def resolve(self, village: Optional[str], district: Optional[str] = None) -> Optional[str]:
        """
        Return a six-digit PIN for the place, or None.

        Concurrent calls for the same place share one in-flight lookup, so a
        page full of stations in one village costs a single external call.
        """
        if not village or not village.strip():
            return None

        village = village.strip()
        district = district.strip() if district and district.strip() else None
        key = place_key(village, district)

        cached = await self.cache.get(key)
        if cached:
            return cached

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._resolve_uncached(key, village, district))
            self._in_flight[key] = task
            task.add_done_callback(lambda _: self._in_flight.pop(key, None))
        return await asyncio.shield(task)

    async def _resolve_uncached(self, key: str, village: str, district: Optional[str]) -> Optional[str]:
        pin = await self._lookup_pin(village, district)
        if pin is None and district:
            logger.debug(f"No PIN for village {village}; retrying by district {district}")
            pin = await self._lookup_pin(district, district)

        if pin is None:
            logger.info(f"No valid PIN found for {village} ({district or 'no district'})")
            return None

        await self.cache.set(key, pin)
        logger.info(f"PIN cached: {pin} for {village} ({district or 'no district'})")
        return pin

    async def lookup_all(self, place: str, district: Optional[str] = None) -> List[Tuple[str, str, str]]:
        """
        Every candidate post office for a place as (pincode, post_office, district).

        When a district is given, offices whose district contains it
        (case-insensitive) are kept.
        """
        if not place or not place.strip():
            return []

        key = f"allpins_{place.strip().lower()}_{(district or '').strip().lower()}"
        cached = self.listing_cache.get(key)
        if cached is not None:
            return cached

        try:
            offices = await self._query(place.strip())
        except EnrichmentError as e:
            logger.error(f"PIN API error: {e.message}", extra={"error_context": e.to_dict()})
            return []

        if district:
            needle = district.strip().lower()
            offices = [o for o in offices if o.district and needle in o.district.lower()]

        pincodes = [(o.pincode, o.name, o.district) for o in offices if o.pincode]
        self.listing_cache.set(key, pincodes)
        logger.info(f"Found {len(pincodes)} PINs for {place}")
        return pincodes

    async def _lookup_pin(self, name: str, district: Optional[str]) -> Optional[str]:
        try:
            offices = await self._query(name)
        except EnrichmentError as e:
            logger.warning(
                f"PIN API call failed: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            return None

        if not offices:
            return None

        office = offices[0]
        if district:
            wanted = district.lower()
            for candidate in offices:
                if candidate.district and candidate.district.lower() == wanted:
                    office = candidate
                    break

        pin = (office.pincode or "").strip()
        if PIN_CODE_PATTERN.match(pin):
            return pin
        return None

    async def _query(self, name: str) -> List[PostOffice]:
        """One lookup-service call; returns offices, or [] for "no result"."""
        url = f"{self.api_url}/{quote(name)}"
        context = {"api_url": url, "place": name}
        try:
            response = await self.client.get(url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            context["status_code"] = e.response.status_code
            raise EnrichmentError("Lookup service returned an error status", context, e)
        except httpx.HTTPError as e:
            raise EnrichmentError("Lookup service request failed", context, e)
        except ValueError as e:
            raise EnrichmentError("Lookup service returned malformed JSON", context, e)

        if not isinstance(payload, list) or not payload:
            return []

        try:
            result = PostalLookupResult.model_validate(payload[0])
        except PydanticValidationError as e:
            raise EnrichmentError("Lookup service returned an unexpected shape", context, e)

        if not result.is_success:
            return []
        return result.post_offices
