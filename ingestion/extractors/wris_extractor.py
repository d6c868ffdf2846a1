"""
Page fetcher for the India-WRIS groundwater station layer (ArcGIS MapServer).

One call = one bounded query: a filter clause, an offset and a record
count. Every failure mode of a single request is raised as UpstreamError
so the retry controller can decide what happens next:
- Timeouts and transport errors (connection reset, DNS, ...)
- Non-2xx status codes
- Bodies that are not JSON or not a JSON object
- ArcGIS error envelopes ({"error": {...}}) returned with HTTP 200

A missing or empty features list is not an error: it is the end of data
for the current clause.
"""

import httpx
from typing import List, Dict, Any
from pydantic import ValidationError as PydanticValidationError
from schemas.upstream import WrisQueryResponse
from core.exceptions import UpstreamError
import logging

logger = logging.getLogger(__name__)


class WrisPageFetcher:
    """
    Fetch raw station features page by page.

    Attributes:
        client: Shared httpx.AsyncClient
        query_url: MapServer layer query endpoint
        timeout: Request timeout in seconds (default: 20.0)
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        query_url: str,
        timeout: float = 20.0
    ):
        self.client = client
        self.query_url = query_url
        self.timeout = timeout

    @staticmethod
    def build_params(clause: str, offset: int, count: int) -> Dict[str, Any]:
        """Query-string parameters for one page"""
        return {
            "where": clause,
            "outFields": "*",
            "returnGeometry": "true",
            "f": "json",
            "resultRecordCount": count,
            "resultOffset": offset,
        }

    async def fetch_page(self, clause: str, offset: int, count: int) -> List[Dict[str, Any]]:
        """
        Fetch one page of raw features.

        Args:
            clause: where-clause sent upstream
            offset: resultOffset
            count: resultRecordCount

        Returns:
            Raw feature dictionaries ({"attributes": {...}, "geometry": {...}})

        Raises:
            UpstreamError: For any failure of this single request
        """
        params = self.build_params(clause, offset, count)
        context = {
            "api_url": self.query_url,
            "clause": clause,
            "offset": offset,
        }

        try:
            response = await self.client.get(
                self.query_url,
                params=params,
                timeout=self.timeout
            )
        except httpx.TimeoutException as e:
            raise UpstreamError("Station service request timed out", context, e)
        except httpx.HTTPError as e:
            raise UpstreamError("Station service request failed", context, e)

        if response.status_code >= 400:
            context["status_code"] = response.status_code
            context["response_body"] = response.text[:500]
            raise UpstreamError(
                f"Station service returned HTTP {response.status_code}",
                context
            )

        try:
            data = response.json()
        except ValueError as e:
            context["response_body"] = response.text[:500]
            raise UpstreamError("Failed to parse JSON response", context, e)

        if not isinstance(data, dict):
            raise UpstreamError("Unexpected response shape (not an object)", context)

        try:
            envelope = WrisQueryResponse.model_validate(data)
        except PydanticValidationError as e:
            raise UpstreamError("Unexpected response shape", context, e)

        if envelope.error:
            context["upstream_error"] = envelope.error
            raise UpstreamError(
                f"Station service reported an error: {envelope.error.get('message', 'unknown')}",
                context
            )

        features = envelope.features or []
        logger.debug(f"Fetched {len(features)} features (offset {offset}, clause {clause})")
        return features
