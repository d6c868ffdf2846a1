# ============================================================================
# File: ingestion/runner.py
# Description: Groundwater ingestion orchestrator (clause → page → normalize → upsert)
# ============================================================================
"""
Ingestion Orchestrator - drives one region's ingestion run.

Control flow per ingest(region, sub_region):

    SelectClause → FetchPage → Normalize → Upsert → (AdvanceOffset | StopClause)
                                                   → (NextClause | Done)

- Clause variants are tried in order; the first one that yields any feature
  is adopted and the remaining variants are never sent.
- Pages are strictly sequential; each page is retried by the RetryPolicy and
  exhausting retries ends the current clause.
- A safety cap bounds the number of features processed per region.
- "No data" is a valid outcome; only an unreachable store raises.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from core.exceptions import BulkWriteError, RetryExhaustedError
from ingestion.extractors.clauses import build_clauses
from ingestion.extractors.wris_extractor import WrisPageFetcher
from ingestion.loaders.postgres_loader import PostgresLoader
from ingestion.retry import RetryPolicy
from ingestion.transformers.normalizer import RecordNormalizer
from models.base import IngestionStatus, utcnow
from schemas.ingestion import IngestResult

logger = logging.getLogger(__name__)


class IngestionOrchestrator:
    """
    Groundwater ingestion orchestrator.

    Responsibilities:
    - Iterate clause variants until one produces data
    - Paginate with retries and a per-region safety cap
    - Hand each page to the normalizer, then the writer
    - Report accurate counts; never fail the run for partial problems

    The orchestrator keeps no state between calls; the only shared state
    is the geocode cache held by the normalizer's resolver.
    """

    def __init__(
        self,
        fetcher: WrisPageFetcher,
        normalizer: RecordNormalizer,
        writer: PostgresLoader,
        retry_policy: Optional[RetryPolicy] = None,
        page_size: int = 300,
        safety_cap: int = 5000,
        include_catch_all: bool = True,
        stop_event: Optional[asyncio.Event] = None
    ):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.fetcher = fetcher
        self.normalizer = normalizer
        self.writer = writer
        self.retry_policy = retry_policy or RetryPolicy()
        self.page_size = page_size
        self.safety_cap = safety_cap
        self.include_catch_all = include_catch_all
        self.stop_event = stop_event

    async def ingest(self, region: str, sub_region: Optional[str] = None) -> IngestResult:
        """
        Ingest one region (state) and optional sub-region (district).

        Returns:
            IngestResult; saved_count == 0 is a normal outcome

        Raises:
            DatabaseConnectionError: The store cannot be reached at all
        """
        started_at = utcnow()
        await self.writer.ping()

        result = IngestResult(region=region, sub_region=sub_region)
        logger.info(f"Starting WRIS fetch → State: {region}" + (f" | District: {sub_region}" if sub_region else ""))

        clauses = build_clauses(region, sub_region, include_catch_all=self.include_catch_all)
        adopted = False

        for clause in clauses:
            if self._stopping():
                break

            produced = await self._run_clause(clause, result)
            if produced:
                adopted = True
                result.clause = clause
                break
            logger.info(f"Clause produced no rows, trying next variant: {clause}")

        result.status = self._final_status(result, adopted)

        if result.saved_count > 0:
            logger.info(f"Completed: {result.saved_count} records saved/updated for {region}")
        else:
            logger.warning(
                f"No valid records saved for {region}" + (f" (district: {sub_region})" if sub_region else "")
            )

        await self._record_run(result, started_at)
        return result

    async def _run_clause(self, clause: str, result: IngestResult) -> bool:
        """
        Paginate through one clause.

        Returns:
            True if the clause produced at least one feature
        """
        offset = 0
        produced = False

        while not self._stopping():
            remaining = self.safety_cap - result.fetched
            if remaining <= 0:
                logger.warning(f"Safety cap of {self.safety_cap} records reached for {result.region}")
                break

            count = min(self.page_size, remaining)
            try:
                features = await self.retry_policy.run(
                    self.fetcher.fetch_page,
                    clause,
                    offset,
                    count,
                    description=f"WRIS page fetch (offset {offset})"
                )
            except RetryExhaustedError as e:
                logger.error(
                    f"WRIS fetch failed, abandoning clause: {clause}",
                    extra={"error_context": {**e.to_dict(), "region": result.region, "offset": offset}}
                )
                break

            if not features:
                logger.info(f"No more records (offset {offset})")
                break

            features = features[:count]
            produced = True
            result.pages += 1
            result.fetched += len(features)
            logger.info(f"Page fetched: {len(features)} records (offset {offset})")

            await self._process_page(features, result)

            if len(features) < count:
                break
            offset += count

        return produced

    async def _process_page(self, features: List[Dict[str, Any]], result: IngestResult) -> None:
        page = await self.normalizer.normalize_page(features)
        result.rejected += page.rejected
        if page.rejected:
            logger.info(f"Dropped {page.rejected} malformed records")

        if not page.records:
            return

        try:
            batch = await self.writer.load(page.records)
        except BulkWriteError as e:
            result.failed += len(page.records)
            logger.error(
                f"Bulk write failed for page: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            return

        result.add_batch(batch)

    def _stopping(self) -> bool:
        if self.stop_event is not None and self.stop_event.is_set():
            logger.info("Stop requested; not starting new page fetches")
            return True
        return False

    @staticmethod
    def _final_status(result: IngestResult, adopted: bool) -> IngestionStatus:
        if not adopted or result.fetched == 0:
            return IngestionStatus.EMPTY
        if result.rejected or result.failed:
            return IngestionStatus.PARTIAL
        return IngestionStatus.SUCCESS

    async def _record_run(self, result: IngestResult, started_at) -> None:
        try:
            await self.writer.record_run(result, started_at)
        except Exception as e:
            logger.warning(f"Failed to record ingestion run for {result.region}: {e}")
