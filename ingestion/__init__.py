"""
Groundwater ingestion pipeline.

Modules:
    cache: Two-tier (process-local + Redis) geocode cache
    retry: Bounded retry with linear backoff
    runner: Orchestrator driving clause -> page -> normalize -> upsert
    pipeline: Owns the HTTP / Redis clients and wires the orchestrator
    scheduler: APScheduler integration for the daily fetch

Subpackages:
    extractors: Filter-clause variants and the WRIS page fetcher
    enrichment: PIN code resolution against the postal lookup service
    transformers: Raw feature -> validated record normalization
    loaders: Idempotent bulk upsert into PostgreSQL

Usage:
    from ingestion.pipeline import IngestionPipeline

    async with IngestionPipeline() as pipeline:
        result = await pipeline.ingest("Karnataka", "Mysuru")
        print(result.saved_count)

Error Handling:
    "No data" is a normal outcome. Page fetch failures are retried and
    then end the current clause; rejected records and failed writes are
    counted, never raised. Only an unreachable store fails a run.
"""

__all__ = [
    "IngestionPipeline",
    "IngestionOrchestrator",
    "IngestionScheduler",
    "WrisPageFetcher",
    "PincodeResolver",
    "RecordNormalizer",
    "PostgresLoader",
    "RetryPolicy",
    "GeocodeCache",
]
