"""
SQLAlchemy ORM models for database tables.

Models:
    base: Base declarative class and shared enums (DataSource, Trend, IngestionStatus)
    groundwater: Groundwater observations keyed by an idempotency key
    ingestion_run: One audit row per ingest(region) invocation

Usage:
    from models.groundwater import GroundwaterRecord
    from models.ingestion_run import IngestionRun
    from models.base import DataSource, Trend

Idempotency:
    groundwater_records.idempotency_key carries a unique index; the loader
    upserts with INSERT ... ON CONFLICT (idempotency_key), so repeated
    ingestion of the same station/date never creates a second row.
"""

__all__ = [
    "Base",
    "DataSource",
    "Trend",
    "IngestionStatus",
    "GroundwaterRecord",
    "IngestionRun",
]
