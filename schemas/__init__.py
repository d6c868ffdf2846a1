"""
Pydantic schemas for data validation and serialization.

Schemas:
    groundwater: Location / GroundwaterRecordCreate (validated construction)
    upstream: Station-service and postal-lookup response payloads
    ingestion: UpsertResult / IngestResult returned by the pipeline

Usage:
    from schemas.groundwater import GroundwaterRecordCreate, Location
    from schemas.ingestion import IngestResult

Example:
    record = GroundwaterRecordCreate(
        location=Location(state="Test State", village="Alpha"),
        date=datetime(2024, 1, 15, tzinfo=timezone.utc),
        water_level_mbgl=7.5,
    )
    record.idempotency_key   # "place:test state|||alpha|2024-01-15T00:00:00+00:00"
"""

__all__ = [
    "GeoPoint",
    "Location",
    "GroundwaterRecordCreate",
    "WrisFeature",
    "WrisQueryResponse",
    "PostalLookupResult",
    "UpsertResult",
    "IngestResult",
]
