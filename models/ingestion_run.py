from sqlalchemy import Column, BigInteger, String, Enum, DateTime, Float, Integer, Text, Index
from sqlalchemy.dialects.postgresql import UUID
import uuid
from models.base import Base, IngestionStatus, utcnow


class IngestionRun(Base):
    """
    Audit trail of one ingest(region, sub_region) invocation.

    Purpose:
    - Record which clause variant upstream answered to
    - Track saved / rejected / failed counts per region over time
    - Keep the last error message for debugging
    """
    __tablename__ = "ingestion_runs"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    run_id = Column(UUID(as_uuid=True), default=uuid.uuid4, unique=True, nullable=False)

    region = Column(String(100), nullable=False)
    sub_region = Column(String(100), nullable=True)
    clause = Column(Text, nullable=True)

    status = Column(Enum(IngestionStatus), nullable=False, default=IngestionStatus.RUNNING)

    started_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    duration_seconds = Column(Float, nullable=True)

    # Statistics
    pages_fetched = Column(Integer, default=0)
    records_fetched = Column(Integer, default=0)
    records_rejected = Column(Integer, default=0)
    records_inserted = Column(Integer, default=0)
    records_updated = Column(Integer, default=0)
    records_unchanged = Column(Integer, default=0)
    records_failed = Column(Integer, default=0)
    saved_count = Column(Integer, default=0)

    error_message = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_ingestion_run_region_started", "region", "started_at"),
        Index("idx_ingestion_run_status", "status", "started_at"),
    )
