from sqlalchemy import Column, String, BigInteger, Enum, Float, DateTime, Index, JSON
from sqlalchemy.dialects.postgresql import JSONB
from models.base import Base, DataSource, Trend, utcnow


class GroundwaterRecord(Base):
    """
    One groundwater observation for a station (or place) on a date.

    Schema Design:
    - Location is embedded as flat columns (state .. coordinates)
    - idempotency_key is the single matching key for upserts:
        station:<station_id>|<date>                       when station_id is known
        place:<state>|<district>|<block>|<village>|<date> otherwise
    - content_hash lets re-ingestion of unchanged data be a no-op
    - quality holds named numeric metrics (pH, TDS, nitrate, ...)
    """
    __tablename__ = "groundwater_records"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    idempotency_key = Column(String(512), nullable=False)

    # Location
    state = Column(String(100), nullable=False)
    district = Column(String(100), nullable=True)
    block = Column(String(100), nullable=True)
    village = Column(String(200), nullable=True)
    pin_code = Column(String(6), nullable=True)
    station_id = Column(String(100), nullable=True)
    longitude = Column(Float, nullable=True)
    latitude = Column(Float, nullable=True)

    # Measurement
    date = Column(DateTime(timezone=True), nullable=False)
    water_level_mbgl = Column(Float, nullable=False)
    availability_bcm = Column(Float, nullable=True)
    trend = Column(Enum(Trend, values_callable=lambda e: [m.value for m in e]), nullable=True)
    source = Column(
        Enum(DataSource, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=DataSource.WRIS,
    )
    quality = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)

    content_hash = Column(String(64), nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("uq_groundwater_idempotency_key", "idempotency_key", unique=True),
        Index("idx_groundwater_state_date", "state", "date"),
        Index("idx_groundwater_district_village_date", "district", "village", "date"),
        Index("idx_groundwater_station_date", "station_id", "date"),
    )
