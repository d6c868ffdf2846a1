"""
Pydantic schemas for groundwater records with validation.

GroundwaterRecordCreate is the validated-construction step that runs before
anything is written: state required, PIN pattern, enum membership and
coordinate ranges are all enforced here, independently of the store.
"""

import hashlib
import json
import re
from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator
from models.base import DataSource, Trend

PIN_CODE_PATTERN = re.compile(r"^\d{6}$")


def _clean_optional(v):
    """Trim strings; empty strings become None"""
    if v is None:
        return None
    v = str(v).strip()
    return v or None


class GeoPoint(BaseModel):
    """Geographic point stored as (longitude, latitude)"""
    longitude: float = Field(..., ge=-180, le=180)
    latitude: float = Field(..., ge=-90, le=90)


class Location(BaseModel):
    """Where a groundwater observation was taken"""

    state: str = Field(..., min_length=1, max_length=100)
    district: Optional[str] = Field(None, max_length=100)
    block: Optional[str] = Field(None, max_length=100)
    village: Optional[str] = Field(None, max_length=200)
    pin_code: Optional[str] = None
    station_id: Optional[str] = Field(None, max_length=100)
    coordinates: Optional[GeoPoint] = None

    @field_validator("state", mode="before")
    @classmethod
    def clean_state(cls, v):
        """State is mandatory and must survive trimming"""
        v = _clean_optional(v)
        if not v:
            raise ValueError("state cannot be empty")
        return v

    @field_validator("district", "block", "village", "station_id", mode="before")
    @classmethod
    def clean_text(cls, v):
        return _clean_optional(v)

    @field_validator("pin_code", mode="before")
    @classmethod
    def check_pin_code(cls, v):
        """PIN codes are exactly six digits"""
        v = _clean_optional(v)
        if v is not None and not PIN_CODE_PATTERN.match(v):
            raise ValueError(f"invalid PIN code: {v!r}")
        return v


class GroundwaterRecordCreate(BaseModel):
    """
    Schema for creating or updating a groundwater record.

    Ensures:
    - state and waterLevelMbgl are present
    - trend and source are valid enum members
    - date is timezone-aware UTC
    """

    location: Location
    date: datetime
    water_level_mbgl: float
    availability_bcm: Optional[float] = None
    trend: Optional[Trend] = None
    source: DataSource = DataSource.WRIS
    quality: Optional[Dict[str, float]] = None

    @field_validator("date")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Naive datetimes are taken as UTC"""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @field_validator("quality", mode="before")
    @classmethod
    def clean_quality(cls, v):
        """An empty metric map is stored as absent"""
        if not v:
            return None
        return v

    @property
    def idempotency_key(self) -> str:
        """
        Key used to match an incoming record against stored ones.

        stationId + date is authoritative. Records without a station id fall
        back to the place tuple, lowercased for matching only.
        """
        day = self.date.isoformat()
        loc = self.location
        if loc.station_id:
            return f"station:{loc.station_id}|{day}"
        parts = [loc.state, loc.district, loc.block, loc.village]
        place = "|".join((p or "").lower() for p in parts)
        return f"place:{place}|{day}"

    @property
    def content_hash(self) -> str:
        """SHA-256 over the canonical record payload"""
        payload = self.model_dump(mode="json")
        encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(encoded.encode("utf-8")).hexdigest()

    def to_row(self) -> Dict:
        """Flatten into groundwater_records column values"""
        loc = self.location
        return {
            "idempotency_key": self.idempotency_key,
            "state": loc.state,
            "district": loc.district,
            "block": loc.block,
            "village": loc.village,
            "pin_code": loc.pin_code,
            "station_id": loc.station_id,
            "longitude": loc.coordinates.longitude if loc.coordinates else None,
            "latitude": loc.coordinates.latitude if loc.coordinates else None,
            "date": self.date,
            "water_level_mbgl": self.water_level_mbgl,
            "availability_bcm": self.availability_bcm,
            "trend": self.trend,
            "source": self.source,
            "quality": self.quality,
            "content_hash": self.content_hash,
        }
