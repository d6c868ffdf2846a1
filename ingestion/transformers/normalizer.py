"""
Transform raw station features into validated groundwater records.

The upstream schema is not stable across stations, so every attribute is
read through a list of aliases (first populated value wins). PIN codes are
resolved concurrently for a page, bounded by a semaphore, and the page is
only handed to the writer once every record has finished (join barrier).
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from core.exceptions import RecordRejectedError
from ingestion.enrichment.pincode_resolver import PincodeResolver
from models.base import DataSource, Trend
from schemas.groundwater import GeoPoint, GroundwaterRecordCreate, Location
from schemas.upstream import WrisFeature

logger = logging.getLogger(__name__)

STATE_FIELDS = ("state_name", "State_Name", "STATE_NAME", "state", "State")
DISTRICT_FIELDS = ("district_name", "District_Name", "DISTRICT_NAME", "district")
BLOCK_FIELDS = ("block_name", "Block_Name", "BLOCK_NAME", "tehsil_name", "block")
VILLAGE_FIELDS = ("village_name", "Village_Name", "VILLAGE_NAME", "place_name", "site_name", "village")
STATION_FIELDS = ("station_code", "Station_Code", "STATION_CODE", "wlcode", "station_id", "id")
DATE_FIELDS = ("measurement_date", "Measurement_Date", "date", "data_time")
DEPTH_FIELDS = ("water_level", "depth_to_water_level", "Water_Level", "WATER_LEVEL", "level_mbgl", "dtwl")
AVAILABILITY_FIELDS = ("availability_bcm", "Availability_BCM")
TREND_FIELDS = ("trend", "Trend")
QUALITY_METRICS = ("ph", "ec", "tds", "nitrate", "fluoride", "arsenic", "chloride", "iron")

DATE_FORMATS = ("%d-%m-%Y", "%d/%m/%Y", "%Y%m%d", "%Y-%m-%d %H:%M:%S", "%d-%m-%Y %H:%M:%S")

# Epoch values above this are milliseconds (ArcGIS date fields)
_EPOCH_MS_THRESHOLD = 10 ** 11

# Shorter digit strings are compact dates (yyyymmdd), not epochs
_EPOCH_MIN_DIGITS = 10


@dataclass
class NormalizedPage:
    """Records ready for writing plus the number of dropped features"""
    records: List[GroundwaterRecordCreate] = field(default_factory=list)
    rejected: int = 0


class RecordNormalizer:
    """
    Normalize raw features into GroundwaterRecordCreate models.

    Handles:
    - Alias-based attribute extraction
    - PIN enrichment through the resolver
    - Coordinate translation (x, y) -> (longitude, latitude)
    - Validated construction; invalid features are dropped and counted
    """

    def __init__(
        self,
        resolver: Optional[PincodeResolver],
        source: DataSource = DataSource.WRIS,
        concurrency: int = 10,
        observation_date: Optional[datetime] = None
    ):
        self.resolver = resolver
        self.source = source
        self.concurrency = max(1, concurrency)
        self._observation_date = observation_date

    @property
    def observation_date(self) -> datetime:
        """Date used for features without one: fixed, or UTC midnight today"""
        if self._observation_date is not None:
            return self._observation_date
        now = datetime.now(timezone.utc)
        return now.replace(hour=0, minute=0, second=0, microsecond=0)

    async def normalize_page(self, features: Iterable[Dict[str, Any]]) -> NormalizedPage:
        """Normalize every feature of a page with bounded concurrency"""
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _bounded(raw):
            async with semaphore:
                try:
                    return await self.normalize(raw)
                except RecordRejectedError as e:
                    logger.debug(f"Record dropped: {e.message}", extra={"error_context": e.to_dict()})
                    return None

        results = await asyncio.gather(*(_bounded(raw) for raw in features))

        page = NormalizedPage()
        for record in results:
            if record is None:
                page.rejected += 1
            else:
                page.records.append(record)
        return page

    async def normalize(self, raw: Dict[str, Any]) -> GroundwaterRecordCreate:
        """
        Normalize a single raw feature.

        Raises:
            RecordRejectedError: Mandatory data missing or invalid
        """
        try:
            feature = WrisFeature.model_validate(raw)
        except PydanticValidationError as e:
            raise RecordRejectedError("Malformed feature", context={"reason": "shape"}, original_exception=e)

        attrs = feature.attributes
        station_id = self._first_text(attrs, STATION_FIELDS)
        context = {"station_id": station_id}

        state = self._first_text(attrs, STATE_FIELDS)
        if not state:
            raise RecordRejectedError("Missing state", context={**context, "reason": "state"})

        depth = self._parse_float(self._first(attrs, DEPTH_FIELDS))
        if depth is None:
            raise RecordRejectedError("Missing water level", context={**context, "reason": "water_level"})

        raw_date = self._first(attrs, DATE_FIELDS)
        if raw_date is None:
            date = self.observation_date
        else:
            date = self._parse_datetime(raw_date)
            if date is None:
                raise RecordRejectedError(
                    "Unparseable measurement date",
                    context={**context, "reason": "date", "value": str(raw_date)}
                )

        district = self._first_text(attrs, DISTRICT_FIELDS)
        village = self._first_text(attrs, VILLAGE_FIELDS)

        pin_code = None
        if village and self.resolver is not None:
            pin_code = await self.resolver.resolve(village, district)

        try:
            return GroundwaterRecordCreate(
                location=Location(
                    state=state,
                    district=district,
                    block=self._first_text(attrs, BLOCK_FIELDS),
                    village=village,
                    pin_code=pin_code,
                    station_id=station_id,
                    coordinates=self._parse_point(feature),
                ),
                date=date,
                water_level_mbgl=depth,
                availability_bcm=self._parse_float(self._first(attrs, AVAILABILITY_FIELDS)),
                trend=self._parse_trend(self._first(attrs, TREND_FIELDS)),
                source=self.source,
                quality=self._extract_quality(attrs),
            )
        except PydanticValidationError as e:
            raise RecordRejectedError(
                "Record failed validation",
                context={**context, "reason": "validation"},
                original_exception=e
            )

    # ------------------------------------------------------------------
    # Attribute helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _first(attrs: Dict[str, Any], names: Iterable[str]) -> Any:
        """First alias with a populated value"""
        for name in names:
            value = attrs.get(name)
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            return value
        return None

    @classmethod
    def _first_text(cls, attrs: Dict[str, Any], names: Iterable[str]) -> Optional[str]:
        value = cls._first(attrs, names)
        if value is None:
            return None
        return str(value).strip() or None

    @staticmethod
    def _parse_float(value: Any) -> Optional[float]:
        """Safely parse float value"""
        if value is None or value == "" or isinstance(value, bool):
            return None
        try:
            result = float(value)
        except (ValueError, TypeError):
            return None
        if result != result:  # NaN
            return None
        return result

    @staticmethod
    def _parse_datetime(value: Any) -> Optional[datetime]:
        """Epoch seconds/milliseconds, ISO-8601, yyyymmdd or dd-mm-yyyy style strings"""
        if isinstance(value, datetime):
            return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

        if isinstance(value, str):
            digits = value.strip().lstrip("-")
            if digits.isdigit() and len(digits) >= _EPOCH_MIN_DIGITS:
                value = int(value.strip())

        if isinstance(value, (int, float)) and not isinstance(value, bool):
            seconds = value / 1000 if abs(value) >= _EPOCH_MS_THRESHOLD else value
            try:
                return datetime.fromtimestamp(seconds, tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                return None

        text = str(value).strip()
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            parsed = None
            for fmt in DATE_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
        if parsed is None:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

    @staticmethod
    def _parse_trend(value: Any) -> Optional[Trend]:
        if value is None:
            return None
        text = str(value).strip().lower()
        for trend in Trend:
            if trend.value.lower() == text:
                return trend
        return None

    @staticmethod
    def _parse_point(feature: WrisFeature) -> Optional[GeoPoint]:
        geom = feature.geometry
        if geom is None or geom.x is None or geom.y is None:
            return None
        if not (-180 <= geom.x <= 180 and -90 <= geom.y <= 90):
            logger.debug(f"Dropping out-of-range geometry ({geom.x}, {geom.y})")
            return None
        return GeoPoint(longitude=geom.x, latitude=geom.y)

    @classmethod
    def _extract_quality(cls, attrs: Dict[str, Any]) -> Optional[Dict[str, float]]:
        quality = {}
        for name, value in attrs.items():
            metric = str(name).strip().lower()
            if metric in QUALITY_METRICS:
                number = cls._parse_float(value)
                if number is not None:
                    quality[metric] = number
        return quality or None
