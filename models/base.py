from datetime import datetime, timezone
from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


def utcnow() -> datetime:
    """Timezone-aware UTC now, used for store-managed timestamps"""
    return datetime.now(timezone.utc)


# ============================================================================
# ENUMS
# ============================================================================

class DataSource(str, enum.Enum):
    """Origin of a groundwater record"""
    WRIS = "WRIS"
    CGWB = "CGWB"
    STATE_PORTAL = "StatePortal"
    MANUAL = "Manual"
    OTHER = "Other"


class Trend(str, enum.Enum):
    """Direction of water-level change reported upstream"""
    RISING = "Rising"
    FALLING = "Falling"
    STABLE = "Stable"


class IngestionStatus(str, enum.Enum):
    """Ingestion run status"""
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    EMPTY = "empty"
    FAILED = "failed"
