"""
Pydantic schemas for ingestion results reported to callers
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from models.base import IngestionStatus


class UpsertResult(BaseModel):
    """Outcome of writing one page batch"""
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0

    @property
    def saved(self) -> int:
        """Documents newly inserted or modified in place"""
        return self.inserted + self.updated


class IngestResult(BaseModel):
    """
    Outcome of one ingest(region, sub_region) call.

    model_dump(by_alias=True) yields the camelCase shape expected by the
    HTTP / scheduler layer, e.g. {"savedCount": 1, ...}.
    """
    model_config = ConfigDict(populate_by_name=True)

    region: str
    sub_region: Optional[str] = Field(None, alias="subRegion")
    clause: Optional[str] = None
    status: IngestionStatus = IngestionStatus.EMPTY

    pages: int = 0
    fetched: int = 0
    rejected: int = 0
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    saved_count: int = Field(0, alias="savedCount")

    def add_batch(self, batch: UpsertResult) -> None:
        """Accumulate one page's write outcome"""
        self.inserted += batch.inserted
        self.updated += batch.updated
        self.unchanged += batch.unchanged
        self.failed += batch.failed
        self.saved_count += batch.saved
