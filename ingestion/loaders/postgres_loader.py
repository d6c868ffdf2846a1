"""
Load groundwater records into PostgreSQL with upsert logic (idempotency)
"""

from datetime import datetime
from typing import List, Optional
from sqlalchemy import literal_column, text
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from core.exceptions import BulkWriteError, DatabaseConnectionError
from models.base import IngestionStatus, utcnow
from models.groundwater import GroundwaterRecord
from models.ingestion_run import IngestionRun
from schemas.groundwater import GroundwaterRecordCreate
from schemas.ingestion import IngestResult, UpsertResult
import logging

logger = logging.getLogger(__name__)

# Columns rewritten when an incoming record differs from the stored one
UPDATABLE_COLUMNS = (
    "state",
    "district",
    "block",
    "village",
    "pin_code",
    "station_id",
    "longitude",
    "latitude",
    "water_level_mbgl",
    "availability_bcm",
    "trend",
    "source",
    "quality",
    "content_hash",
    "updated_at",
)


class PostgresLoader:
    """
    Write groundwater records with idempotent upsert operations.

    Ensures:
    - One row per idempotency key (INSERT ... ON CONFLICT DO UPDATE)
    - Unchanged records are no-ops (update guarded by content_hash)
    - One bad record does not block its siblings: every record runs in its
      own SAVEPOINT inside the page transaction
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    @staticmethod
    def build_upsert(record: GroundwaterRecordCreate, now: Optional[datetime] = None):
        """INSERT ... ON CONFLICT (idempotency_key) DO UPDATE ... RETURNING inserted-flag"""
        now = now or utcnow()
        values = record.to_row()
        values["created_at"] = now
        values["updated_at"] = now

        stmt = insert(GroundwaterRecord).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["idempotency_key"],
            set_={name: stmt.excluded[name] for name in UPDATABLE_COLUMNS},
            where=GroundwaterRecord.content_hash.is_distinct_from(stmt.excluded.content_hash),
        )
        # xmax is 0 only for freshly inserted tuples
        return stmt.returning(literal_column("(xmax = 0)").label("inserted"))

    async def ping(self) -> None:
        """
        Verify the store is reachable.

        Raises:
            DatabaseConnectionError: If a trivial query cannot be executed
        """
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            raise DatabaseConnectionError(
                "Document store unreachable",
                context={"operation": "PING"},
                original_exception=e
            )

    async def load(self, records: List[GroundwaterRecordCreate]) -> UpsertResult:
        """
        Upsert one page of records.

        Returns:
            UpsertResult with inserted / updated / unchanged / failed counts

        Raises:
            BulkWriteError: The page could not be written at all
        """
        result = UpsertResult()
        if not records:
            return result

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    for record in records:
                        await self._upsert_one(session, record, result)
        except (SQLAlchemyError, OSError) as e:
            raise BulkWriteError(
                "Failed to write page batch",
                context={
                    "batch_size": len(records),
                    "table_name": GroundwaterRecord.__tablename__,
                    "operation": "UPSERT",
                },
                original_exception=e
            )

        logger.info(
            f"Bulk write: {result.saved} saved/updated "
            f"({result.inserted} inserted, {result.updated} updated, "
            f"{result.unchanged} unchanged, {result.failed} failed)"
        )
        return result

    async def _upsert_one(
        self,
        session: AsyncSession,
        record: GroundwaterRecordCreate,
        result: UpsertResult
    ) -> None:
        try:
            async with session.begin_nested():
                row = await session.execute(self.build_upsert(record))
                inserted = row.scalar_one_or_none()
        except (IntegrityError, DataError) as e:
            result.failed += 1
            logger.warning(
                f"Upsert failed for {record.idempotency_key}: {e.orig if e.orig else e}",
                extra={"error_context": {"idempotency_key": record.idempotency_key}}
            )
            return

        if inserted is None:
            result.unchanged += 1
        elif inserted:
            result.inserted += 1
        else:
            result.updated += 1

    async def record_run(self, run: IngestResult, started_at: datetime, error_message: Optional[str] = None) -> None:
        """Persist an audit row for one ingestion invocation"""
        completed_at = utcnow()
        async with self.session_factory() as session:
            session.add(IngestionRun(
                region=run.region,
                sub_region=run.sub_region,
                clause=run.clause,
                status=IngestionStatus(run.status),
                started_at=started_at,
                completed_at=completed_at,
                duration_seconds=(completed_at - started_at).total_seconds(),
                pages_fetched=run.pages,
                records_fetched=run.fetched,
                records_rejected=run.rejected,
                records_inserted=run.inserted,
                records_updated=run.updated,
                records_unchanged=run.unchanged,
                records_failed=run.failed,
                saved_count=run.saved_count,
                error_message=error_message,
            ))
            await session.commit()
