import logging
from typing import List, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from core.config import Settings, settings as default_settings
from ingestion.pipeline import IngestionPipeline

logger = logging.getLogger(__name__)


class IngestionScheduler:
    """Daily groundwater fetch over the configured list of states"""

    def __init__(self, pipeline: IngestionPipeline, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.pipeline = pipeline
        self.scheduler = AsyncIOScheduler(timezone=self.settings.INGEST_TIMEZONE)

    @property
    def states(self) -> List[str]:
        return list(self.settings.INGEST_STATES)

    async def run_ingestion_job(self):
        """Job to ingest every configured state, one after the other"""
        logger.info(f"Scheduler: daily groundwater fetch started for {len(self.states)} states")
        total_saved = 0

        for state in self.states:
            if self.pipeline.stop_event.is_set():
                logger.info("Scheduler: stop requested, skipping remaining states")
                break
            try:
                logger.info(f"Fetching groundwater data for: {state}")
                result = await self.pipeline.ingest(state)
                total_saved += result.saved_count
                logger.info(f"Fetched & saved data for {state}: {result.saved_count} records")
            except Exception as e:
                logger.error(f"Scheduler: fetch failed for {state} - {e}")

        logger.info(f"Scheduler: daily fetch completed ({total_saved} records saved)")
        return total_saved

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_ingestion_job,
            trigger=CronTrigger(
                hour=self.settings.INGEST_CRON_HOUR,
                minute=self.settings.INGEST_CRON_MINUTE,
                timezone=self.settings.INGEST_TIMEZONE
            ),
            id="groundwater_daily_fetch",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.start()
        logger.info(
            f"Daily ingestion scheduled: {self.settings.INGEST_CRON_HOUR:02d}:"
            f"{self.settings.INGEST_CRON_MINUTE:02d} {self.settings.INGEST_TIMEZONE} "
            f"for {len(self.states)} states"
        )

    def stop(self):
        self.pipeline.request_stop()
        self.scheduler.shutdown(wait=False)
        logger.info("Ingestion scheduler stopped")
