"""
WMB scan queue job.

Entry point for the periodic trigger: in test mode it only reports what a
run would do, in live mode it recovers stuck and retryable jobs and drains
one batch of the queue through the benefits scan.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from benefits_scan.config import settings
from benefits_scan.features.eligibility.domain import QueueStatusCounts
from benefits_scan.features.eligibility.repository import BenefitsScanStorage, build_postgres_storage
from benefits_scan.features.eligibility.rules import RuleRegistry, build_default_registry
from benefits_scan.features.eligibility.services import get_queue_status, process_batch_queue_jobs
from benefits_scan.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class ScanQueueJobError(Exception):
    """Custom exception for scan queue job operations."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class ScanQueueJobSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    batch_size: int = Field(
        default_factory=lambda: settings.SCAN_QUEUE_BATCH_SIZE,
        ge=1,
        le=100,
        validation_alias=AliasChoices("batchSize", "batch_size"),
    )


class ScanQueueJobContext(BaseModel):
    mode: Literal["test", "live"] = "live"
    settings: ScanQueueJobSettings = Field(default_factory=ScanQueueJobSettings)


@dataclass(slots=True)
class CronJobResult:
    message: str
    metadata: dict[str, Any] = field(default_factory=dict)


def _status_counts(counts: list[QueueStatusCounts]) -> list[dict[str, int]]:
    return [
        {
            "month": c.month,
            "year": c.year,
            "pending": c.pending,
            "processing": c.processing,
            "success": c.success,
            "failed": c.failed,
        }
        for c in counts
    ]


class WmbScanQueueJob:
    """
    Scheduled job draining the WMB scan queue.

    Failures inside individual queue jobs only change the counts; the job
    itself fails only when the queue cannot be read or written.
    """

    def __init__(self, storage: BenefitsScanStorage, registry: RuleRegistry):
        self.storage = storage
        self.registry = registry
        self.is_running = False
        self.last_run_time: datetime | None = None

    async def execute(self, context: ScanQueueJobContext | dict[str, Any] | None = None) -> CronJobResult:
        ctx = ScanQueueJobContext.model_validate(context or {})
        batch_size = ctx.settings.batch_size

        if ctx.mode == "test":
            counts = await get_queue_status(self.storage)
            pending = sum(c.pending for c in counts)
            would_process = min(pending, batch_size)
            return CronJobResult(
                message=f"Would process {would_process} of {pending} pending scan jobs",
                metadata={
                    "mode": "test",
                    "batch_size": batch_size,
                    "pending": pending,
                    "would_process": would_process,
                    "status_counts": _status_counts(counts),
                },
            )

        if self.is_running:
            logger.warning("WMB scan queue job already running, skipping this iteration")
            return CronJobResult(
                message="Scan queue job already running",
                metadata={"mode": "live", "skipped": True},
            )

        self.is_running = True
        try:
            queue_config = settings.get_scan_queue_config()
            reclaimed = await self.storage.queue.reclaim_stale_jobs(
                queue_config["stale_after_seconds"]
            )
            retried = await self.storage.queue.retry_failed_jobs(
                queue_config["max_attempts"], queue_config["retry_backoff_seconds"]
            )

            batch = await process_batch_queue_jobs(self.storage, self.registry, batch_size)
            counts = await get_queue_status(self.storage)
            self.last_run_time = datetime.utcnow()
        except Exception as e:
            logger.error("WMB scan queue job failed", error=str(e), error_type=type(e).__name__)
            raise ScanQueueJobError(f"Scan queue job failed: {e}", operation="execute") from e
        finally:
            self.is_running = False

        return CronJobResult(
            message=(
                f"Processed {batch.processed} scan jobs "
                f"({batch.succeeded} succeeded, {batch.failed} failed)"
            ),
            metadata={
                "mode": "live",
                "batch_size": batch_size,
                "processed": batch.processed,
                "succeeded": batch.succeeded,
                "failed": batch.failed,
                "reclaimed": reclaimed,
                "retried": retried,
                "status_counts": _status_counts(counts),
            },
        )


async def start_wmb_scan_scheduler() -> None:
    """
    Run the scan queue job every SCAN_QUEUE_INTERVAL_MINUTES in live mode.

    Meant to run in its own process (see ``benefits_scan.jobs.worker``).
    """
    from benefits_scan.db.pool import db_pool

    interval_minutes = settings.SCAN_QUEUE_INTERVAL_MINUTES
    await db_pool.initialize()
    job = WmbScanQueueJob(build_postgres_storage(), build_default_registry())

    logger.info("Starting WMB scan queue scheduler", interval_minutes=interval_minutes)

    try:
        while True:
            try:
                result = await job.execute({"mode": "live"})
                logger.info("WMB scan queue cycle completed", message=result.message)
                await asyncio.sleep(interval_minutes * 60)
            except asyncio.CancelledError:
                logger.info("WMB scan queue scheduler stopped")
                raise
            except Exception as e:
                logger.error(
                    "Error in WMB scan queue scheduler", error=str(e), error_type=type(e).__name__
                )
                # Back off before retrying to avoid tight error loops
                await asyncio.sleep(60)
    finally:
        await db_pool.close()
