"""
Scan queue service.

Thin orchestration over the queue repository: enqueueing a month, draining a
batch of jobs through the benefits scan, and invalidating a worker's results
after their data changes.
"""

from benefits_scan.features.eligibility.domain import BatchResult, EnqueueResult, QueueStatusCounts
from benefits_scan.features.eligibility.repository import BenefitsScanStorage
from benefits_scan.features.eligibility.rules import RuleRegistry
from benefits_scan.infrastructure.observability.logging import get_logger, log_job_outcome

from .benefits_scan import run_benefits_scan

logger = get_logger(__name__)


async def enqueue_month_scan(storage: BenefitsScanStorage, month: int, year: int) -> EnqueueResult:
    result = await storage.queue.enqueue_month(month, year)
    logger.info(
        "Month scan enqueued",
        month=month,
        year=year,
        status_id=result.status_id,
        queued_count=result.queued_count,
    )
    return result


async def process_batch_queue_jobs(
    storage: BenefitsScanStorage, registry: RuleRegistry, limit: int
) -> BatchResult:
    """
    Claim and run up to ``limit`` pending jobs, one at a time.

    Every claimed job ends in a terminal state: success with the scan result
    snapshot, or failed with the error message. A failing job never stops the
    batch.
    """
    batch = BatchResult()

    for _ in range(limit):
        job = await storage.queue.claim_next_job()
        if job is None:
            break

        batch.processed += 1
        try:
            result = await run_benefits_scan(
                storage, registry, job.worker_id, job.month, job.year, "live"
            )
        except Exception as e:
            batch.failed += 1
            await storage.queue.record_job_result(job.id, False, None, str(e))
            log_job_outcome(job.id, job.worker_id, success=False, error=str(e))
            continue

        batch.succeeded += 1
        await storage.queue.record_job_result(job.id, True, result.to_dict())
        log_job_outcome(job.id, job.worker_id, success=True)

    logger.info(
        "Scan queue batch finished",
        limit=limit,
        processed=batch.processed,
        succeeded=batch.succeeded,
        failed=batch.failed,
    )
    return batch


async def invalidate_worker_scans(storage: BenefitsScanStorage, worker_id: str) -> int:
    return await storage.queue.invalidate_worker_scans(worker_id)


async def get_queue_status(storage: BenefitsScanStorage) -> list[QueueStatusCounts]:
    return await storage.queue.get_pending_summary()
