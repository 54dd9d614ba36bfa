"""
Persistence layer for the WMB scan queue.

Owns the trust_wmb_scan_queue / trust_wmb_scan_status lifecycle. Every state
transition is a single conditional UPDATE so concurrent drivers in separate
processes can share the queue without application-level locking.
"""

from datetime import date
from typing import Any

import psycopg
from psycopg.types.json import Jsonb

from benefits_scan.db.helpers import DatabaseError, fetch_all, fetch_one, with_db_retry
from benefits_scan.db.pool import get_db_transaction
from benefits_scan.features.eligibility.domain import (
    EnqueueResult,
    QueueStatusCounts,
    ScanMonthStatus,
    ScanQueueJob,
)
from benefits_scan.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

MAX_ERROR_LENGTH = 500


class ScanQueueRepositoryError(DatabaseError):
    """More specific exception for scan queue persistence failures."""


class ScanQueueRepository:
    """PostgreSQL implementation of the scan queue store."""

    JOB_SELECT_COLUMNS = """
        id, status_id, worker_id, month, year, status, attempts, trigger_source,
        result_summary, last_error, picked_at, completed_at, created_at
    """

    STATUS_SELECT_COLUMNS = """
        id, month, year, status, total_queued, processed_success, processed_failed,
        started_at, completed_at
    """

    @staticmethod
    def _row_to_job(row: dict | None) -> ScanQueueJob | None:
        if not row:
            return None

        return ScanQueueJob(
            id=str(row["id"]),
            status_id=str(row["status_id"]) if row.get("status_id") else None,
            worker_id=str(row["worker_id"]),
            month=row["month"],
            year=row["year"],
            status=row["status"],
            attempts=row.get("attempts") or 0,
            trigger_source=row.get("trigger_source"),
            result_summary=row.get("result_summary"),
            last_error=row.get("last_error"),
            picked_at=row.get("picked_at"),
            completed_at=row.get("completed_at"),
            created_at=row.get("created_at"),
        )

    @staticmethod
    def _row_to_status(row: dict | None) -> ScanMonthStatus | None:
        if not row:
            return None

        return ScanMonthStatus(
            id=str(row["id"]),
            month=row["month"],
            year=row["year"],
            status=row["status"],
            total_queued=row.get("total_queued") or 0,
            processed_success=row.get("processed_success") or 0,
            processed_failed=row.get("processed_failed") or 0,
            started_at=row.get("started_at"),
            completed_at=row.get("completed_at"),
        )

    async def _ensure_month_status(
        self, conn: psycopg.AsyncConnection, month: int, year: int
    ) -> str:
        row = await fetch_one(
            """
            INSERT INTO trust_wmb_scan_status (month, year, status)
            VALUES (%s, %s, 'queued')
            ON CONFLICT (month, year) DO UPDATE
                SET status = 'queued',
                    completed_at = NULL
            RETURNING id
            """,
            (month, year),
            connection=conn,
        )
        if not row:
            raise ScanQueueRepositoryError(
                "Failed to create scan month status", operation="ensure_month_status"
            )
        return str(row["id"])

    async def _sync_month_status(
        self, conn: psycopg.AsyncConnection, status_ids: list[str]
    ) -> None:
        """Recompute counters and close out months with nothing left to run."""
        if not status_ids:
            return

        await conn.execute(
            """
            UPDATE trust_wmb_scan_status s
            SET processed_success = counts.success,
                processed_failed = counts.failed,
                status = CASE
                    WHEN counts.open = 0 AND s.status IN ('queued', 'running') THEN 'completed'
                    WHEN counts.open > 0 AND s.status = 'completed' THEN 'running'
                    ELSE s.status
                END,
                completed_at = CASE
                    WHEN counts.open = 0 AND s.status IN ('queued', 'running') THEN NOW()
                    WHEN counts.open > 0 THEN NULL
                    ELSE s.completed_at
                END
            FROM (
                SELECT status_id,
                       COUNT(*) FILTER (WHERE status = 'success') AS success,
                       COUNT(*) FILTER (WHERE status = 'failed') AS failed,
                       COUNT(*) FILTER (WHERE status IN ('pending', 'processing')) AS open
                FROM trust_wmb_scan_queue
                WHERE status_id = ANY(%s)
                GROUP BY status_id
            ) AS counts
            WHERE s.id = counts.status_id
            """,
            (status_ids,),
        )

    async def enqueue_month(self, month: int, year: int) -> EnqueueResult:
        """
        Queue every worker for the month.

        New (worker, month, year) rows are inserted as pending and failed rows
        are reset. Pending, processing and successful rows are left untouched,
        so a triple never has more than one open job.
        """
        try:
            async with await get_db_transaction() as conn:
                status_id = await self._ensure_month_status(conn, month, year)

                rows = await fetch_all(
                    """
                    INSERT INTO trust_wmb_scan_queue (
                        status_id, worker_id, month, year, status, trigger_source
                    )
                    SELECT %s, w.id, %s, %s, 'pending', 'monthly_batch'
                    FROM workers w
                    ON CONFLICT (worker_id, month, year) DO UPDATE
                        SET status = 'pending',
                            status_id = EXCLUDED.status_id,
                            trigger_source = 'monthly_batch',
                            attempts = 0,
                            last_error = NULL,
                            picked_at = NULL,
                            completed_at = NULL
                        WHERE trust_wmb_scan_queue.status = 'failed'
                    RETURNING id
                    """,
                    (status_id, month, year),
                    connection=conn,
                )
                queued_count = len(rows)

                await conn.execute(
                    """
                    UPDATE trust_wmb_scan_status
                    SET total_queued = total_queued + %s
                    WHERE id = %s
                    """,
                    (queued_count, status_id),
                )
                await self._sync_month_status(conn, [status_id])

        except psycopg.Error as e:
            logger.error("Failed to enqueue month", month=month, year=year, error=str(e))
            raise ScanQueueRepositoryError(
                f"Failed to enqueue month: {e}", operation="enqueue_month"
            ) from e

        logger.info(
            "WMB scan month enqueued",
            month=month,
            year=year,
            status_id=status_id,
            queued_count=queued_count,
        )
        return EnqueueResult(status_id=status_id, queued_count=queued_count)

    async def enqueue_worker(
        self, worker_id: str, month: int, year: int, trigger_source: str
    ) -> ScanQueueJob:
        """Queue (or re-queue) one worker. A job already processing is returned as-is."""
        try:
            async with await get_db_transaction() as conn:
                status_id = await self._ensure_month_status(conn, month, year)

                row = await fetch_one(
                    f"""
                    INSERT INTO trust_wmb_scan_queue (
                        status_id, worker_id, month, year, status, trigger_source
                    )
                    VALUES (%s, %s, %s, %s, 'pending', %s)
                    ON CONFLICT (worker_id, month, year) DO UPDATE
                        SET status = 'pending',
                            status_id = EXCLUDED.status_id,
                            trigger_source = EXCLUDED.trigger_source,
                            attempts = 0,
                            last_error = NULL,
                            result_summary = NULL,
                            picked_at = NULL,
                            completed_at = NULL
                        WHERE trust_wmb_scan_queue.status <> 'processing'
                    RETURNING {self.JOB_SELECT_COLUMNS}
                    """,
                    (status_id, worker_id, month, year, trigger_source),
                    connection=conn,
                )

                if row:
                    await conn.execute(
                        "UPDATE trust_wmb_scan_status SET total_queued = total_queued + 1 WHERE id = %s",
                        (status_id,),
                    )
                else:
                    row = await fetch_one(
                        f"""
                        SELECT {self.JOB_SELECT_COLUMNS}
                        FROM trust_wmb_scan_queue
                        WHERE worker_id = %s AND month = %s AND year = %s
                        """,
                        (worker_id, month, year),
                        connection=conn,
                    )

                await self._sync_month_status(conn, [status_id])

        except psycopg.Error as e:
            logger.error("Failed to enqueue worker", worker_id=worker_id, error=str(e))
            raise ScanQueueRepositoryError(
                f"Failed to enqueue worker: {e}", operation="enqueue_worker"
            ) from e

        job = self._row_to_job(row)
        logger.info(
            "Worker queued for WMB scan",
            worker_id=worker_id,
            month=month,
            year=year,
            trigger_source=trigger_source,
            job_status=job.status,
        )
        return job

    @with_db_retry(max_retries=2)
    async def claim_next_job(self) -> ScanQueueJob | None:
        """
        Atomically move one pending job to processing.

        The inner SELECT takes a row lock with SKIP LOCKED so concurrent
        claimers each get a different row (or none).
        """
        try:
            async with await get_db_transaction() as conn:
                row = await fetch_one(
                    f"""
                    UPDATE trust_wmb_scan_queue
                    SET status = 'processing',
                        picked_at = NOW()
                    WHERE status = 'pending'
                      AND id = (
                        SELECT id
                        FROM trust_wmb_scan_queue
                        WHERE status = 'pending'
                        ORDER BY created_at ASC, id ASC
                        LIMIT 1
                        FOR UPDATE SKIP LOCKED
                      )
                    RETURNING {self.JOB_SELECT_COLUMNS}
                    """,
                    connection=conn,
                )

                if row and row.get("status_id"):
                    await conn.execute(
                        """
                        UPDATE trust_wmb_scan_status
                        SET status = 'running',
                            started_at = COALESCE(started_at, NOW())
                        WHERE id = %s AND status IN ('queued', 'stale')
                        """,
                        (row["status_id"],),
                    )

        except psycopg.Error as e:
            raise ScanQueueRepositoryError(
                f"Failed to claim scan job: {e}", operation="claim_next_job"
            ) from e

        job = self._row_to_job(row)
        if job:
            logger.debug("Scan job claimed", job_id=job.id, worker_id=job.worker_id)
        return job

    async def record_job_result(
        self,
        job_id: str,
        success: bool,
        result_summary: dict[str, Any] | None,
        error: str | None = None,
    ) -> None:
        """Move a processing job to success/failed and bump its attempt counter."""
        truncated_error = error[:MAX_ERROR_LENGTH] if error else None

        try:
            async with await get_db_transaction() as conn:
                row = await fetch_one(
                    """
                    UPDATE trust_wmb_scan_queue
                    SET status = %s,
                        completed_at = NOW(),
                        attempts = attempts + 1,
                        result_summary = %s,
                        last_error = %s
                    WHERE id = %s AND status = 'processing'
                    RETURNING status_id
                    """,
                    (
                        "success" if success else "failed",
                        Jsonb(result_summary) if result_summary is not None else None,
                        truncated_error,
                        job_id,
                    ),
                    connection=conn,
                )

                if not row:
                    logger.warning("Scan job result ignored, job not processing", job_id=job_id)
                    return

                if row.get("status_id"):
                    await self._sync_month_status(conn, [str(row["status_id"])])

        except psycopg.Error as e:
            raise ScanQueueRepositoryError(
                f"Failed to record scan job result: {e}", operation="record_job_result"
            ) from e

    async def get_pending_summary(self) -> list[QueueStatusCounts]:
        rows = await fetch_all(
            """
            SELECT month, year,
                   COUNT(*) FILTER (WHERE status = 'pending') AS pending,
                   COUNT(*) FILTER (WHERE status = 'processing') AS processing,
                   COUNT(*) FILTER (WHERE status = 'success') AS success,
                   COUNT(*) FILTER (WHERE status = 'failed') AS failed
            FROM trust_wmb_scan_queue
            GROUP BY month, year
            ORDER BY year DESC, month DESC
            """
        )
        return [
            QueueStatusCounts(
                month=row["month"],
                year=row["year"],
                pending=int(row["pending"] or 0),
                processing=int(row["processing"] or 0),
                success=int(row["success"] or 0),
                failed=int(row["failed"] or 0),
            )
            for row in rows
        ]

    async def invalidate_worker_scans(self, worker_id: str, today: date | None = None) -> int:
        """
        Reset a worker's finished or waiting jobs for the current and future
        months back to pending. Jobs currently processing are not touched.
        """
        today = today or date.today()

        try:
            async with await get_db_transaction() as conn:
                rows = await fetch_all(
                    """
                    UPDATE trust_wmb_scan_queue
                    SET status = 'pending',
                        trigger_source = 'worker_update',
                        attempts = 0,
                        last_error = NULL,
                        result_summary = NULL,
                        picked_at = NULL,
                        completed_at = NULL
                    WHERE worker_id = %s
                      AND (year > %s OR (year = %s AND month >= %s))
                      AND status IN ('pending', 'success', 'failed')
                    RETURNING status_id
                    """,
                    (worker_id, today.year, today.year, today.month),
                    connection=conn,
                )

                status_ids = sorted({str(r["status_id"]) for r in rows if r.get("status_id")})
                if status_ids:
                    await conn.execute(
                        """
                        UPDATE trust_wmb_scan_status
                        SET status = 'stale', completed_at = NULL
                        WHERE id = ANY(%s) AND status = 'completed'
                        """,
                        (status_ids,),
                    )
                    await self._sync_month_status(conn, status_ids)

        except psycopg.Error as e:
            raise ScanQueueRepositoryError(
                f"Failed to invalidate worker scans: {e}", operation="invalidate_worker_scans"
            ) from e

        logger.info("Worker scans invalidated", worker_id=worker_id, count=len(rows))
        return len(rows)

    async def get_month_status(self, month: int, year: int) -> ScanMonthStatus | None:
        row = await fetch_one(
            f"""
            SELECT {self.STATUS_SELECT_COLUMNS}
            FROM trust_wmb_scan_status
            WHERE month = %s AND year = %s
            """,
            (month, year),
        )
        return self._row_to_status(row)

    async def list_month_statuses(self) -> list[ScanMonthStatus]:
        rows = await fetch_all(
            f"""
            SELECT {self.STATUS_SELECT_COLUMNS}
            FROM trust_wmb_scan_status
            ORDER BY year DESC, month DESC
            """
        )
        return [self._row_to_status(row) for row in rows]

    async def list_month_jobs(self, status_id: str) -> list[ScanQueueJob]:
        rows = await fetch_all(
            f"""
            SELECT {self.JOB_SELECT_COLUMNS}
            FROM trust_wmb_scan_queue
            WHERE status_id = %s
            ORDER BY status ASC, id ASC
            """,
            (status_id,),
        )
        return [self._row_to_job(row) for row in rows]

    async def reclaim_stale_jobs(self, stale_after_seconds: int) -> int:
        """Return jobs stuck in processing (crashed drivers) to the pending pool."""
        rows = await fetch_all(
            """
            UPDATE trust_wmb_scan_queue
            SET status = 'pending',
                attempts = attempts + 1,
                picked_at = NULL,
                last_error = 'Reclaimed after exceeding processing timeout'
            WHERE status = 'processing'
              AND picked_at < NOW() - make_interval(secs => %s)
            RETURNING id
            """,
            (stale_after_seconds,),
        )
        if rows:
            logger.warning(
                "Reclaimed stale scan jobs",
                count=len(rows),
                stale_after_seconds=stale_after_seconds,
            )
        return len(rows)

    async def retry_failed_jobs(self, max_attempts: int, backoff_seconds: int) -> int:
        """
        Re-queue failed jobs below the attempt cap whose exponential backoff
        window (backoff_seconds * 2^(attempts-1)) has elapsed.
        """
        try:
            async with await get_db_transaction() as conn:
                rows = await fetch_all(
                    """
                    UPDATE trust_wmb_scan_queue
                    SET status = 'pending',
                        trigger_source = 'retry',
                        picked_at = NULL,
                        completed_at = NULL
                    WHERE status = 'failed'
                      AND attempts < %s
                      AND completed_at <= NOW() - make_interval(
                            secs => %s * power(2, GREATEST(attempts - 1, 0))
                      )
                    RETURNING status_id
                    """,
                    (max_attempts, backoff_seconds),
                    connection=conn,
                )
                status_ids = sorted({str(r["status_id"]) for r in rows if r.get("status_id")})
                await self._sync_month_status(conn, status_ids)

        except psycopg.Error as e:
            raise ScanQueueRepositoryError(
                f"Failed to retry failed scan jobs: {e}", operation="retry_failed_jobs"
            ) from e

        if rows:
            logger.info("Failed scan jobs re-queued", count=len(rows), max_attempts=max_attempts)
        return len(rows)
