"""
Job runners for the eligibility feature.
"""

from .scan_queue_job import (
    CronJobResult,
    ScanQueueJobContext,
    ScanQueueJobError,
    WmbScanQueueJob,
    start_wmb_scan_scheduler,
)

__all__ = [
    "CronJobResult",
    "ScanQueueJobContext",
    "ScanQueueJobError",
    "WmbScanQueueJob",
    "start_wmb_scan_scheduler",
]
