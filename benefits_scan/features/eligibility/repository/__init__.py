"""
Repository layer for the eligibility feature.
"""

from .benefit_repository import BenefitRepository
from .policy_repository import PolicyRepository
from .scan_queue_repository import ScanQueueRepository, ScanQueueRepositoryError
from .storage import (
    BenefitsScanStorage,
    BenefitStore,
    PolicyStore,
    ScanQueueStore,
    WorkerStore,
    build_postgres_storage,
)
from .worker_repository import WorkerRepository

__all__ = [
    "BenefitRepository",
    "BenefitsScanStorage",
    "BenefitStore",
    "PolicyRepository",
    "PolicyStore",
    "ScanQueueRepository",
    "ScanQueueRepositoryError",
    "ScanQueueStore",
    "WorkerRepository",
    "WorkerStore",
    "build_postgres_storage",
]
