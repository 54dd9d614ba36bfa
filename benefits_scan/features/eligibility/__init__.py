"""
Eligibility / WMB scan feature package.

Everything related to monthly benefit reconciliation lives here: domain
models, storage repositories, eligibility rules, services, the scheduled
queue job and the admin API router.
"""

# Re-export the primary building blocks for easy access.
from .api.router import router as eligibility_router  # noqa: F401
from .jobs.scan_queue_job import WmbScanQueueJob, start_wmb_scan_scheduler  # noqa: F401
from .rules.registry import RuleRegistry, build_default_registry  # noqa: F401
from .services.benefits_scan import run_benefits_scan  # noqa: F401
