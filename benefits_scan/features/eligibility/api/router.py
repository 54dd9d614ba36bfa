"""
Eligibility and WMB scan admin routes.

Usage:
    GET  /wmb-scan/summary                      - Job counts per month by status
    GET  /wmb-scan/status                       - All month statuses
    GET  /wmb-scan/status/{year}/{month}        - One month status with its jobs
    POST /wmb-scan/enqueue-month                - Queue every worker for a month
    POST /wmb-scan/enqueue-worker/{worker_id}   - Queue a single worker
    POST /wmb-scan/process-batch                - Drain up to batchSize jobs now
    POST /wmb-scan/invalidate-worker/{worker_id} - Re-queue a worker after data changes
    POST /workers/{worker_id}/benefits-scan     - Run a scan directly (test or live)
    GET  /eligibility-rules                     - Registered rule types
    GET  /eligibility-rules/{rule_id}           - One rule type
    POST /eligibility/evaluate                  - Evaluate ad-hoc rules for a worker
    POST /eligibility/validate-config           - Validate a rule config
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Request, status

from benefits_scan.db.helpers import DatabaseError
from benefits_scan.features.eligibility.errors import (
    BenefitsScanError,
    PolicyNotFoundError,
    RuleEvaluationError,
    UnknownRuleError,
    WorkerNotFoundError,
)
from benefits_scan.features.eligibility.repository import BenefitsScanStorage
from benefits_scan.features.eligibility.rules import EligibilityPlugin, RuleRegistry
from benefits_scan.features.eligibility.services import (
    RuleExecutor,
    enqueue_month_scan,
    get_queue_status,
    invalidate_worker_scans,
    process_batch_queue_jobs,
    run_benefits_scan,
)
from benefits_scan.infrastructure.observability.logging import get_logger

from .models import (
    BenefitsScanRequest,
    EvaluateRequest,
    MonthRequest,
    ProcessBatchRequest,
    ValidateConfigRequest,
)

router = APIRouter(tags=["eligibility"])
logger = get_logger(__name__)


def get_storage(request: Request) -> BenefitsScanStorage:
    return request.app.state.storage


def get_registry(request: Request) -> RuleRegistry:
    return request.app.state.rule_registry


def _plugin_info(plugin: EligibilityPlugin) -> dict:
    return {
        "id": plugin.metadata.id,
        "name": plugin.metadata.name,
        "description": plugin.metadata.description,
        "configSchema": plugin.config_model.model_json_schema(by_alias=True),
    }


def _server_error(message: str, e: Exception) -> HTTPException:
    logger.error(message, error=str(e), error_type=type(e).__name__)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)


# =================================================================
# WMB SCAN QUEUE
# =================================================================


@router.get("/wmb-scan/summary")
async def get_scan_summary(storage: BenefitsScanStorage = Depends(get_storage)):
    try:
        counts = await get_queue_status(storage)
    except DatabaseError as e:
        raise _server_error("Failed to fetch summary", e) from e
    return [asdict(c) for c in counts]


@router.get("/wmb-scan/status")
async def list_scan_statuses(storage: BenefitsScanStorage = Depends(get_storage)):
    try:
        statuses = await storage.queue.list_month_statuses()
    except DatabaseError as e:
        raise _server_error("Failed to fetch statuses", e) from e
    return [asdict(s) for s in statuses]


@router.get("/wmb-scan/status/{year}/{month}")
async def get_scan_month_status(
    year: int, month: int, storage: BenefitsScanStorage = Depends(get_storage)
):
    if not 1 <= month <= 12:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid month or year")

    try:
        month_status = await storage.queue.get_month_status(month, year)
        if month_status is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Month status not found"
            )
        jobs = await storage.queue.list_month_jobs(month_status.id)
    except DatabaseError as e:
        raise _server_error("Failed to fetch month status", e) from e

    return {"status": asdict(month_status), "queueEntries": [asdict(j) for j in jobs]}


@router.post("/wmb-scan/enqueue-month")
async def enqueue_month(request: MonthRequest, storage: BenefitsScanStorage = Depends(get_storage)):
    try:
        result = await enqueue_month_scan(storage, request.month, request.year)
    except DatabaseError as e:
        raise _server_error("Failed to enqueue month scan", e) from e

    return {
        "message": f"Queued {result.queued_count} workers for {request.month}/{request.year}",
        "statusId": result.status_id,
        "queuedCount": result.queued_count,
    }


@router.post("/wmb-scan/enqueue-worker/{worker_id}")
async def enqueue_worker(
    worker_id: str, request: MonthRequest, storage: BenefitsScanStorage = Depends(get_storage)
):
    try:
        job = await storage.queue.enqueue_worker(worker_id, request.month, request.year, "manual")
    except DatabaseError as e:
        raise _server_error("Failed to enqueue worker scan", e) from e

    return {
        "message": f"Worker {worker_id} queued for {request.month}/{request.year}",
        "entry": asdict(job),
    }


@router.post("/wmb-scan/process-batch")
async def process_batch(
    request: ProcessBatchRequest | None = None,
    storage: BenefitsScanStorage = Depends(get_storage),
    registry: RuleRegistry = Depends(get_registry),
):
    batch_size = request.batch_size if request else ProcessBatchRequest().batch_size
    try:
        batch = await process_batch_queue_jobs(storage, registry, batch_size)
    except DatabaseError as e:
        raise _server_error("Failed to process batch", e) from e

    return {
        "message": f"Processed {batch.processed} jobs: {batch.succeeded} succeeded, {batch.failed} failed",
        **asdict(batch),
    }


@router.post("/wmb-scan/invalidate-worker/{worker_id}")
async def invalidate_worker(worker_id: str, storage: BenefitsScanStorage = Depends(get_storage)):
    try:
        count = await invalidate_worker_scans(storage, worker_id)
    except DatabaseError as e:
        raise _server_error("Failed to invalidate worker scans", e) from e

    return {"message": f"Invalidated {count} scan jobs for worker {worker_id}", "invalidated": count}


# =================================================================
# DIRECT SCAN
# =================================================================


@router.post("/workers/{worker_id}/benefits-scan")
async def run_worker_benefits_scan(
    worker_id: str,
    request: BenefitsScanRequest,
    storage: BenefitsScanStorage = Depends(get_storage),
    registry: RuleRegistry = Depends(get_registry),
):
    """
    Run the benefits scan for one worker and month.

    Raises:
        404: Worker not found
        422: No policy resolves for the worker
    """
    try:
        result = await run_benefits_scan(
            storage, registry, worker_id, request.month, request.year, request.mode
        )
    except WorkerNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except PolicyNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    except (BenefitsScanError, DatabaseError) as e:
        raise _server_error("Failed to run benefits scan", e) from e

    return result.to_dict()


# =================================================================
# RULES
# =================================================================


@router.get("/eligibility-rules")
async def list_eligibility_rules(registry: RuleRegistry = Depends(get_registry)):
    return [_plugin_info(plugin) for plugin in registry.all()]


@router.get("/eligibility-rules/{rule_id}")
async def get_eligibility_rule(rule_id: str, registry: RuleRegistry = Depends(get_registry)):
    try:
        plugin = registry.require(rule_id)
    except UnknownRuleError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return _plugin_info(plugin)


@router.post("/eligibility/evaluate")
async def evaluate_eligibility(
    request: EvaluateRequest,
    storage: BenefitsScanStorage = Depends(get_storage),
    registry: RuleRegistry = Depends(get_registry),
):
    executor = RuleExecutor(registry, storage)
    try:
        result = await executor.evaluate_benefit(
            request.benefit_id,
            request.rules,
            scan_type=request.scan_type,
            worker_id=request.worker_id,
            as_of_month=request.month,
            as_of_year=request.year,
            stop_after_ineligible=request.stop_after_ineligible,
        )
    except WorkerNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except RuleEvaluationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    return asdict(result)


@router.post("/eligibility/validate-config")
async def validate_rule_config(
    request: ValidateConfigRequest, registry: RuleRegistry = Depends(get_registry)
):
    try:
        plugin = registry.require(request.rule_id)
    except UnknownRuleError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return asdict(plugin.validate_config(request.config))
