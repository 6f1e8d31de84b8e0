"""
Scheduler endpoints.
"""
from fastapi import APIRouter, Depends

from autoblogger_backend.core.deps import get_scheduler_service
from autoblogger_backend.schemas.scheduler import ReconciliationReport, SweepResult
from autoblogger_backend.services.scheduler_service import SchedulerService

router = APIRouter()


@router.post("/run", response_model=SweepResult)
async def run_due_schedules(service: SchedulerService = Depends(get_scheduler_service)):
    """Run one sweep over due schedules now."""
    return await service.run_due_schedules()


@router.get("/reconciliation", response_model=ReconciliationReport)
async def reconciliation_report(service: SchedulerService = Depends(get_scheduler_service)):
    """Topics marked published whose job failed."""
    return await service.reconciliation_report()
