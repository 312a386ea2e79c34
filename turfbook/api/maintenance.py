"""Maintenance job endpoints.

Both jobs also run on a timer; the endpoints trigger them on demand through
the same scheduler so a manual run never overlaps a timed one.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header

from turfbook.core.config import settings
from turfbook.core.errors import BookingError, UnauthorizedError, UpstreamError
from turfbook.schemas.maintenance import DuplicateCleanupResult, ReconciliationResult
from turfbook.services.scheduler import (
    CLEANUP_JOB,
    RECONCILE_JOB,
    MaintenanceScheduler,
    get_scheduler,
)

logger = logging.getLogger(__name__)


async def verify_cron_secret(authorization: Optional[str] = Header(default=None)):
    """Require ``Authorization: Bearer <CRON_SECRET>`` when a secret is configured."""
    if not settings.CRON_SECRET:
        return
    if authorization != f"Bearer {settings.CRON_SECRET}":
        logger.warning("Rejected maintenance request with missing or invalid cron secret")
        raise UnauthorizedError()


router = APIRouter(
    prefix="/api",
    tags=["maintenance"],
    dependencies=[Depends(verify_cron_secret)],
)


@router.post("/bookings/cleanup-duplicates", response_model=DuplicateCleanupResult, response_model_by_alias=True)
async def cleanup_duplicates(scheduler: MaintenanceScheduler = Depends(get_scheduler)):
    """
    Delete duplicate active bookings, keeping the oldest of each slot.

    Returns:
        Cleanup summary, or ``skipped`` if a cleanup is already running
    """
    try:
        result = await scheduler.run_job(CLEANUP_JOB)
    except BookingError:
        raise
    except Exception as e:
        logger.error(f"Duplicate cleanup failed: {e}", exc_info=True)
        raise UpstreamError(f"Duplicate cleanup failed: {e}")

    if result is None:
        return DuplicateCleanupResult(skipped=True, message="Cleanup already in progress")
    return result


@router.post("/razorpay/reconcile-pending", response_model=ReconciliationResult, response_model_by_alias=True)
async def reconcile_pending(scheduler: MaintenanceScheduler = Depends(get_scheduler)):
    """
    Reconcile recent pending online payments into bookings.

    Returns:
        Per-payment results, or ``skipped`` if a reconciliation is already running
    """
    try:
        result = await scheduler.run_job(RECONCILE_JOB)
    except BookingError:
        raise
    except Exception as e:
        logger.error(f"Pending payment reconciliation failed: {e}", exc_info=True)
        raise UpstreamError(f"Reconciliation failed: {e}")

    if result is None:
        return ReconciliationResult(skipped=True, message="Reconciliation already in progress")
    return result
