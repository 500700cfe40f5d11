"""
Admin endpoints (delinquency accrual, scheduler status)
"""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends

from .dependencies import get_lending_book
from .schemas import AccrualRunRequest
from ..system import LendingBook


router = APIRouter()


@router.post("/accrual/run")
async def run_accrual(
    request: Optional[AccrualRunRequest] = None,
    book: LendingBook = Depends(get_lending_book)
) -> Dict[str, Any]:
    """Run the delinquency accrual on demand"""
    run_date = request.run_date if request and request.run_date else book.clock()
    result = book.accrual_engine.run(run_date)
    return result.to_dict()


@router.get("/accrual/status")
async def get_accrual_status(book: LendingBook = Depends(get_lending_book)) -> Dict[str, Any]:
    """Scheduler state and the outcome of its last run"""
    scheduler = book.scheduler
    if scheduler is None:
        return {"enabled": False}

    last = scheduler.last_result
    return {
        "enabled": True,
        "running": scheduler.is_running,
        "daily_at": f"{scheduler.hour:02d}:{scheduler.minute:02d}",
        "runs": scheduler.run_count,
        "last_run_date": scheduler.last_run_date.isoformat() if scheduler.last_run_date else None,
        "last_result": last.to_dict() if last else None
    }
