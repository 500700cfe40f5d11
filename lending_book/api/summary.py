"""
Portfolio summary endpoints
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query

from .dependencies import get_lending_book
from ..system import LendingBook


router = APIRouter()


@router.get("")
async def get_summary(
    as_of: Optional[date] = Query(None, description="Reference day, defaults to today"),
    book: LendingBook = Depends(get_lending_book)
):
    """Portfolio totals, counters and upcoming payments"""
    return book.portfolio.summary(as_of or book.clock()).to_dict()


@router.get("/calendar")
async def get_calendar(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    book: LendingBook = Depends(get_lending_book)
):
    """Installments of active loans as calendar events"""
    return {"events": book.portfolio.calendar_events(start, end)}
