"""Lending Book Dashboard - FastAPI Application"""

from pathlib import Path
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, Query
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware

from lending_book.api.dependencies import get_lending_book
from lending_book.config import get_config
from lending_book.money import format_money
from lending_book.system import LendingBook


def create_app(book: Optional[LendingBook] = None) -> FastAPI:
    """Create and configure the dashboard application"""

    app = FastAPI(
        title="Lending Book Dashboard",
        description="Dashboard for the lending book portfolio",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    if book is not None:
        app.dependency_overrides[get_lending_book] = lambda: book

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Static files directory
    static_dir = Path(__file__).resolve().parent / "static"

    @app.get("/api/dashboard/overview")
    async def get_dashboard_overview(
        as_of: Optional[date] = Query(None),
        system: LendingBook = Depends(get_lending_book)
    ):
        """Get dashboard overview with KPIs, upcoming payments and loans"""
        today = as_of or system.clock()
        summary = system.portfolio.summary(today)
        symbol = get_config().currency_symbol

        return {
            'kpis': {
                'total_clients': len(system.client_manager.list_clients()),
                'active_loans': summary.active_loans,
                'total_lent': format_money(summary.total_lent, symbol),
                'total_collected': format_money(summary.total_collected, symbol),
                'total_outstanding': format_money(summary.total_outstanding, symbol),
                'total_overdue': format_money(summary.total_overdue, symbol),
                'interest_earned': format_money(summary.interest_earned, symbol),
                'overdue_installments': summary.overdue_installments,
                'upcoming_installments': summary.upcoming_installments
            },
            'summary': summary.to_dict(),
            'loans': system.portfolio.loan_overviews()
        }

    @app.get("/api/dashboard/calendar")
    async def get_dashboard_calendar(
        start: Optional[date] = Query(None),
        end: Optional[date] = Query(None),
        system: LendingBook = Depends(get_lending_book)
    ):
        """Calendar events for installments of active loans"""
        return {'events': system.portfolio.calendar_events(start, end)}

    # Serve main HTML
    @app.get("/", response_class=HTMLResponse)
    def index():
        return (static_dir / "index.html").read_text()

    # Static files (mount last, it's a catch-all sub-app)
    app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

    return app
