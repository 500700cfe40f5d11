"""
Lending Book API Application Factory
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .dependencies import get_lending_book
from .clients import router as clients_router
from .loans import router as loans_router
from .summary import router as summary_router
from .admin import router as admin_router
from ..exceptions import (
    AlreadyPaidError,
    ClientHasActiveLoansError,
    InvalidInputError,
    InvalidTransitionError,
    LendingBookError,
    NotFoundError,
    PersistenceError
)
from ..logging_config import get_logger
from ..system import LendingBook


ERROR_STATUS = [
    (NotFoundError, 404),
    (AlreadyPaidError, 409),
    (InvalidTransitionError, 409),
    (ClientHasActiveLoansError, 400),
    (InvalidInputError, 400),
    (PersistenceError, 500),
]

logger = get_logger("lending_book.api")


def status_for(error: LendingBookError) -> int:
    """HTTP status code for a lending book error"""
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 500


def create_app(book: Optional[LendingBook] = None) -> FastAPI:
    """
    Create and configure the FastAPI application

    Args:
        book: Lending book to serve; built from configuration on first request when omitted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        resolve = app.dependency_overrides.get(get_lending_book, get_lending_book)
        system = resolve()
        system.start()
        yield
        if system.scheduler:
            system.scheduler.stop()

    app = FastAPI(
        title="Lending Book API",
        description="Personal lending book with amortization schedules and delinquency accrual",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
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

    @app.exception_handler(LendingBookError)
    async def lending_book_error_handler(request: Request, exc: LendingBookError):
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.message, "error": type(exc).__name__, "details": exc.details}
        )

    # Include routers
    app.include_router(clients_router, prefix="/api/clients", tags=["Clients"])
    app.include_router(loans_router, prefix="/api/loans", tags=["Loans"])
    app.include_router(summary_router, prefix="/api/summary", tags=["Summary"])
    app.include_router(admin_router, prefix="/api/admin", tags=["Admin"])

    # Health check endpoint
    @app.get("/api/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "lending_book_api",
            "version": "1.0.0"
        }

    @app.get("/api")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Lending Book API",
            "version": "1.0.0",
            "endpoints": {
                "docs": "/docs",
                "health": "/api/health",
                "clients": "/api/clients",
                "loans": "/api/loans",
                "calculate": "/api/loans/calculate",
                "summary": "/api/summary",
                "calendar": "/api/summary/calendar",
                "accrual": "/api/admin/accrual/run"
            }
        }

    return app
