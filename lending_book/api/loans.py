"""
Loan endpoints: creation, previews, lookup and installment payment
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from .dependencies import get_lending_book
from .schemas import (
    CalculateLoanRequest,
    CreateLoanRequest,
    PayInstallmentRequest,
    installment_to_dict,
    overview_to_dict
)
from ..loans import LoanStatus
from ..system import LendingBook


router = APIRouter()


@router.get("")
async def list_loans(
    status_filter: Optional[str] = Query(None, alias="status"),
    book: LendingBook = Depends(get_lending_book)
):
    """List loans with client name, pending amount and overdue count"""
    loan_status = None
    if status_filter:
        try:
            loan_status = LoanStatus(status_filter)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown loan status: {status_filter}")

    loans = book.loan_manager.list_loans(loan_status)
    overviews = book.portfolio.loan_overviews(loans)
    return {"loans": overviews, "total_count": len(overviews)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_loan(
    request: CreateLoanRequest,
    book: LendingBook = Depends(get_lending_book)
):
    """Create a loan and its installment schedule"""
    overview = book.loan_manager.create_loan(
        client_id=request.client_id,
        principal=request.principal,
        annual_rate_percent=request.annual_rate_percent,
        term_count=request.term_count,
        start_date=request.start_date or book.clock()
    )
    return overview_to_dict(overview)


@router.post("/calculate")
async def calculate_loan(
    request: CalculateLoanRequest,
    book: LendingBook = Depends(get_lending_book)
):
    """Preview an amortization schedule without saving it"""
    calculation = book.loan_manager.preview(
        request.principal,
        request.annual_rate_percent,
        request.term_count,
        request.start_date
    )
    return calculation.to_dict()


@router.get("/client/{client_id}")
async def get_client_loans(client_id: str, book: LendingBook = Depends(get_lending_book)):
    """Get all loans of a client"""
    book.client_manager.require_client(client_id)
    loans = book.loan_manager.loans_for_client(client_id)
    overviews = book.portfolio.loan_overviews(loans)
    return {"loans": overviews, "total_count": len(overviews)}


@router.put("/installment/{installment_id}/pay")
async def pay_installment(
    installment_id: str,
    request: Optional[PayInstallmentRequest] = None,
    book: LendingBook = Depends(get_lending_book)
):
    """Record payment of an installment"""
    payment_date = request.payment_date if request else None
    installment = book.payment_recorder.pay(installment_id, payment_date)
    loan = book.loan_manager.require_loan(installment.loan_id)

    result = installment_to_dict(installment)
    result["loan_status"] = loan.status.value
    return result


@router.get("/{loan_id}")
async def get_loan(loan_id: str, book: LendingBook = Depends(get_lending_book)):
    """Get a loan with its installments"""
    overview = book.loan_manager.get_overview(loan_id)
    result = overview_to_dict(overview)

    client = book.client_manager.get_client(overview.loan.client_id)
    result["client_name"] = client.full_name if client else None
    return result


@router.delete("/{loan_id}")
async def delete_loan(loan_id: str, book: LendingBook = Depends(get_lending_book)):
    """Delete a loan that is no longer active"""
    book.loan_manager.delete_loan(loan_id)
    return {"message": "Loan deleted successfully"}
