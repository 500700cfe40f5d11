"""
Pydantic schemas for API requests, and serializers for responses
"""

from datetime import date
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from ..clients import Client
from ..loans import Loan, LoanOverview
from ..installments import Installment


# Client schemas
class CreateClientRequest(BaseModel):
    first_name: str
    last_name: str
    document_id: str = Field(..., description="National id or passport number, unique")
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class UpdateClientRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    document_id: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


# Loan schemas
class CalculateLoanRequest(BaseModel):
    principal: str = Field(..., description="Decimal amount as string")
    annual_rate_percent: str = Field(..., description="Nominal annual rate in percent, e.g. '24'")
    term_count: int = Field(..., description="Number of monthly installments")
    start_date: Optional[date] = None


class CreateLoanRequest(CalculateLoanRequest):
    client_id: str


class PayInstallmentRequest(BaseModel):
    payment_date: Optional[date] = None


class AccrualRunRequest(BaseModel):
    run_date: Optional[date] = None


# Response serializers
def client_to_dict(client: Client) -> Dict[str, Any]:
    return {
        "id": client.id,
        "first_name": client.first_name,
        "last_name": client.last_name,
        "full_name": client.full_name,
        "document_id": client.document_id,
        "phone": client.phone,
        "email": client.email,
        "address": client.address,
        "created_at": client.created_at.isoformat(),
        "updated_at": client.updated_at.isoformat()
    }


def installment_to_dict(installment: Installment) -> Dict[str, Any]:
    return {
        "id": installment.id,
        "loan_id": installment.loan_id,
        "number": installment.number,
        "amount": str(installment.amount),
        "principal_portion": str(installment.principal_portion),
        "interest_portion": str(installment.interest_portion),
        "overdue_interest": str(installment.overdue_interest),
        "total_amount": str(installment.total_amount),
        "due_date": installment.due_date.isoformat(),
        "paid_date": installment.paid_date.isoformat() if installment.paid_date else None,
        "status": installment.status.value,
        "days_overdue": installment.days_overdue
    }


def loan_to_dict(loan: Loan) -> Dict[str, Any]:
    return {
        "id": loan.id,
        "client_id": loan.client_id,
        "principal": str(loan.principal),
        "annual_rate_percent": str(loan.annual_rate_percent),
        "term_count": loan.term_count,
        "installment_amount": str(loan.installment_amount),
        "total_amount": str(loan.total_amount),
        "total_interest": str(loan.total_interest),
        "start_date": loan.start_date.isoformat(),
        "end_date": loan.end_date.isoformat(),
        "status": loan.status.value,
        "version": loan.version,
        "created_at": loan.created_at.isoformat()
    }


def overview_to_dict(overview: LoanOverview) -> Dict[str, Any]:
    result = loan_to_dict(overview.loan)
    result.update({
        "pending_amount": str(overview.pending_amount),
        "paid_amount": str(overview.paid_amount),
        "paid_installments": overview.paid_count,
        "overdue_installments": overview.overdue_count,
        "installments": [installment_to_dict(i) for i in overview.installments]
    })
    return result

