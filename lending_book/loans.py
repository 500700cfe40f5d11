"""
Loan Module

Handles loan creation from an amortization schedule, lookup, per-client
listing, schedule previews, and the loan status state machine.
"""

from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from enum import Enum
import uuid

from .storage import StorageInterface, StorageRecord
from .amortization import LoanCalculation, compute_schedule
from .installments import Installment, InstallmentLedger, InstallmentStatus
from .exceptions import InvalidInputError, InvalidTransitionError, NotFoundError
from .money import sum_money
from .logging_config import get_logger, log_action


class LoanStatus(Enum):
    """Loan lifecycle states"""
    ACTIVE = "active"          # Installments outstanding
    PAID = "paid"              # Every installment paid
    DEFAULTED = "defaulted"    # Reserved, no rule produces it


class LoanEvent(Enum):
    """Events that drive loan status transitions"""
    ALL_INSTALLMENTS_PAID = "all_installments_paid"


# Explicit (status, event) -> status rules; anything else is rejected
LOAN_TRANSITIONS: Dict[tuple, LoanStatus] = {
    (LoanStatus.ACTIVE, LoanEvent.ALL_INSTALLMENTS_PAID): LoanStatus.PAID,
}


def transition(status: LoanStatus, event: LoanEvent) -> LoanStatus:
    """
    Apply an event to a loan status

    Raises:
        InvalidTransitionError: If no rule exists for the pair
    """
    try:
        return LOAN_TRANSITIONS[(status, event)]
    except KeyError:
        raise InvalidTransitionError(
            f"No transition from {status.value} on {event.value}",
            {"status": status.value, "event": event.value}
        )


@dataclass
class Loan(StorageRecord):
    """Loan issued to a client with its fixed repayment terms"""
    client_id: str
    principal: Decimal
    annual_rate_percent: Decimal
    term_count: int
    installment_amount: Decimal
    total_amount: Decimal
    total_interest: Decimal
    start_date: date
    end_date: date
    status: LoanStatus = LoanStatus.ACTIVE
    version: int = 0

    @property
    def is_active(self) -> bool:
        return self.status == LoanStatus.ACTIVE


@dataclass
class LoanOverview:
    """Loan together with its installments and derived repayment figures"""
    loan: Loan
    installments: List[Installment] = field(default_factory=list)

    @property
    def paid_count(self) -> int:
        return sum(1 for i in self.installments if i.status == InstallmentStatus.PAID)

    @property
    def overdue_count(self) -> int:
        return sum(1 for i in self.installments if i.status == InstallmentStatus.OVERDUE)

    @property
    def pending_amount(self) -> Decimal:
        """Amount still owed, surcharges included"""
        return sum_money(i.total_amount for i in self.installments if i.is_outstanding)

    @property
    def paid_amount(self) -> Decimal:
        return sum_money(i.total_amount for i in self.installments if i.is_paid)


class LoanManager:
    """
    Manages loan creation, retrieval and status transitions
    """

    def __init__(
        self,
        storage: StorageInterface,
        ledger: InstallmentLedger,
        clock: Callable[[], date] = date.today
    ):
        self.storage = storage
        self.ledger = ledger
        self.clock = clock
        self.logger = get_logger("lending_book.loans")

        self.table_name = "loans"
        self.clients_table = "clients"

    def preview(
        self,
        principal: Any,
        annual_rate_percent: Any,
        term_count: Any,
        start_date: Optional[date] = None
    ) -> LoanCalculation:
        """Compute a schedule without saving anything"""
        return compute_schedule(
            principal, annual_rate_percent, term_count, start_date or self.clock()
        )

    def create_loan(
        self,
        client_id: str,
        principal: Any,
        annual_rate_percent: Any,
        term_count: Any,
        start_date: date
    ) -> LoanOverview:
        """
        Create a loan and materialize its installment schedule

        Args:
            client_id: Borrowing client
            principal: Amount lent
            annual_rate_percent: Nominal annual rate in percent
            term_count: Number of monthly installments
            start_date: Loan start date

        Returns:
            LoanOverview with the stored loan and its PENDING installments

        Raises:
            NotFoundError: If the client does not exist
            InvalidInputError: If the amortization parameters are rejected
        """
        if not client_id:
            raise InvalidInputError("Client id is required")
        if not self.storage.exists(self.clients_table, client_id):
            raise NotFoundError("client", client_id)

        # Validation happens before anything is written
        calculation = compute_schedule(principal, annual_rate_percent, term_count, start_date)

        now = datetime.now(timezone.utc)
        loan = Loan(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            client_id=client_id,
            principal=calculation.principal,
            annual_rate_percent=calculation.annual_rate_percent,
            term_count=calculation.term_count,
            installment_amount=calculation.installment_amount,
            total_amount=calculation.total_amount,
            total_interest=calculation.total_interest,
            start_date=calculation.start_date,
            end_date=calculation.end_date
        )

        with self.storage.atomic():
            self.storage.save(self.table_name, loan.id, loan.to_dict())
            installments = self.ledger.create_schedule(loan.id, calculation)

        log_action(
            self.logger, "info", "Loan created",
            action="create_loan", resource=f"loan:{loan.id}",
            extra={
                "client_id": client_id,
                "principal": str(loan.principal),
                "annual_rate_percent": str(loan.annual_rate_percent),
                "term_count": loan.term_count,
                "installment_amount": str(loan.installment_amount)
            }
        )

        return LoanOverview(loan=loan, installments=installments)

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        """Get loan by ID"""
        data = self.storage.load(self.table_name, loan_id)
        if data:
            return Loan.from_dict(data)
        return None

    def require_loan(self, loan_id: str) -> Loan:
        loan = self.get_loan(loan_id)
        if not loan:
            raise NotFoundError("loan", loan_id)
        return loan

    def list_loans(self, status: Optional[LoanStatus] = None) -> List[Loan]:
        """All loans, newest first"""
        if status:
            records = self.storage.find(self.table_name, {'status': status.value})
        else:
            records = self.storage.load_all(self.table_name)
        loans = [Loan.from_dict(record) for record in records]
        loans.sort(key=lambda loan: loan.created_at, reverse=True)
        return loans

    def loans_for_client(self, client_id: str) -> List[Loan]:
        records = self.storage.find(self.table_name, {'client_id': client_id})
        loans = [Loan.from_dict(record) for record in records]
        loans.sort(key=lambda loan: loan.created_at, reverse=True)
        return loans

    def get_installments(self, loan_id: str) -> List[Installment]:
        self.require_loan(loan_id)
        return self.ledger.find_by_loan(loan_id)

    def get_overview(self, loan_id: str) -> LoanOverview:
        loan = self.require_loan(loan_id)
        return LoanOverview(loan=loan, installments=self.ledger.find_by_loan(loan_id))

    def apply_event(self, loan: Loan, event: LoanEvent) -> bool:
        """
        Transition a loan and persist it with a compare-and-swap on (status, version)

        Returns:
            True if written, False if the stored loan changed since it was read

        Raises:
            InvalidTransitionError: If the state machine has no rule for the event
        """
        new_status = transition(loan.status, event)
        expected = {'status': loan.status.value, 'version': loan.version}

        updated = Loan.from_dict(loan.to_dict())
        updated.status = new_status
        updated.version = loan.version + 1
        updated.updated_at = datetime.now(timezone.utc)

        if not self.storage.compare_and_swap(self.table_name, loan.id, expected, updated.to_dict()):
            return False

        loan.status = updated.status
        loan.version = updated.version
        loan.updated_at = updated.updated_at

        log_action(
            self.logger, "info", f"Loan status changed to {new_status.value}",
            action="loan_transition", resource=f"loan:{loan.id}",
            extra={"event": event.value, "version": loan.version}
        )
        return True

    def delete_loan(self, loan_id: str) -> None:
        """
        Delete a loan and its installments

        Raises:
            NotFoundError: If the loan does not exist
            InvalidInputError: If the loan is still ACTIVE
        """
        loan = self.require_loan(loan_id)
        if loan.is_active:
            raise InvalidInputError(f"Loan {loan_id} is still active and cannot be deleted")

        with self.storage.atomic():
            deleted = self.ledger.delete_for_loan(loan_id)
            self.storage.delete(self.table_name, loan_id)

        log_action(
            self.logger, "info", "Loan deleted",
            action="delete_loan", resource=f"loan:{loan_id}",
            extra={"installments_deleted": deleted}
        )
