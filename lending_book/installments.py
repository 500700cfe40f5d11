"""
Installment Ledger Module

Persisted collection of installments: one record per scheduled period of a
loan, created in bulk at loan creation and then mutated only by the
delinquency accrual run and by payments.
"""

from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass
from typing import Dict, List, Optional, Any, Iterable
from enum import Enum
import uuid

from .storage import StorageInterface, StorageRecord
from .amortization import LoanCalculation
from .money import ZERO, round_money


class InstallmentStatus(Enum):
    """Installment lifecycle states"""
    PENDING = "pending"    # Not yet due, or due and not yet aged
    OVERDUE = "overdue"    # Past due and unpaid
    PAID = "paid"          # Terminal


@dataclass
class Installment(StorageRecord):
    """One scheduled repayment of a loan"""
    loan_id: str
    number: int
    amount: Decimal
    principal_portion: Decimal
    interest_portion: Decimal
    due_date: date
    status: InstallmentStatus = InstallmentStatus.PENDING
    overdue_interest: Decimal = ZERO
    total_amount: Optional[Decimal] = None
    days_overdue: int = 0
    paid_date: Optional[date] = None

    def __post_init__(self):
        if self.total_amount is None:
            self.total_amount = round_money(self.amount + self.overdue_interest)

    @property
    def is_paid(self) -> bool:
        return self.status == InstallmentStatus.PAID

    @property
    def is_outstanding(self) -> bool:
        return self.status in (InstallmentStatus.PENDING, InstallmentStatus.OVERDUE)


class InstallmentLedger:
    """
    Query and mutation access to stored installments
    """

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table_name = "installments"

    def create_schedule(self, loan_id: str, calculation: LoanCalculation) -> List[Installment]:
        """
        Materialize an amortization schedule as PENDING installments

        Args:
            loan_id: Owning loan
            calculation: Result of compute_schedule

        Returns:
            Installments in due-date order
        """
        now = datetime.now(timezone.utc)
        installments = []
        for entry in calculation.schedule:
            installment = Installment(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                loan_id=loan_id,
                number=entry.number,
                amount=entry.amount,
                principal_portion=entry.principal_portion,
                interest_portion=entry.interest_portion,
                due_date=entry.due_date
            )
            self.storage.save(self.table_name, installment.id, installment.to_dict())
            installments.append(installment)
        return installments

    def get(self, installment_id: str) -> Optional[Installment]:
        data = self.storage.load(self.table_name, installment_id)
        return Installment.from_dict(data) if data else None

    def all(self) -> List[Installment]:
        return self._sorted(self.storage.load_all(self.table_name))

    def find_by_loan(self, loan_id: str) -> List[Installment]:
        """Installments of one loan ordered by installment number"""
        return self._sorted(self.storage.find(self.table_name, {'loan_id': loan_id}))

    def find_by_status(self, statuses: Iterable[InstallmentStatus]) -> List[Installment]:
        """Installments in any of the given statuses, in due-date order"""
        records = []
        for status in statuses:
            records.extend(self.storage.find(self.table_name, {'status': status.value}))
        return self._sorted(records)

    def find_outstanding(self) -> List[Installment]:
        return self.find_by_status([InstallmentStatus.PENDING, InstallmentStatus.OVERDUE])

    def save(self, installment: Installment) -> None:
        installment.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.table_name, installment.id, installment.to_dict())

    def compare_and_swap(
        self,
        installment: Installment,
        expected_status: InstallmentStatus,
        expected_days_overdue: Optional[int] = None
    ) -> bool:
        """
        Persist an installment only if its stored status is still `expected_status`

        When `expected_days_overdue` is given the stored day count must match too,
        so a write based on a stale surcharge is refused.

        Returns:
            True if written, False if another writer changed the status first
        """
        installment.updated_at = datetime.now(timezone.utc)
        expected = {'status': expected_status.value}
        if expected_days_overdue is not None:
            expected['days_overdue'] = expected_days_overdue
        return self.storage.compare_and_swap(
            self.table_name,
            installment.id,
            expected,
            installment.to_dict()
        )

    def delete_for_loan(self, loan_id: str) -> int:
        """Delete every installment of a loan, returning how many were removed"""
        deleted = 0
        for record in self.storage.find(self.table_name, {'loan_id': loan_id}):
            if self.storage.delete(self.table_name, record['id']):
                deleted += 1
        return deleted

    @staticmethod
    def _sorted(records: List[Dict[str, Any]]) -> List[Installment]:
        installments = [Installment.from_dict(record) for record in records]
        installments.sort(key=lambda i: (i.due_date, i.number))
        return installments
