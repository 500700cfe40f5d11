"""
Portfolio Aggregation Module

Read-only summary statistics over all loans and installments. Every figure is
recomputed from the current snapshot on each call.
"""

from decimal import Decimal
from datetime import date, timedelta
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .installments import Installment, InstallmentLedger, InstallmentStatus
from .loans import Loan, LoanManager
from .clients import ClientManager
from .money import sum_money


EVENT_COLORS = {
    InstallmentStatus.PENDING: "#3b82f6",
    InstallmentStatus.PAID: "#10b981",
    InstallmentStatus.OVERDUE: "#ef4444",
}


@dataclass
class UpcomingPayment:
    """PENDING installment due inside the look-ahead window"""
    installment_id: str
    loan_id: str
    number: int
    amount: Decimal
    due_date: date
    client_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'installment_id': self.installment_id,
            'loan_id': self.loan_id,
            'number': self.number,
            'amount': str(self.amount),
            'due_date': self.due_date.isoformat(),
            'client_name': self.client_name
        }


@dataclass
class PortfolioSummary:
    """Totals and counters for the whole lending book"""
    as_of: date
    total_lent: Decimal
    total_with_interest: Decimal
    total_collected: Decimal
    total_outstanding: Decimal
    total_overdue: Decimal
    interest_earned: Decimal
    active_loans: int
    upcoming_installments: int
    overdue_installments: int
    upcoming_payments: List[UpcomingPayment] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'as_of': self.as_of.isoformat(),
            'total_lent': str(self.total_lent),
            'total_with_interest': str(self.total_with_interest),
            'total_collected': str(self.total_collected),
            'total_outstanding': str(self.total_outstanding),
            'total_overdue': str(self.total_overdue),
            'interest_earned': str(self.interest_earned),
            'active_loans': self.active_loans,
            'upcoming_installments': self.upcoming_installments,
            'overdue_installments': self.overdue_installments,
            'upcoming_payments': [p.to_dict() for p in self.upcoming_payments]
        }


class PortfolioAggregator:
    """
    Derives portfolio statistics from loans and installments
    """

    def __init__(
        self,
        ledger: InstallmentLedger,
        loan_manager: LoanManager,
        client_manager: ClientManager,
        upcoming_window_days: int = 7,
        upcoming_limit: int = 10
    ):
        self.ledger = ledger
        self.loan_manager = loan_manager
        self.client_manager = client_manager
        self.upcoming_window_days = upcoming_window_days
        self.upcoming_limit = upcoming_limit

    def summary(self, today: date) -> PortfolioSummary:
        """
        Compute portfolio totals as of `today`

        Args:
            today: Reference day for the upcoming-payments window

        Returns:
            PortfolioSummary
        """
        loans = {loan.id: loan for loan in self.loan_manager.list_loans()}
        active = {loan_id: loan for loan_id, loan in loans.items() if loan.is_active}
        installments = self.ledger.all()

        paid = [i for i in installments if i.status == InstallmentStatus.PAID]
        overdue = [i for i in installments if i.status == InstallmentStatus.OVERDUE]
        pending_active = [
            i for i in installments
            if i.status == InstallmentStatus.PENDING and i.loan_id in active
        ]

        window_end = today + timedelta(days=self.upcoming_window_days)
        upcoming = [i for i in pending_active if today <= i.due_date <= window_end]
        upcoming.sort(key=lambda i: (i.due_date, i.number))

        names = self._client_names()
        upcoming_payments = [
            UpcomingPayment(
                installment_id=i.id,
                loan_id=i.loan_id,
                number=i.number,
                amount=i.total_amount,
                due_date=i.due_date,
                client_name=names.get(loans[i.loan_id].client_id, "Unknown client")
            )
            for i in upcoming[:self.upcoming_limit]
        ]

        return PortfolioSummary(
            as_of=today,
            total_lent=sum_money(loan.principal for loan in active.values()),
            total_with_interest=sum_money(loan.total_amount for loan in active.values()),
            total_collected=sum_money(i.total_amount for i in paid),
            total_outstanding=sum_money(i.total_amount for i in pending_active),
            total_overdue=sum_money(i.total_amount for i in overdue),
            interest_earned=sum_money(i.interest_portion + i.overdue_interest for i in paid),
            active_loans=len(active),
            upcoming_installments=len(upcoming),
            overdue_installments=len(overdue),
            upcoming_payments=upcoming_payments
        )

    def calendar_events(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None
    ) -> List[Dict[str, Any]]:
        """
        Installments of ACTIVE loans as calendar events colored by status

        Args:
            start: Optional first due date to include
            end: Optional last due date to include
        """
        active = {loan.id: loan for loan in self.loan_manager.list_loans() if loan.is_active}
        names = self._client_names()

        events = []
        for installment in self.ledger.all():
            loan = active.get(installment.loan_id)
            if not loan:
                continue
            if start and installment.due_date < start:
                continue
            if end and installment.due_date > end:
                continue

            client_name = names.get(loan.client_id, "Unknown client")
            color = EVENT_COLORS[installment.status]
            events.append({
                'id': installment.id,
                'title': f"{client_name} - Installment #{installment.number}",
                'start': installment.due_date.isoformat(),
                'amount': str(installment.total_amount),
                'status': installment.status.value,
                'client_name': client_name,
                'loan_id': loan.id,
                'number': installment.number,
                'background_color': color,
                'border_color': color
            })
        return events

    def loan_overviews(self, loans: Optional[List[Loan]] = None) -> List[Dict[str, Any]]:
        """Per-loan pending amount and overdue installment count"""
        loans = loans if loans is not None else self.loan_manager.list_loans()
        names = self._client_names()

        by_loan: Dict[str, List[Installment]] = {}
        for installment in self.ledger.all():
            by_loan.setdefault(installment.loan_id, []).append(installment)

        overviews = []
        for loan in loans:
            installments = by_loan.get(loan.id, [])
            overviews.append({
                'loan_id': loan.id,
                'client_id': loan.client_id,
                'client_name': names.get(loan.client_id, "Unknown client"),
                'status': loan.status.value,
                'principal': str(loan.principal),
                'total_amount': str(loan.total_amount),
                'pending_amount': str(sum_money(
                    i.total_amount for i in installments if i.is_outstanding
                )),
                'paid_installments': sum(1 for i in installments if i.is_paid),
                'overdue_installments': sum(
                    1 for i in installments if i.status == InstallmentStatus.OVERDUE
                ),
                'term_count': loan.term_count
            })
        return overviews

    def _client_names(self) -> Dict[str, str]:
        return {c.id: c.full_name for c in self.client_manager.list_clients()}
