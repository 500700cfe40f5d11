"""
Delinquency Accrual Module

Daily batch routine that ages unpaid installments into delinquency and
recomputes their late-payment surcharge. Safe to re-run: a run only writes an
installment when its day count grows past the stored value.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from enum import Enum

from .installments import Installment, InstallmentLedger, InstallmentStatus
from .loans import LoanManager
from .exceptions import InvalidInputError, PersistenceError
from .money import round_money, sum_money, to_decimal
from .logging_config import get_logger, log_action


class OverdueInterestModel(Enum):
    """How the late-payment surcharge grows with days overdue"""
    FLAT_DAILY = "flat_daily"                # amount * daily_rate * days
    MONTHLY_PRORATED = "monthly_prorated"    # amount * (monthly_rate / 30) * days


@dataclass
class OverdueInterestPolicy:
    """Late-payment surcharge formula"""
    model: OverdueInterestModel = OverdueInterestModel.FLAT_DAILY
    daily_rate: Decimal = Decimal('0.001')
    monthly_rate: Decimal = Decimal('0.05')

    def __post_init__(self):
        if not isinstance(self.model, OverdueInterestModel):
            try:
                self.model = OverdueInterestModel(self.model)
            except ValueError:
                raise InvalidInputError(f"Unknown overdue interest model: {self.model}")
        self.daily_rate = to_decimal(self.daily_rate, "daily_rate")
        self.monthly_rate = to_decimal(self.monthly_rate, "monthly_rate")

    @property
    def rate_per_day(self) -> Decimal:
        if self.model == OverdueInterestModel.MONTHLY_PRORATED:
            return self.monthly_rate / Decimal('30')
        return self.daily_rate

    def surcharge(self, amount: Decimal, days_overdue: int) -> Decimal:
        """Surcharge for an installment base amount overdue by `days_overdue` days"""
        if days_overdue <= 0:
            return Decimal('0.00')
        return round_money(amount * self.rate_per_day * Decimal(days_overdue))

    @classmethod
    def from_config(cls, config) -> 'OverdueInterestPolicy':
        return cls(
            model=config.overdue_interest_model,
            daily_rate=config.daily_overdue_rate,
            monthly_rate=config.monthly_overdue_rate
        )


@dataclass
class AccrualRunResult:
    """Outcome of one accrual run"""
    run_date: date
    scanned: int = 0
    reclassified: int = 0
    updated: int = 0
    failed: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'run_date': self.run_date.isoformat(),
            'scanned': self.scanned,
            'reclassified': self.reclassified,
            'updated': self.updated,
            'failed': list(self.failed)
        }


class DelinquencyAccrualEngine:
    """
    Ages outstanding installments and accrues late-payment interest
    """

    def __init__(
        self,
        ledger: InstallmentLedger,
        loan_manager: LoanManager,
        policy: Optional[OverdueInterestPolicy] = None
    ):
        self.ledger = ledger
        self.loan_manager = loan_manager
        self.policy = policy or OverdueInterestPolicy()
        self.logger = get_logger("lending_book.delinquency")

    def run(self, today: date) -> AccrualRunResult:
        """
        Reclassify and re-price every past-due installment of an ACTIVE loan

        Args:
            today: Calendar day the run is evaluated for

        Returns:
            AccrualRunResult with scan counters and ids that failed to persist

        Raises:
            PersistenceError: If the candidate set itself cannot be loaded
        """
        result = AccrualRunResult(run_date=today)
        log_action(
            self.logger, "info", "Accrual run started",
            action="accrual_run", extra={"run_date": today.isoformat()}
        )

        # Loading failures abort the whole run
        outstanding = self.ledger.find_outstanding()
        active_loans = {loan.id: loan for loan in self.loan_manager.list_loans()
                        if loan.is_active}

        candidates = [
            installment for installment in outstanding
            if installment.loan_id in active_loans and installment.due_date < today
        ]
        result.scanned = len(candidates)

        for installment in candidates:
            try:
                self._accrue(installment, today, result)
            except PersistenceError:
                self.logger.exception(
                    f"Failed to persist accrual for installment {installment.id}"
                )
                result.failed.append(installment.id)

        self._report(today, active_loans)

        log_action(
            self.logger, "info", "Accrual run finished",
            action="accrual_run", extra=result.to_dict()
        )
        return result

    def _accrue(self, installment: Installment, today: date, result: AccrualRunResult) -> None:
        previous_status = installment.status
        previous_days = installment.days_overdue
        days_overdue = (today - installment.due_date).days

        reclassify = previous_status == InstallmentStatus.PENDING
        if not reclassify and days_overdue <= installment.days_overdue:
            # Already accrued for this day count
            return

        installment.status = InstallmentStatus.OVERDUE
        if days_overdue > installment.days_overdue:
            installment.days_overdue = days_overdue
            installment.overdue_interest = self.policy.surcharge(installment.amount, days_overdue)
            installment.total_amount = round_money(installment.amount + installment.overdue_interest)

        # A concurrent payment wins; the installment is skipped rather than overwritten
        if not self.ledger.compare_and_swap(installment, previous_status, previous_days):
            self.logger.debug(f"Installment {installment.id} changed during accrual, skipped")
            return

        if reclassify:
            result.reclassified += 1
        result.updated += 1

        self.logger.debug(
            f"Installment {installment.id} overdue {days_overdue} days, "
            f"surcharge {installment.overdue_interest}"
        )

    def _report(self, today: date, active_loans: Dict) -> None:
        overdue = [
            installment for installment in self.ledger.find_by_status([InstallmentStatus.OVERDUE])
            if installment.loan_id in active_loans
        ]
        clients = {active_loans[i.loan_id].client_id for i in overdue}
        log_action(
            self.logger, "info", "Delinquency report",
            action="delinquency_report",
            extra={
                "run_date": today.isoformat(),
                "overdue_installments": len(overdue),
                "overdue_total": str(sum_money(i.total_amount for i in overdue)),
                "clients_affected": len(clients)
            }
        )
