"""
Payment Recording Module

Records the payment of a single installment and, once every installment of
the loan is paid, moves the loan to PAID.
"""

from datetime import date
from typing import Callable, Optional

from .installments import Installment, InstallmentLedger, InstallmentStatus
from .loans import LoanEvent, LoanManager
from .exceptions import AlreadyPaidError, NotFoundError
from .logging_config import get_logger, log_action


class PaymentRecorder:
    """
    Marks installments paid and cascades loan completion
    """

    def __init__(
        self,
        ledger: InstallmentLedger,
        loan_manager: LoanManager,
        clock: Callable[[], date] = date.today
    ):
        self.ledger = ledger
        self.loan_manager = loan_manager
        self.clock = clock
        self.logger = get_logger("lending_book.payments")

    def pay(self, installment_id: str, payment_date: Optional[date] = None) -> Installment:
        """
        Record full payment of an installment

        The surcharge and total are kept as last computed by the accrual run.

        Args:
            installment_id: Installment to pay
            payment_date: Date of payment, defaults to today

        Returns:
            The PAID installment

        Raises:
            NotFoundError: If the installment does not exist
            AlreadyPaidError: If the installment is already PAID
        """
        paid_date = payment_date or self.clock()

        while True:
            installment = self.ledger.get(installment_id)
            if not installment:
                raise NotFoundError("installment", installment_id)
            if installment.is_paid:
                raise AlreadyPaidError(installment_id)

            previous_status = installment.status
            previous_days = installment.days_overdue
            installment.status = InstallmentStatus.PAID
            installment.paid_date = paid_date
            installment.days_overdue = 0

            if self.ledger.compare_and_swap(installment, previous_status, previous_days):
                break
            # Accrual or another payment changed the installment first; re-read

        log_action(
            self.logger, "info", "Installment paid",
            action="pay_installment", resource=f"installment:{installment.id}",
            extra={
                "loan_id": installment.loan_id,
                "number": installment.number,
                "total_amount": str(installment.total_amount),
                "paid_date": paid_date.isoformat()
            }
        )

        self._cascade(installment.loan_id)
        return installment

    def _cascade(self, loan_id: str) -> None:
        """Move the loan to PAID if every installment is paid"""
        while True:
            loan = self.loan_manager.get_loan(loan_id)
            if not loan or not loan.is_active:
                return

            installments = self.ledger.find_by_loan(loan_id)
            if not installments or not all(i.is_paid for i in installments):
                return

            if self.loan_manager.apply_event(loan, LoanEvent.ALL_INSTALLMENTS_PAID):
                return
            # Lost the race on (status, version); check again with fresh data
