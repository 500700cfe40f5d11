"""
Test suite for loans and installment ledger

Tests loan creation, schedule materialization, the loan status state machine
and ledger queries.
"""

import pytest
from decimal import Decimal
from datetime import date

from lending_book.storage import InMemoryStorage
from lending_book.system import LendingBook
from lending_book.installments import InstallmentStatus
from lending_book.loans import LoanEvent, LoanStatus, transition
from lending_book.exceptions import (
    InvalidInputError, InvalidTransitionError, NotFoundError
)


class TestLoanStateMachine:
    """Test explicit loan status transitions"""

    def test_active_to_paid(self):
        assert transition(LoanStatus.ACTIVE, LoanEvent.ALL_INSTALLMENTS_PAID) == LoanStatus.PAID

    @pytest.mark.parametrize("status", [LoanStatus.PAID, LoanStatus.DEFAULTED])
    def test_no_rule_raises(self, status):
        """Pairs without a rule are rejected"""
        with pytest.raises(InvalidTransitionError):
            transition(status, LoanEvent.ALL_INSTALLMENTS_PAID)


class TestLoanCreation:
    """Test loan creation and schedule materialization"""

    def setup_method(self):
        """Set up test fixtures"""
        self.storage = InMemoryStorage()
        self.book = LendingBook(self.storage, clock=lambda: date(2024, 1, 15))
        self.client = self.book.client_manager.create_client("Ana", "Silva", "DOC-1")

    def test_create_loan(self):
        """Loan stores the computed terms and starts ACTIVE"""
        overview = self.book.loan_manager.create_loan(
            self.client.id, Decimal('1000000'), Decimal('24'), 12, date(2024, 1, 15)
        )
        loan = overview.loan

        assert loan.status == LoanStatus.ACTIVE
        assert loan.version == 0
        assert loan.installment_amount == Decimal('94559.60')
        assert loan.total_amount == Decimal('1134715.20')
        assert loan.total_interest == Decimal('134715.20')
        assert loan.end_date == date(2025, 1, 15)

        stored = self.book.loan_manager.get_loan(loan.id)
        assert stored == loan

    def test_installments_materialized(self):
        """One PENDING installment per period, in due-date order"""
        overview = self.book.loan_manager.create_loan(
            self.client.id, Decimal('1000000'), Decimal('24'), 12, date(2024, 1, 15)
        )
        installments = self.book.ledger.find_by_loan(overview.loan.id)

        assert len(installments) == 12
        assert [i.number for i in installments] == list(range(1, 13))
        assert all(i.status == InstallmentStatus.PENDING for i in installments)
        assert all(i.days_overdue == 0 for i in installments)
        assert all(i.overdue_interest == Decimal('0') for i in installments)
        assert all(i.total_amount == i.amount for i in installments)
        assert all(i.paid_date is None for i in installments)
        assert installments[0].due_date == date(2024, 2, 15)
        assert installments[0].interest_portion == Decimal('20000.00')

    def test_unknown_client(self):
        with pytest.raises(NotFoundError):
            self.book.loan_manager.create_loan(
                "nope", Decimal('1000'), Decimal('10'), 12, date(2024, 1, 15)
            )

    def test_invalid_parameters_write_nothing(self):
        """Rejected parameters leave no loan or installment behind"""
        with pytest.raises(InvalidInputError):
            self.book.loan_manager.create_loan(
                self.client.id, Decimal('-1'), Decimal('10'), 12, date(2024, 1, 15)
            )
        assert self.storage.count("loans") == 0
        assert self.storage.count("installments") == 0

    def test_preview_does_not_persist(self):
        calc = self.book.loan_manager.preview(Decimal('1000000'), Decimal('24'), 12)

        assert calc.installment_amount == Decimal('94559.60')
        assert calc.start_date == date(2024, 1, 15)
        assert self.storage.count("loans") == 0

    def test_loans_for_client_and_listing(self):
        other = self.book.client_manager.create_client("Luis", "Gomez", "DOC-2")
        first = self.book.loan_manager.create_loan(
            self.client.id, Decimal('1000'), Decimal('10'), 3, date(2024, 1, 1)
        )
        self.book.loan_manager.create_loan(
            other.id, Decimal('2000'), Decimal('10'), 3, date(2024, 1, 1)
        )

        assert [l.id for l in self.book.loan_manager.loans_for_client(self.client.id)] == [first.loan.id]
        assert len(self.book.loan_manager.list_loans()) == 2
        assert len(self.book.loan_manager.list_loans(LoanStatus.PAID)) == 0


class TestLoanStatusUpdates:
    """Test compare-and-swap loan transitions and deletion"""

    def setup_method(self):
        """Set up test fixtures"""
        self.book = LendingBook(InMemoryStorage())
        client = self.book.client_manager.create_client("Ana", "Silva", "DOC-1")
        self.loan = self.book.loan_manager.create_loan(
            client.id, Decimal('300000'), Decimal('0'), 3, date(2024, 1, 1)
        ).loan

    def test_apply_event_bumps_version(self):
        assert self.book.loan_manager.apply_event(self.loan, LoanEvent.ALL_INSTALLMENTS_PAID)

        stored = self.book.loan_manager.get_loan(self.loan.id)
        assert stored.status == LoanStatus.PAID
        assert stored.version == 1
        assert self.loan.version == 1

    def test_stale_loan_loses(self):
        """A copy read before another writer's update cannot overwrite it"""
        stale = self.book.loan_manager.get_loan(self.loan.id)
        assert self.book.loan_manager.apply_event(self.loan, LoanEvent.ALL_INSTALLMENTS_PAID)

        assert not self.book.loan_manager.apply_event(stale, LoanEvent.ALL_INSTALLMENTS_PAID)
        assert self.book.loan_manager.get_loan(self.loan.id).version == 1

    def test_cannot_delete_active_loan(self):
        with pytest.raises(InvalidInputError):
            self.book.loan_manager.delete_loan(self.loan.id)

    def test_delete_paid_loan_removes_installments(self):
        self.book.loan_manager.apply_event(self.loan, LoanEvent.ALL_INSTALLMENTS_PAID)
        self.book.loan_manager.delete_loan(self.loan.id)

        assert self.book.loan_manager.get_loan(self.loan.id) is None
        assert self.book.ledger.find_by_loan(self.loan.id) == []

    def test_overview_of_missing_loan(self):
        with pytest.raises(NotFoundError):
            self.book.loan_manager.get_overview("missing")


class TestInstallmentLedger:
    """Test ledger queries and conditional writes"""

    def setup_method(self):
        """Set up test fixtures"""
        self.book = LendingBook(InMemoryStorage())
        client = self.book.client_manager.create_client("Ana", "Silva", "DOC-1")
        self.overview = self.book.loan_manager.create_loan(
            client.id, Decimal('300000'), Decimal('0'), 3, date(2024, 1, 1)
        )
        self.ledger = self.book.ledger

    def test_find_by_status(self):
        first = self.overview.installments[0]
        first.status = InstallmentStatus.OVERDUE
        self.ledger.save(first)

        overdue = self.ledger.find_by_status([InstallmentStatus.OVERDUE])
        assert [i.id for i in overdue] == [first.id]
        assert len(self.ledger.find_outstanding()) == 3
        assert self.ledger.find_by_status([InstallmentStatus.PAID]) == []

    def test_compare_and_swap_on_status(self):
        installment = self.ledger.get(self.overview.installments[0].id)
        installment.status = InstallmentStatus.PAID

        assert self.ledger.compare_and_swap(installment, InstallmentStatus.PENDING)
        assert not self.ledger.compare_and_swap(installment, InstallmentStatus.PENDING)
        assert self.ledger.get(installment.id).status == InstallmentStatus.PAID

    def test_get_missing(self):
        assert self.ledger.get("missing") is None
