"""
Lending book composition root
"""

from datetime import date
from typing import Callable, Optional

from .storage import StorageInterface, InMemoryStorage, SQLiteStorage
from .installments import InstallmentLedger
from .loans import LoanManager
from .clients import ClientManager
from .delinquency import DelinquencyAccrualEngine, OverdueInterestPolicy
from .payments import PaymentRecorder
from .portfolio import PortfolioAggregator
from .scheduler import DailyAccrualScheduler
from .config import LendingBookConfig, get_config


class LendingBook:
    """Lending book with all components initialized"""

    def __init__(
        self,
        storage: StorageInterface,
        policy: Optional[OverdueInterestPolicy] = None,
        clock: Callable[[], date] = date.today,
        upcoming_window_days: int = 7
    ):
        self.storage = storage
        self.clock = clock

        self.ledger = InstallmentLedger(self.storage)
        self.loan_manager = LoanManager(self.storage, self.ledger, clock=clock)
        self.client_manager = ClientManager(self.storage, self.loan_manager)
        self.accrual_engine = DelinquencyAccrualEngine(self.ledger, self.loan_manager, policy)
        self.payment_recorder = PaymentRecorder(self.ledger, self.loan_manager, clock=clock)
        self.portfolio = PortfolioAggregator(
            self.ledger, self.loan_manager, self.client_manager,
            upcoming_window_days=upcoming_window_days
        )
        self.scheduler: Optional[DailyAccrualScheduler] = None

    @classmethod
    def from_config(cls, config: Optional[LendingBookConfig] = None) -> 'LendingBook':
        """Build the lending book and its scheduler from configuration"""
        config = config or get_config()

        if config.use_sqlite:
            storage = SQLiteStorage(config.database_path)
        else:
            storage = InMemoryStorage()

        book = cls(
            storage,
            policy=OverdueInterestPolicy.from_config(config),
            upcoming_window_days=config.upcoming_window_days
        )
        if config.scheduler_enabled:
            book.scheduler = DailyAccrualScheduler(
                book.accrual_engine,
                hour=config.accrual_hour,
                minute=config.accrual_minute,
                run_on_start=config.accrual_run_on_start
            )
        return book

    def start(self) -> None:
        if self.scheduler:
            self.scheduler.start()

    def close(self) -> None:
        if self.scheduler:
            self.scheduler.stop()
        self.storage.close()
