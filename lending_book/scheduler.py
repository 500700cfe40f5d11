"""
Daily Accrual Scheduler

Background thread that runs the delinquency accrual once a day at a fixed
wall-clock time, with an optional catch-up run when it starts.
"""

from datetime import date, datetime, timedelta
from typing import Callable, Optional
import threading

from .delinquency import AccrualRunResult, DelinquencyAccrualEngine
from .logging_config import get_logger


class DailyAccrualScheduler:
    """
    Runs DelinquencyAccrualEngine.run(today) every day at hour:minute
    """

    def __init__(
        self,
        engine: DelinquencyAccrualEngine,
        hour: int = 6,
        minute: int = 0,
        run_on_start: bool = True,
        now: Callable[[], datetime] = datetime.now
    ):
        if not 0 <= hour <= 23 or not 0 <= minute <= 59:
            raise ValueError(f"Invalid accrual time {hour:02d}:{minute:02d}")

        self.engine = engine
        self.hour = hour
        self.minute = minute
        self.run_on_start = run_on_start
        self.now = now
        self.logger = get_logger("lending_book.scheduler")

        self.last_result: Optional[AccrualRunResult] = None
        self.last_run_date: Optional[date] = None
        self.run_count = 0

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.RLock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def seconds_until_next_run(self, current: datetime) -> float:
        """Seconds from `current` until the next hour:minute tick"""
        target = current.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if target <= current:
            target += timedelta(days=1)
        return (target - current).total_seconds()

    def run_once(self) -> Optional[AccrualRunResult]:
        """Run the accrual for the current day, logging instead of raising on failure"""
        today = self.now().date()
        try:
            result = self.engine.run(today)
        except Exception as e:
            # Retry happens on the next tick
            self.logger.error(f"Scheduled accrual run for {today.isoformat()} failed: {e}",
                              exc_info=True)
            return None

        self.last_result = result
        self.last_run_date = today
        self.run_count += 1
        return result

    def start(self) -> None:
        """Start the scheduler thread (no-op if already running)"""
        with self._lock:
            if self.is_running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._loop, name="accrual-scheduler")
            self._thread.daemon = True
            self._thread.start()
            self.logger.info(
                f"Accrual scheduler started, daily at {self.hour:02d}:{self.minute:02d}"
            )

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the thread to exit and wait for it (no-op if not running)"""
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._stop_event.set()
            thread.join(timeout=timeout)
            self._thread = None
            self.logger.info("Accrual scheduler stopped")

    def _loop(self) -> None:
        if self.run_on_start:
            self.run_once()

        while not self._stop_event.is_set():
            delay = self.seconds_until_next_run(self.now())
            if self._stop_event.wait(delay):
                break
            self.run_once()
