"""
Tests for configuration loading and structured logging
"""

import json
import logging
import pytest
from decimal import Decimal

from lending_book import config as config_module
from lending_book.config import LendingBookConfig, get_config, reload_config
from lending_book.delinquency import OverdueInterestModel, OverdueInterestPolicy
from lending_book.logging_config import JSONFormatter, get_logger, log_action, setup_logging


@pytest.fixture
def restore_config():
    original = config_module.config
    yield
    config_module.config = original


@pytest.fixture
def app_logger():
    """Restore the application logger after setup_logging reconfigures it"""
    logger = logging.getLogger("lending_book")
    handlers, level, propagate = logger.handlers[:], logger.level, logger.propagate
    yield logger
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = propagate


class TestConfig:
    """Test environment-driven configuration"""

    def test_defaults(self):
        cfg = LendingBookConfig()
        assert cfg.overdue_interest_model == "flat_daily"
        assert cfg.daily_overdue_rate == "0.001"
        assert cfg.accrual_hour == 6
        assert cfg.upcoming_window_days == 7

    def test_environment_overrides(self, monkeypatch, restore_config):
        monkeypatch.setenv("LENDING_API_PORT", "9100")
        monkeypatch.setenv("LENDING_OVERDUE_INTEREST_MODEL", "monthly_prorated")
        monkeypatch.setenv("LENDING_SCHEDULER_ENABLED", "false")

        cfg = reload_config()

        assert cfg.api_port == 9100
        assert cfg.overdue_interest_model == "monthly_prorated"
        assert cfg.scheduler_enabled is False
        assert get_config() is cfg

    def test_policy_from_config(self):
        cfg = LendingBookConfig(overdue_interest_model="monthly_prorated", monthly_overdue_rate="0.06")
        policy = OverdueInterestPolicy.from_config(cfg)

        assert policy.model == OverdueInterestModel.MONTHLY_PRORATED
        assert policy.monthly_rate == Decimal('0.06')
        assert policy.surcharge(Decimal('3000'), 10) == Decimal('60.00')


class TestLogging:
    """Test JSON formatter and structured action logging"""

    def test_json_formatter(self):
        record = logging.makeLogRecord({
            "name": "lending_book.delinquency",
            "levelname": "INFO",
            "msg": "Accrual run finished",
            "action": "accrual_run",
            "extra": {"updated": 2}
        })
        entry = json.loads(JSONFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "lending_book.delinquency"
        assert entry["message"] == "Accrual run finished"
        assert entry["action"] == "accrual_run"
        assert entry["extra"] == {"updated": 2}

    def test_log_action_writes_structured_line(self, tmp_path, app_logger):
        log_file = tmp_path / "lending.log"
        setup_logging("INFO", log_file=str(log_file))

        log_action(
            get_logger("lending_book.payments"), "info", "Installment paid",
            action="pay_installment", resource="installment:abc",
            extra={"total_amount": "50500.00"}
        )
        for handler in app_logger.handlers:
            handler.flush()

        entry = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert entry["logger"] == "lending_book.payments"
        assert entry["action"] == "pay_installment"
        assert entry["resource"] == "installment:abc"
        assert entry["extra"] == {"total_amount": "50500.00"}

    def test_log_action_respects_level(self, tmp_path, app_logger):
        log_file = tmp_path / "lending.log"
        setup_logging("WARNING", log_file=str(log_file))

        log_action(get_logger("lending_book.loans"), "info", "Loan created")
        for handler in app_logger.handlers:
            handler.flush()

        assert log_file.read_text() == ""

    def test_text_format(self, tmp_path, app_logger):
        log_file = tmp_path / "lending.log"
        setup_logging("INFO", log_format="text", log_file=str(log_file))

        get_logger("lending_book.scheduler").info("Accrual scheduler started")
        for handler in app_logger.handlers:
            handler.flush()

        assert "INFO [lending_book.scheduler] Accrual scheduler started" in log_file.read_text()
