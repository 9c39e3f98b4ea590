"""Tests for audit logging."""
import pytest

from catalog.models.log import Log
from catalog.services import log_service
from catalog.services.log_service import LogLevel, LogService


@pytest.fixture
def logs(db_session, context):
    return LogService(db_session, context)


def stored(db_session):
    return db_session.query(Log).all()


def test_save_log(logs, db_session):
    logs.save_log("product-manager", "Product: <b>Lamp</b> created", LogLevel.INFO)

    rows = stored(db_session)
    assert len(rows) == 1
    assert rows[0].name == "product-manager"
    assert rows[0].message == "Product: &lt;b&gt;Lamp&lt;/b&gt; created"
    assert rows[0].level == 4
    assert rows[0].status == "UNREAD"
    assert rows[0].user_agent == "cli"
    assert rows[0].request_uri == "pytest"


def test_connection_refused_is_not_stored(logs, db_session):
    logs.save_log("exchange-rate", "Connection refused by upstream", LogLevel.CRITICAL)

    assert stored(db_session) == []


def test_level_threshold(logs, db_session, monkeypatch):
    monkeypatch.setattr(log_service.settings, "LOG_LEVEL", int(LogLevel.WARNING))

    logs.save_log("product-manager", "info message", LogLevel.INFO)
    logs.save_log("product-manager", "warning message", LogLevel.WARNING)

    assert [row.message for row in stored(db_session)] == ["warning message"]


def test_database_logging_disabled(logs, db_session, monkeypatch):
    monkeypatch.setattr(log_service.settings, "DATABASE_LOGGING", False)

    logs.save_log("product-manager", "not stored", LogLevel.CRITICAL)

    assert stored(db_session) == []


def test_default_context(db_session):
    LogService(db_session).save_log("product-manager", "anonymous")

    row = stored(db_session)[0]
    assert row.ip_address == "Unknown"
    assert row.user_id == 0

