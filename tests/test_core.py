import json
import logging
import sys

import pytest

from settlement.core.config import make_async_db_url, make_sync_db_url
from settlement.core.logging import JsonFormatter, error_extra, setup_logging
from settlement.core.time import format_cents
from settlement.services.errors import CouponNotFound


def test_make_async_db_url():
    assert make_async_db_url("postgres://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"
    assert make_async_db_url("postgresql://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"
    assert make_async_db_url("postgresql+asyncpg://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"
    assert make_async_db_url("sqlite:///x.db") == "sqlite+aiosqlite:///x.db"
    with pytest.raises(RuntimeError):
        make_async_db_url("mysql://u@h/db")


def test_make_sync_db_url():
    assert make_sync_db_url("postgresql+asyncpg://u:p@h/db") == "postgresql://u:p@h/db"
    assert make_sync_db_url("postgres://u:p@h/db") == "postgresql://u:p@h/db"
    assert make_sync_db_url("sqlite+aiosqlite:///x.db") == "sqlite:///x.db"


def test_format_cents():
    assert format_cents(35000) == "350.00"
    assert format_cents(7) == "0.07"
    assert format_cents(None) == "0.00"
    assert format_cents(-150) == "-1.50"


def test_json_formatter_includes_context():
    record = logging.LogRecord("settlement.test", logging.INFO, __file__, 1, "coupon_redeemed coupon_id=%s", (3,), None)
    record.coupon_id = 3
    record.customer_id = 9
    payload = json.loads(JsonFormatter().format(record))
    assert payload["msg"] == "coupon_redeemed coupon_id=3"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "settlement.test"
    assert payload["coupon_id"] == 3
    assert payload["customer_id"] == 9
    assert "exc" not in payload


def test_json_formatter_exception():
    try:
        raise ValueError("boom")
    except ValueError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
    payload = json.loads(JsonFormatter().format(record))
    assert "ValueError: boom" in payload["exc"]


def test_json_formatter_skips_unset_context():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "plain", (), None)
    record.partner_id = None
    payload = json.loads(JsonFormatter().format(record))
    assert "partner_id" not in payload
    assert payload["service"] == "booking-settlement"


def test_error_extra_carries_code_and_ids():
    extra = error_extra(CouponNotFound(), customer_id=4, coupon_id=None)
    assert extra == {"customer_id": 4, "error_code": "coupon_not_found"}
    assert error_extra(ValueError("x"))["error_code"] == "ValueError"


def test_setup_logging_bad_level_falls_back_to_info(monkeypatch):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    monkeypatch.setenv("LOG_LEVEL", "chatty")
    try:
        setup_logging()
        assert root.level == logging.INFO
        assert logging.getLogger("aiosqlite").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


def test_setup_logging_installs_json_handler(monkeypatch):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    monkeypatch.setenv("LOG_LEVEL", "debug")
    try:
        setup_logging()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


async def test_bootstrap_wires_engine():
    from settlement.db.session import dispose_engine
    from settlement.engine import SettlementEngine, bootstrap

    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        engine = bootstrap()
        assert isinstance(engine, SettlementEngine)
    finally:
        await dispose_engine()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


async def test_session_scope_rolls_back_on_error(sessionmaker, seed, count_rows):
    from settlement import repo
    from settlement.db.models import ServiceOffering
    from settlement.db.session import session_scope

    with pytest.raises(RuntimeError):
        async with session_scope(sessionmaker) as s:
            await repo.create_service(s, name="Pop-up clean", price=5000)
            raise RuntimeError("boom")
    assert await count_rows(ServiceOffering) == 2


async def test_session_scope_requires_engine():
    from settlement.db.session import session_scope

    with pytest.raises(RuntimeError):
        async with session_scope():
            pass
