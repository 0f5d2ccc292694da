# tests/test_session.py
import asyncio
import logging

import pytest

from pos.config import Settings
from pos.errors import PaymentValidationError
from pos.logger import setup_logger


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("POS_BACKEND_URL", "https://example.test/")
    monkeypatch.setenv("POS_BACKEND_KEY", "anon-key")
    monkeypatch.setenv("POS_TIMEOUT", "none")
    monkeypatch.setenv("POS_DEFAULT_CUSTOMER", "Umum")
    cfg = Settings()
    assert cfg.backend_url == "https://example.test"
    assert cfg.backend_key == "anon-key"
    assert cfg.timeout is None
    assert cfg.default_customer == "Umum"
    assert cfg.image_bucket == "product-images"


def test_setup_logger_is_idempotent(tmp_path, monkeypatch):
    monkeypatch.setenv("POS_LOG_DIR", str(tmp_path / "logs"))
    logger = logging.getLogger("pos")
    saved = list(logger.handlers)
    for h in saved:
        logger.removeHandler(h)
    try:
        cfg = Settings()
        first = setup_logger(cfg, console=False)
        second = setup_logger(cfg, console=False)
        assert first is second
        assert len(first.handlers) == 1
        assert (tmp_path / "logs" / "pos.log").exists()
    finally:
        for h in list(logger.handlers):
            h.close()
            logger.removeHandler(h)
        for h in saved:
            logger.addHandler(h)


def test_save_product_reconciles_cart(seed, make_session):
    pos, _ = make_session()
    oli_id = seed["products"]["OLI-1"]["id"]

    async def scenario():
        await pos.load()
        pos.cart.add_item(pos.catalog.get(oli_id))
        pos.cart.set_quantity(oli_id, 4)
        data = pos.catalog.get(oli_id).model_dump()
        notices = await pos.save_product({**data, "stock": 2}, oli_id)
        await pos.close()
        return notices

    notices = asyncio.run(scenario())
    assert len(notices) == 1
    assert pos.cart.get(oli_id).quantity == 2


def test_deactivate_removes_product_from_cart(seed, make_session):
    pos, _ = make_session()
    ban_id = seed["products"]["BAN-1"]["id"]

    async def scenario():
        await pos.load()
        pos.cart.add_item(pos.catalog.get(ban_id))
        notices = await pos.deactivate_product(ban_id)
        await pos.close()
        return notices

    notices = asyncio.run(scenario())
    assert [n.product_id for n in notices] == [ban_id]
    assert pos.cart.size() == 0


def test_api_key_headers_are_sent(make_session, monkeypatch, api):
    monkeypatch.setenv("POS_BACKEND_KEY", "secret")
    pos, transport = make_session()

    async def scenario():
        await pos.catalog.refresh()
        await pos.close()

    asyncio.run(scenario())
    assert transport.requests
    for request in transport.requests:
        assert request.headers["apikey"] == "secret"
        assert request.headers["authorization"] == "Bearer secret"


def test_negative_amount_paid_is_a_payment_error(make_session):
    pos, transport = make_session()
    with pytest.raises(PaymentValidationError):
        pos.payment(amount=-5)
    payment = pos.payment(amount=20000, customer_name="Budi")
    assert payment.method == "Tunai"
    assert payment.amount == 20000
    asyncio.run(pos.close())
    assert transport.requests == []


def test_timeout_only_none_disables(monkeypatch):
    monkeypatch.setenv("POS_TIMEOUT", "2.5")
    assert Settings().timeout == 2.5
    monkeypatch.setenv("POS_TIMEOUT", "0")
    assert Settings().timeout == 0.0
    monkeypatch.setenv("POS_TIMEOUT", "None")
    assert Settings().timeout is None
