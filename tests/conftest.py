"""Pytest configuration and fixtures"""
import dataclasses
from typing import Optional

import pytest

from config.settings import Settings
from modules.invoicing.client import SumitClient
from modules.payment.gateways.pelecard import PelecardGateway
from modules.payment.service import PaymentService
from modules.receipt.store import FileTransactionStore
from tests.fakes import INIT, LOOKUP, SUMMIT, FakeClock, FakeUpstream


@pytest.fixture
def settings(tmp_path):
    return Settings(
        pele_terminal="0962210",
        pele_user="testuser",
        pele_password="secret",
        summit_company_id=12345,
        summit_api_key="summit-key",
        base_url="https://pay.example.org",
        receipts_dir=str(tmp_path / "receipts"),
        convergence_timeout_ms=300,
        convergence_poll_ms=20,
    )


@pytest.fixture
def store(settings):
    return FileTransactionStore(settings.receipts_dir)


@pytest.fixture
def pelecard():
    return FakeUpstream({
        INIT: {"URL": "https://gateway21.pelecard.biz/PaymentGW?transactionId=abc-123", "Error": {"ErrCode": 0}},
        LOOKUP: {"StatusCode": "501", "ErrorMessage": "Transaction not found"},
    })


@pytest.fixture
def summit():
    return FakeUpstream({
        SUMMIT: {"Status": 0, "Data": {"DocumentID": 991, "DocumentDownloadURL": "https://x/doc"}},
    })


@pytest.fixture
def make_service(settings, store, pelecard, summit):
    def _make(clock: Optional[FakeClock] = None, **overrides) -> PaymentService:
        cfg = dataclasses.replace(settings, **overrides) if overrides else settings
        kwargs = {}
        if clock is not None:
            kwargs = {"sleep": clock.sleep, "clock": clock}
        return PaymentService(
            settings=cfg,
            store=store,
            gateway=PelecardGateway(cfg, transport=pelecard.transport),
            invoicing=SumitClient(cfg, transport=summit.transport),
            **kwargs,
        )
    return _make


@pytest.fixture
def service(make_service):
    return make_service()
