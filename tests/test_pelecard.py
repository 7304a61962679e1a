"""Tests for the Pelecard gateway client"""
import httpx
import pytest

from modules.payment.gateways import GatewayInitRequest
from modules.payment.gateways.pelecard import PelecardGateway
from tests.fakes import INIT, LOOKUP, FakeUpstream


def _request(**kwargs):
    defaults = dict(
        reg_id="R1",
        good_url="https://pay.example.org/callback?Status=approved&RegID=R1",
        error_url="https://pay.example.org/callback?Status=failed&RegID=R1",
        server_callback_url="https://pay.example.org/pelecard-callback",
    )
    defaults.update(kwargs)
    return GatewayInitRequest(**defaults)


def test_open_amount_payload(settings):
    payload = PelecardGateway(settings).build_init_payload(_request())
    assert payload == {
        "terminal": "0962210",
        "user": "testuser",
        "password": "secret",
        "ActionType": "J4",
        "Currency": "1",
        "ShopNo": "001",
        "GoodURL": "https://pay.example.org/callback?Status=approved&RegID=R1",
        "ErrorURL": "https://pay.example.org/callback?Status=failed&RegID=R1",
        "ParamX": "R1",
        "FreeTotal": "True",
        "Total": 0,
        "ServerSideGoodFeedbackURL": "https://pay.example.org/pelecard-callback",
        "ServerSideErrorFeedbackURL": "https://pay.example.org/pelecard-callback",
        "MaxPayments": "10",
        "MinPayments": "1",
    }


def test_fixed_amount_payload(settings):
    payload = PelecardGateway(settings).build_init_payload(_request(amount_minor=12050))
    assert payload["FreeTotal"] == "False"
    assert payload["Total"] == 12050


def test_card_registration_payload(settings):
    payload = PelecardGateway(settings).build_init_payload(_request(
        server_callback_url=None, action_type="J2", amount_minor=0,
        create_token=True, feedback_method="GET",
    ))
    assert payload["ActionType"] == "J2"
    assert payload["CreateToken"] == "True"
    assert payload["FeedbackDataTransferMethod"] == "GET"
    assert "ServerSideGoodFeedbackURL" not in payload
    assert "MaxPayments" not in payload
    assert "FreeTotal" not in payload
    assert payload["Total"] == 0


@pytest.mark.asyncio
async def test_init_success(settings, pelecard):
    gw = PelecardGateway(settings, transport=pelecard.transport)
    result = await gw.init_payment(_request())
    assert result.success is True
    assert result.redirect_url == "https://gateway21.pelecard.biz/PaymentGW?transactionId=abc-123"
    assert pelecard.calls(INIT)[0]["ParamX"] == "R1"
    await gw.aclose()


@pytest.mark.asyncio
async def test_init_without_url_surfaces_raw_payload(settings):
    upstream = FakeUpstream({INIT: {"URL": "", "Error": {"ErrCode": 301, "ErrMsg": "bad terminal"}}})
    result = await PelecardGateway(settings, transport=upstream.transport).init_payment(_request())
    assert result.success is False
    assert "bad terminal" in result.error_message
    assert result.raw["Error"]["ErrCode"] == 301


@pytest.mark.asyncio
@pytest.mark.parametrize("reply", [httpx.ConnectError("refused"), httpx.ConnectTimeout("slow"), "not json"])
async def test_init_transport_failure(settings, reply):
    upstream = FakeUpstream({INIT: (lambda body: reply)})
    result = await PelecardGateway(settings, transport=upstream.transport).init_payment(_request())
    assert result.success is False
    assert result.error_message


@pytest.mark.asyncio
async def test_lookup_returns_result_data(settings):
    upstream = FakeUpstream({LOOKUP: {
        "StatusCode": "000",
        "ResultData": {"TransactionId": "T1", "ShvaResult": "000", "DebitTotal": "9900"},
    }})
    result = await PelecardGateway(settings, transport=upstream.transport).get_transaction("T1")
    assert result.success is True
    assert result.data["DebitTotal"] == "9900"
    assert upstream.calls(LOOKUP) == [{
        "terminal": "0962210", "user": "testuser", "password": "secret", "TransactionId": "T1",
    }]


@pytest.mark.asyncio
@pytest.mark.parametrize("reply", [
    {"StatusCode": "501", "ErrorMessage": "Transaction not found"},
    {"StatusCode": "000", "ResultData": None},
    httpx.ConnectError("refused"),
    "garbage",
])
async def test_lookup_failures(settings, reply):
    upstream = FakeUpstream({LOOKUP: (lambda body: reply)})
    result = await PelecardGateway(settings, transport=upstream.transport).get_transaction("T1")
    assert result.success is False
    assert result.data == {}
