"""Tests for the Summit invoicing client"""
import httpx
import pytest

from modules.invoicing.client import SumitClient, build_document_payload, unwrap_envelope
from tests.fakes import SUMMIT, FakeUpstream


@pytest.mark.parametrize("body,expected", [
    ({"Data": {"DocumentDownloadURL": "https://x/doc"}}, {"DocumentDownloadURL": "https://x/doc"}),
    ({"DocumentDownloadURL": "https://x/doc"}, {"DocumentDownloadURL": "https://x/doc"}),
    ({"Status": 1, "Data": None, "UserErrorMessage": "bad"}, {"Status": 1, "Data": None, "UserErrorMessage": "bad"}),
    ({"Data": "oops"}, {}),
    ([1, 2], {}),
    (None, {}),
])
def test_unwrap_envelope(body, expected):
    assert unwrap_envelope(body) == expected


def test_document_payload_shape(settings):
    payload = build_document_payload(
        settings, "R1", "T1", 99, 3, "1234",
        customer_name="Dana", customer_email="dana@example.org",
    )
    assert payload["Details"]["Customer"] == {"Name": "Dana", "EmailAddress": "dana@example.org"}
    assert payload["Details"]["SendByEmail"] == {"EmailAddress": "dana@example.org", "Original": True}
    assert payload["Details"]["ExternalReference"] == "R1"
    assert payload["Details"]["Comments"] == "Pelecard T1"
    assert payload["Items"] == [{"Quantity": 1, "UnitPrice": 99, "TotalPrice": 99, "Item": {"Name": "Registration"}}]
    assert payload["Payments"] == [{
        "Amount": 99, "Type": 5,
        "Details_CreditCard": {"Last4Digits": "1234", "Payments": 3},
    }]
    assert payload["VATIncluded"] is True
    assert payload["Credentials"] == {"CompanyID": 12345, "APIKey": "summit-key"}


def test_document_payload_placeholders(settings):
    payload = build_document_payload(settings, "R1", "T1", 10, 1, "")
    assert payload["Details"]["Customer"] == {"Name": "Client", "EmailAddress": "hd@puah.org.il"}


@pytest.mark.asyncio
async def test_create_document_unwraps_data(settings, summit):
    client = SumitClient(settings, transport=summit.transport)
    result = await client.create_document({"Details": {"ExternalReference": "R1"}})
    assert result == {"DocumentID": 991, "DocumentDownloadURL": "https://x/doc"}
    assert summit.calls(SUMMIT) == [{"Details": {"ExternalReference": "R1"}}]
    await client.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize("reply", [
    "<html>502 Bad Gateway</html>",
    httpx.ConnectError("connection refused"),
    httpx.ReadTimeout("timed out"),
    [1, 2, 3],
])
async def test_create_document_never_raises(settings, reply):
    upstream = FakeUpstream({SUMMIT: (lambda body: reply)})
    client = SumitClient(settings, transport=upstream.transport)
    assert await client.create_document({}) == {}


@pytest.mark.asyncio
async def test_create_document_without_url_returns_result(settings):
    upstream = FakeUpstream({SUMMIT: {"Status": 1, "Data": {"DocumentID": None}}})
    client = SumitClient(settings, transport=upstream.transport)
    result = await client.create_document({})
    assert result == {"DocumentID": None}
    assert not result.get("DocumentDownloadURL")
