# tests/test_http_client.py
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import json
import asyncio
import pytest
from aioresponses import aioresponses, CallbackResult

from infra import HttpClientRegistry
from infra.http_client import HttpClient, HttpError

BASE = "https://api.testnet.merkle.trade"
POS_PATH = "/v1/indexer/trading/position/0xlead"


@pytest.mark.asyncio
async def test_get_json_returns_decoded_list(http_client: HttpClient):
    with aioresponses() as m:
        m.get(f"{BASE}{POS_PATH}", payload=[{"pairType": "BTC_USD", "size": "500000000"}])
        resp = await http_client.get_json(POS_PATH)
        assert resp[0]["size"] == "500000000"


@pytest.mark.asyncio
async def test_get_json_with_query_params(http_client: HttpClient):
    with aioresponses() as m:
        m.get(f"{BASE}/v1/indexer/trading/account/0xlead?limit=10", payload={"totalValue": "1000"})
        resp = await http_client.get_json("/v1/indexer/trading/account/0xlead", params={"limit": 10})
        assert resp == {"totalValue": "1000"}


@pytest.mark.asyncio
async def test_post_json_sends_compact_body(http_client: HttpClient):
    """The view call body is serialized compactly with a JSON content type."""
    body = {"function": "0xmod::vault::get_vault_balance", "type_arguments": [], "arguments": ["7", "0xmod"]}

    def _assert_post(url, **kwargs):
        assert kwargs["data"] == json.dumps(body, separators=(",", ":"))
        assert kwargs["headers"]["Content-Type"] == "application/json"
        return CallbackResult(status=200, payload=["1234"], headers={"Content-Type": "application/json"})

    with aioresponses() as m:
        m.post(f"{BASE}/v1/view", callback=_assert_post)
        resp = await http_client.post_json("/v1/view", body)
        assert resp == ["1234"]


@pytest.mark.asyncio
async def test_retry_on_429_and_5xx(http_client: HttpClient, monkeypatch):
    """429 then 500, third attempt succeeds."""
    monkeypatch.setattr(http_client, "_sleep_backoff", lambda attempt: asyncio.sleep(0))

    calls = {"n": 0}
    def _flaky(url, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            return CallbackResult(status=429, payload={"message": "rate limit"})
        if calls["n"] == 2:
            return CallbackResult(status=500, payload={"message": "server error"})
        return CallbackResult(status=200, payload=[], headers={"Content-Type": "application/json"})

    with aioresponses() as m:
        m.get(f"{BASE}{POS_PATH}", callback=_flaky, repeat=True)
        resp = await http_client.get_json(POS_PATH)
        assert resp == []
        assert calls["n"] == 3


@pytest.mark.asyncio
async def test_client_error_is_not_retried_and_keeps_payload(http_client: HttpClient):
    calls = {"n": 0}
    def _not_found(url, **kwargs):
        calls["n"] += 1
        return CallbackResult(status=404, payload={"error_code": "account_not_found", "message": "no account"})

    with aioresponses() as m:
        m.post(f"{BASE}/v1/view", callback=_not_found, repeat=True)
        with pytest.raises(HttpError) as ei:
            await http_client.post_json("/v1/view", {"function": "x"})
        assert ei.value.status == 404
        assert ei.value.payload["error_code"] == "account_not_found"
        assert calls["n"] == 1


@pytest.mark.asyncio
async def test_http_error_status_raises_after_retries(http_client: HttpClient, monkeypatch):
    monkeypatch.setattr(http_client, "_sleep_backoff", lambda attempt: asyncio.sleep(0))
    with aioresponses() as m:
        m.get(f"{BASE}{POS_PATH}", status=503, body="svc unavailable", repeat=True)
        with pytest.raises(HttpError) as ei:
            await http_client.get_json(POS_PATH)
        assert ei.value.status >= 500
        assert ei.value.payload == {"raw": "svc unavailable"}


@pytest.mark.asyncio
async def test_invalid_json_raises(http_client: HttpClient):
    with aioresponses() as m:
        m.get(f"{BASE}{POS_PATH}", status=200, body="<html>oops</html>")
        with pytest.raises(HttpError) as ei:
            await http_client.get_json(POS_PATH)
        assert "invalid json" in str(ei.value)


@pytest.mark.asyncio
async def test_registry_reuses_clients_by_name():
    reg = HttpClientRegistry()
    a = reg.add("merkle", BASE)
    assert reg.add("merkle", "https://elsewhere") is a
    assert reg.get("merkle").base_url == BASE
    await reg.close_all()
    with pytest.raises(KeyError):
        reg.get("merkle")
