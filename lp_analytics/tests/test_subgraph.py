"""
Tests for the GraphQL transport and exchange fetchers, against a mocked HTTP layer
"""
import json

import httpx
import pytest

from lp_analytics.core.errors import ErrorCode, ServiceUnavailableError, SubgraphError
from lp_analytics.core.retry import CircuitBreaker
from lp_analytics.services.subgraph import ExchangeSubgraph, SubgraphClient

URL = "http://subgraph.test/graphql"


class Recorder:
    """Mock transport handler replaying queued responses"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.payloads = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.payloads.append(json.loads(request.content))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, json=response)


def make_client(recorder, **kwargs):
    http = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    return SubgraphClient(URL, client=http, **kwargs)


@pytest.mark.asyncio
async def test_query_returns_data_object():
    recorder = Recorder({"data": {"bundles": [{"celoPrice": "0.5"}]}})
    client = make_client(recorder)

    data = await client.query("{ bundles { celoPrice } }", {"id": 1})

    assert data == {"bundles": [{"celoPrice": "0.5"}]}
    assert recorder.payloads == [{"query": "{ bundles { celoPrice } }", "variables": {"id": 1}}]
    await client.close()


@pytest.mark.asyncio
async def test_http_error_status():
    client = make_client(Recorder(httpx.Response(500, text="boom")))

    with pytest.raises(SubgraphError) as exc_info:
        await client.query("{ x }")

    assert exc_info.value.code == ErrorCode.NETWORK_ERROR
    assert "HTTP 500" in exc_info.value.details


@pytest.mark.asyncio
async def test_graphql_errors_are_not_partial_results():
    client = make_client(Recorder({"data": {"x": 1}, "errors": [{"message": "bad field"}]}))

    with pytest.raises(SubgraphError) as exc_info:
        await client.query("{ x }")

    assert exc_info.value.code == ErrorCode.QUERY_FAILED
    assert "bad field" in exc_info.value.details


@pytest.mark.asyncio
async def test_missing_data_is_an_error():
    client = make_client(Recorder({"data": None}))

    with pytest.raises(SubgraphError):
        await client.query("{ x }")


@pytest.mark.asyncio
async def test_non_json_body_is_an_error():
    client = make_client(Recorder(httpx.Response(200, text="<html>")))

    with pytest.raises(SubgraphError):
        await client.query("{ x }")


@pytest.mark.asyncio
async def test_circuit_breaker_opens_after_threshold():
    recorder = Recorder(httpx.Response(502), httpx.Response(502), {"data": {}})
    breaker = CircuitBreaker(failure_threshold=2, timeout_seconds=60, name="exchange subgraph")
    client = make_client(recorder, breaker=breaker)

    for _ in range(2):
        with pytest.raises(SubgraphError):
            await client.query("{ x }")

    with pytest.raises(ServiceUnavailableError):
        await client.query("{ x }")

    assert len(recorder.payloads) == 2
    assert breaker.state == "open"


@pytest.mark.asyncio
async def test_transport_errors_are_retried():
    request = httpx.Request("POST", URL)
    recorder = Recorder(httpx.ConnectError("refused", request=request), {"data": {"ok": True}})
    client = make_client(recorder, retry_attempts=2)

    assert await client.query("{ ok }") == {"ok": True}
    assert len(recorder.payloads) == 2


@pytest.mark.asyncio
async def test_single_attempt_by_default():
    request = httpx.Request("POST", URL)
    recorder = Recorder(httpx.ConnectError("refused", request=request), {"data": {}})
    client = make_client(recorder)

    with pytest.raises(SubgraphError) as exc_info:
        await client.query("{ x }")

    assert exc_info.value.code == ErrorCode.NETWORK_ERROR
    assert len(recorder.payloads) == 1


class TestExchangeSubgraph:
    @pytest.mark.asyncio
    async def test_snapshots_are_paginated(self):
        records = [{"timestamp": str(i)} for i in range(3)]
        recorder = Recorder(
            {"data": {"liquidityPositionSnapshots": records[:2]}},
            {"data": {"liquidityPositionSnapshots": records[2:]}},
        )
        exchange = ExchangeSubgraph(make_client(recorder), snapshots_page_size=2)

        snapshots = await exchange.get_user_snapshots("0xABC")

        assert snapshots == records
        assert [p["variables"]["skip"] for p in recorder.payloads] == [0, 2]
        assert recorder.payloads[0]["variables"]["user"] == "0xabc"

    @pytest.mark.asyncio
    async def test_principal_is_mints_minus_burns(self):
        recorder = Recorder({"data": {
            "mints": [
                {"amountUSD": "100", "amount0": "10", "amount1": "50"},
                {"amountUSD": "50", "amount0": "5", "amount1": "25"},
            ],
            "burns": [{"amountUSD": "30", "amount0": "3", "amount1": "15"}],
        }})
        exchange = ExchangeSubgraph(make_client(recorder))

        principal = await exchange.get_principal_for_user_per_pair("0xuser", "0xPAIR")

        assert principal.usd == 120
        assert principal.amount0 == 12
        assert principal.amount1 == 60
        assert recorder.payloads[0]["variables"] == {"user": "0xuser", "pair": "0xpair"}

    @pytest.mark.asyncio
    async def test_native_price_without_bundle(self):
        exchange = ExchangeSubgraph(make_client(Recorder({"data": {"bundles": []}})))
        assert await exchange.get_native_price_usd() == 0.0

    @pytest.mark.asyncio
    async def test_unknown_pair(self):
        exchange = ExchangeSubgraph(make_client(Recorder({"data": {"pairs": []}})))
        assert await exchange.get_pair_data("0xpair") is None

    @pytest.mark.asyncio
    async def test_day_data_for_no_pairs_skips_request(self):
        recorder = Recorder()
        exchange = ExchangeSubgraph(make_client(recorder))

        assert await exchange.get_pair_day_datas([], 0) == []
        assert recorder.payloads == []

    @pytest.mark.asyncio
    async def test_day_data_request(self):
        recorder = Recorder({"data": {"pairDayDatas": [{"pairAddress": "0xa", "date": "0"}]}})
        exchange = ExchangeSubgraph(make_client(recorder))

        day_datas = await exchange.get_pair_day_datas(["0xB", "0xa", "0xb"], 99)

        assert day_datas == [{"pairAddress": "0xa", "date": "0"}]
        assert recorder.payloads[0]["variables"]["pairs"] == ["0xa", "0xb"]
        assert recorder.payloads[0]["variables"]["startTimestamp"] == 99
