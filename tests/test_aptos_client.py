"""Tests for the Aptos fullnode client."""

import httpx
import pytest

from ledger_indexer.ledger.clients.aptos_client import (
    NETWORK_RPC_URLS,
    AptosLedgerClient,
    resolve_rpc_url,
)
from ledger_indexer.ledger.clients.base import (
    LedgerAPIError,
    LedgerAuthenticationError,
    LedgerConnectionError,
    LedgerRateLimitError,
    LedgerResponseError,
)
from ledger_indexer.ledger.rotator import CredentialRotator

RPC = "https://fullnode.test/v1"


def make_client(handler, rotator=None):
    return AptosLedgerClient(
        RPC, rotator=rotator, transport=httpx.MockTransport(handler)
    )


def tx_json(version, **overrides):
    data = {
        "version": str(version),
        "hash": f"0x{version:x}",
        "success": True,
        "type": "user_transaction",
        "sender": "0xs",
        "timestamp": "1700000000000000",
        "events": [],
    }
    data.update(overrides)
    return data


class TestRequests:
    @pytest.mark.asyncio
    async def test_latest_version(self):
        client = make_client(
            lambda request: httpx.Response(200, json={"ledger_version": "123456"})
        )

        assert await client.get_latest_version() == 123456
        await client.aclose()

    @pytest.mark.asyncio
    async def test_fetch_transactions_params_and_order(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[tx_json(11), tx_json(10)])

        client = make_client(handler)
        transactions = await client.fetch_transactions(10, 2)

        assert [tx.version for tx in transactions] == [10, 11]
        assert seen[0].url.path == "/v1/transactions"
        assert seen[0].url.params["start"] == "10"
        assert seen[0].url.params["limit"] == "2"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_rotated_bearer_credential(self):
        auth = []

        def handler(request):
            auth.append(request.headers.get("authorization"))
            return httpx.Response(200, json={"ledger_version": "1"})

        rotator = CredentialRotator({"aptos": ["k1", "k2"]}, min_delay=0)
        client = make_client(handler, rotator=rotator)
        await client.get_latest_version()
        await client.get_latest_version()

        assert auth == ["Bearer k1", "Bearer k2"]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_unauthenticated_without_credentials(self):
        auth = []

        def handler(request):
            auth.append(request.headers.get("authorization"))
            return httpx.Response(200, json={"ledger_version": "1"})

        client = make_client(handler, rotator=CredentialRotator({"aptos": []}))
        await client.get_latest_version()

        assert auth == [None]
        await client.aclose()


class TestErrorMapping:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status_code,error",
        [
            (429, LedgerRateLimitError),
            (401, LedgerAuthenticationError),
            (403, LedgerAuthenticationError),
            (500, LedgerResponseError),
            (404, LedgerResponseError),
        ],
    )
    async def test_status_codes(self, status_code, error):
        client = make_client(lambda request: httpx.Response(status_code, text="no"))

        with pytest.raises(error) as exc_info:
            await client.get_latest_version()

        assert isinstance(exc_info.value, LedgerAPIError)
        assert exc_info.value.status_code == status_code
        await client.aclose()

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        client = make_client(handler)

        with pytest.raises(LedgerConnectionError):
            await client.fetch_transactions(1, 10)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_malformed_json(self):
        client = make_client(lambda request: httpx.Response(200, content=b"{not json"))

        with pytest.raises(LedgerResponseError):
            await client.get_latest_version()
        await client.aclose()

    @pytest.mark.asyncio
    async def test_missing_ledger_version(self):
        client = make_client(lambda request: httpx.Response(200, json={"chain_id": 2}))

        with pytest.raises(LedgerResponseError):
            await client.get_latest_version()
        await client.aclose()

    @pytest.mark.asyncio
    async def test_transaction_page_not_a_list(self):
        client = make_client(lambda request: httpx.Response(200, json={"oops": 1}))

        with pytest.raises(LedgerResponseError):
            await client.fetch_transactions(1, 10)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_transaction_without_version(self):
        client = make_client(
            lambda request: httpx.Response(200, json=[{"hash": "0x1"}])
        )

        with pytest.raises(LedgerResponseError):
            await client.fetch_transactions(1, 10)
        await client.aclose()


class TestNetworkPresets:
    def test_known_network(self):
        assert resolve_rpc_url("mainnet") == NETWORK_RPC_URLS["mainnet"]

    def test_unknown_network_falls_back_to_testnet(self):
        assert resolve_rpc_url("moonnet") == NETWORK_RPC_URLS["testnet"]

    def test_override_wins(self):
        assert resolve_rpc_url("mainnet", "http://localhost:8080/v1/") == (
            "http://localhost:8080/v1"
        )
