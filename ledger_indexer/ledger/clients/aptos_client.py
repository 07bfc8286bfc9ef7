"""
Aptos fullnode REST client.

Reads the ledger tip and pages of committed transactions. Every request
carries a bearer credential drawn from the shared rotator when one is
configured.
"""

from typing import Any, Dict, List, Optional

import httpx
import structlog
from pydantic import ValidationError

from ledger_indexer.ledger.clients.base import (
    BaseLedgerClient,
    LedgerAuthenticationError,
    LedgerConnectionError,
    LedgerRateLimitError,
    LedgerResponseError,
    LedgerTransaction,
)
from ledger_indexer.ledger.rotator import CredentialRotator

logger = structlog.get_logger()

NETWORK_RPC_URLS = {
    "mainnet": "https://fullnode.mainnet.aptoslabs.com/v1",
    "testnet": "https://fullnode.testnet.aptoslabs.com/v1",
    "devnet": "https://fullnode.devnet.aptoslabs.com/v1",
}


def resolve_rpc_url(network: str, override: Optional[str] = None) -> str:
    """Pick the fullnode URL for a network preset unless explicitly overridden."""
    if override:
        return override.rstrip("/")
    return NETWORK_RPC_URLS.get(network, NETWORK_RPC_URLS["testnet"])


class AptosLedgerClient(BaseLedgerClient):
    """Ledger client for the Aptos fullnode REST API (``/v1``)."""

    def __init__(
        self,
        rpc_url: str,
        rotator: Optional[CredentialRotator] = None,
        credential_pool: str = "aptos",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            rpc_url: Fullnode base URL, e.g. https://fullnode.testnet.aptoslabs.com/v1
            rotator: Credential rotator (optional)
            credential_pool: Pool name to draw credentials from
            timeout: Per-request timeout in seconds
            transport: Custom httpx transport (tests)
        """
        super().__init__(rotator, credential_pool, timeout)
        self.rpc_url = rpc_url.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    def get_source_name(self) -> str:
        return "aptos"

    async def get_latest_version(self) -> int:
        payload = await self._get(self.rpc_url)
        if not isinstance(payload, dict) or "ledger_version" not in payload:
            raise LedgerResponseError("Ledger info missing 'ledger_version'")
        try:
            return int(payload["ledger_version"])
        except (TypeError, ValueError):
            raise LedgerResponseError(
                f"Invalid ledger_version: {payload['ledger_version']!r}"
            )

    async def fetch_transactions(
        self, start: int, limit: int = 100
    ) -> List[LedgerTransaction]:
        payload = await self._get(
            f"{self.rpc_url}/transactions",
            params={"start": start, "limit": limit},
        )
        if not isinstance(payload, list):
            raise LedgerResponseError("Expected a list of transactions")

        try:
            transactions = [LedgerTransaction.model_validate(raw) for raw in payload]
        except ValidationError as e:
            raise LedgerResponseError(f"Malformed transaction page: {e}") from e
        transactions.sort(key=lambda tx: tx.version)
        return transactions

    async def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        headers = {"Accept": "application/json"}
        credential = await self.acquire_credential()
        if credential:
            headers["Authorization"] = f"Bearer {credential}"
        else:
            logger.debug("ledger.unauthenticated_request", url=url)

        try:
            response = await self._client.get(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise LedgerConnectionError(f"Ledger request failed: {e}") from e

        if response.status_code == 429:
            raise LedgerRateLimitError("Ledger rate limit exceeded", 429)
        if response.status_code in (401, 403):
            raise LedgerAuthenticationError(
                "Ledger rejected credential", response.status_code
            )
        if not response.is_success:
            raise LedgerResponseError(
                f"RPC error: status={response.status_code}, body={response.text[:200]}",
                response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise LedgerResponseError(f"Undecodable ledger response: {e}") from e

    async def aclose(self) -> None:
        await self._client.aclose()

