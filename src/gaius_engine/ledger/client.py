"""
Ledger client: the engine's view of an Algorand node.

``LedgerClient`` is the narrow interface the engine depends on.
``AlgodLedgerClient`` implements it against the algod v2 REST API (and,
optionally, an indexer for transactions that have left the node's pending
pool) using ``httpx.AsyncClient``.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx
from algosdk import transaction

from gaius_engine.common.config import GaiusSettings
from gaius_engine.common.exceptions import (
    BroadcastFailedError,
    ConfirmationTimeoutError,
    LedgerUnavailableError,
)

logger = logging.getLogger(__name__)

# algod's default validity window for suggested params
VALIDITY_WINDOW = 1000


@dataclass(frozen=True)
class TransactionParams:
    """Suggested transaction parameters fetched from the node."""

    fee: int
    min_fee: int
    first_round: int
    last_round: int
    genesis_id: str
    genesis_hash: str
    consensus_version: str = ""

    def to_suggested_params(self) -> transaction.SuggestedParams:
        return transaction.SuggestedParams(
            fee=self.fee,
            first=self.first_round,
            last=self.last_round,
            gh=self.genesis_hash,
            gen=self.genesis_id,
            flat_fee=False,
            consensus_version=self.consensus_version or None,
            min_fee=self.min_fee,
        )


@dataclass(frozen=True)
class AssetHolding:
    asset_id: int
    amount: int


@dataclass(frozen=True)
class AssetInfo:
    asset_id: int
    total: int
    decimals: int
    name: str = ""
    unit_name: str = ""
    url: str = ""
    creator: str = ""


@dataclass(frozen=True)
class ConfirmedTransaction:
    """A payment the ledger has finalized."""

    tx_id: str
    confirmed_round: int
    sender: str = ""
    receiver: str = ""
    amount: int = 0


class LedgerClient(Protocol):
    async def get_transaction_params(self) -> TransactionParams: ...

    async def submit_signed_transaction(self, signed_txns: list[bytes]) -> str: ...

    async def wait_for_confirmation(self, tx_id: str, max_rounds: int) -> ConfirmedTransaction: ...

    async def get_transaction(self, tx_id: str) -> Optional[ConfirmedTransaction]: ...

    async def get_account_assets(self, address: str) -> list[AssetHolding]: ...

    async def get_asset_info(self, asset_id: int) -> Optional[AssetInfo]: ...


def _error_message(resp: httpx.Response) -> str:
    try:
        return resp.json().get("message") or resp.text
    except (json.JSONDecodeError, AttributeError):
        return resp.text


class AlgodLedgerClient:
    """Async algod v2 REST client.

    GET requests retry on timeouts, transport errors, 5xx and 429 with
    exponential backoff. Transaction submission is never retried.
    """

    def __init__(
        self,
        algod_url: str,
        token: str = "",
        indexer_url: str = "",
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_backoff_base: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.algod_url = algod_url.rstrip("/")
        self.indexer_url = indexer_url.rstrip("/")
        self.max_retries = max_retries
        self.retry_backoff_base = retry_backoff_base
        headers = {"X-Algo-API-Token": token} if token else {}
        self._http = httpx.AsyncClient(timeout=timeout, headers=headers, transport=transport)

    @classmethod
    def from_settings(cls, settings: GaiusSettings, **kwargs: Any) -> "AlgodLedgerClient":
        return cls(
            settings.algod_url,
            token=settings.algod_token,
            indexer_url=settings.indexer_url,
            timeout=settings.ledger_timeout,
            max_retries=settings.ledger_max_retries,
            retry_backoff_base=settings.ledger_retry_backoff_base,
            **kwargs,
        )

    async def _get(self, url: str) -> Optional[dict[str, Any]]:
        """GET with retry. Returns None on 404, raises LedgerUnavailableError otherwise."""
        last_error = None
        for attempt in range(self.max_retries):
            try:
                resp = await self._http.get(url)
                if resp.status_code >= 500 or resp.status_code == 429:
                    last_error = f"HTTP {resp.status_code}"
                elif resp.status_code == 404:
                    return None
                elif resp.status_code >= 400:
                    raise LedgerUnavailableError(
                        f"Ledger rejected request ({resp.status_code}): {_error_message(resp)}"
                    )
                else:
                    return resp.json()
            except httpx.TimeoutException:
                last_error = "timeout"
            except httpx.HTTPError as e:
                last_error = str(e)
            except json.JSONDecodeError:
                raise LedgerUnavailableError("Invalid JSON response from ledger") from None

            if attempt < self.max_retries - 1:
                await asyncio.sleep(self.retry_backoff_base * (2 ** attempt))

        raise LedgerUnavailableError(f"All {self.max_retries} retries exhausted: {last_error}")

    async def _get_algod(self, path: str) -> Optional[dict[str, Any]]:
        return await self._get(f"{self.algod_url}{path}")

    # ── Transactions ──

    async def get_transaction_params(self) -> TransactionParams:
        data = await self._get_algod("/v2/transactions/params")
        if data is None:
            raise LedgerUnavailableError("Transaction params endpoint not found")
        try:
            last_round = int(data["last-round"])
            return TransactionParams(
                fee=int(data.get("fee", 0)),
                min_fee=int(data.get("min-fee", 1000)),
                first_round=last_round,
                last_round=last_round + VALIDITY_WINDOW,
                genesis_id=data.get("genesis-id", ""),
                genesis_hash=data["genesis-hash"],
                consensus_version=data.get("consensus-version", ""),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise LedgerUnavailableError(f"Malformed transaction params: {exc}") from exc

    async def submit_signed_transaction(self, signed_txns: list[bytes]) -> str:
        try:
            resp = await self._http.post(
                f"{self.algod_url}/v2/transactions",
                content=b"".join(signed_txns),
                headers={"Content-Type": "application/x-binary"},
            )
        except httpx.HTTPError as exc:
            raise BroadcastFailedError(f"Could not reach ledger node: {exc}") from exc

        if resp.status_code >= 400:
            raise BroadcastFailedError(_error_message(resp))
        try:
            return resp.json()["txId"]
        except (json.JSONDecodeError, KeyError) as exc:
            raise BroadcastFailedError("Node accepted transaction but returned no txId") from exc

    async def wait_for_confirmation(self, tx_id: str, max_rounds: int) -> ConfirmedTransaction:
        """Poll for inclusion for at most ``max_rounds`` rounds."""
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")

        status = await self._get_algod("/v2/status")
        if status is None:
            raise LedgerUnavailableError("Node status endpoint not found")
        try:
            start_round = int(status["last-round"]) + 1
        except (KeyError, TypeError, ValueError) as exc:
            raise LedgerUnavailableError(f"Malformed node status: {exc!r}") from exc
        current_round = start_round

        while current_round < start_round + max_rounds:
            pending = await self._get_algod(f"/v2/transactions/pending/{tx_id}")
            if pending is not None:
                try:
                    if int(pending.get("confirmed-round") or 0) > 0:
                        return _parse_pending(tx_id, pending)
                except (AttributeError, KeyError, TypeError, ValueError) as exc:
                    raise LedgerUnavailableError(
                        f"Malformed pending transaction info: {exc!r}"
                    ) from exc
                if pending.get("pool-error"):
                    raise BroadcastFailedError(f"Transaction rejected: {pending['pool-error']}")
            await self._get_algod(f"/v2/status/wait-for-block-after/{current_round}")
            current_round += 1

        raise ConfirmationTimeoutError(
            f"Transaction {tx_id} not confirmed after {max_rounds} rounds"
        )

    async def get_transaction(self, tx_id: str) -> Optional[ConfirmedTransaction]:
        """Look up a confirmed transaction; None if unknown or still pending."""
        pending = await self._get_algod(f"/v2/transactions/pending/{tx_id}")
        if pending is not None and int(pending.get("confirmed-round") or 0) > 0:
            return _parse_pending(tx_id, pending)

        if not self.indexer_url:
            return None
        data = await self._get(f"{self.indexer_url}/v2/transactions/{tx_id}")
        if data is None or "transaction" not in data:
            return None
        txn = data["transaction"]
        payment = txn.get("payment-transaction") or {}
        return ConfirmedTransaction(
            tx_id=tx_id,
            confirmed_round=int(txn.get("confirmed-round") or 0),
            sender=txn.get("sender", ""),
            receiver=payment.get("receiver", ""),
            amount=int(payment.get("amount", 0)),
        )

    # ── Accounts & assets ──

    async def get_account_assets(self, address: str) -> list[AssetHolding]:
        data = await self._get_algod(f"/v2/accounts/{address}")
        if data is None:
            return []
        return [
            AssetHolding(asset_id=int(a["asset-id"]), amount=int(a.get("amount", 0)))
            for a in data.get("assets", [])
        ]

    async def get_asset_info(self, asset_id: int) -> Optional[AssetInfo]:
        data = await self._get_algod(f"/v2/assets/{asset_id}")
        if data is None:
            return None
        params = data.get("params", {})
        return AssetInfo(
            asset_id=int(data.get("index", asset_id)),
            total=int(params.get("total", 0)),
            decimals=int(params.get("decimals", 0)),
            name=params.get("name", ""),
            unit_name=params.get("unit-name", ""),
            url=params.get("url", ""),
            creator=params.get("creator", ""),
        )

    # ── Lifecycle ──

    async def close(self) -> None:
        await self._http.aclose()


def _parse_pending(tx_id: str, pending: dict[str, Any]) -> ConfirmedTransaction:
    body = (pending.get("txn") or {}).get("txn") or {}
    return ConfirmedTransaction(
        tx_id=tx_id,
        confirmed_round=int(pending["confirmed-round"]),
        sender=body.get("snd", ""),
        receiver=body.get("rcv", ""),
        amount=int(body.get("amt", 0)),
    )
