"""Solana JSON-RPC provider.

Implements the read-only ``LedgerClient`` capabilities over HTTP JSON-RPC.
Every call goes through the provider rate limiter and is recorded in the
audit trail. Rate-limit responses are retried with exponential backoff;
every other failure surfaces as ``DataSourceError``.
"""

import asyncio
import base64
import itertools
import logging
import time
from typing import Any

import httpx

from ..core.exceptions import DataSourceError, RateLimitError
from ..core.models import (
    SignatureInfo,
    TokenAccountBalance,
    TransactionDetails,
    TransactionMeta,
)
from ..core.types import DataSource
from .base import BaseProvider

logger = logging.getLogger(__name__)

# JSON-RPC error code some providers use for throttling
RPC_RATE_LIMIT_CODE = -32005

# Maximum page size accepted by getSignaturesForAddress
SIGNATURE_PAGE_LIMIT = 1000


class SolanaRPCProvider(BaseProvider):
    """Queries a Solana node over JSON-RPC."""

    SOURCE = DataSource.SOLANA_RPC

    def __init__(
        self,
        rpc_url: str,
        rate_limit_calls: int = 40,
        rate_limit_period: float = 10.0,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_seconds: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the RPC provider.

        Args:
            rpc_url: HTTP(S) endpoint of the node
            rate_limit_calls: Rate limit per period
            rate_limit_period: Period in seconds
            timeout: Per-request timeout in seconds
            max_retries: Retries after a rate-limit response
            backoff_seconds: First backoff delay, doubled on each retry
            transport: Optional httpx transport (used by tests)
        """
        super().__init__(
            rate_limit_calls=rate_limit_calls,
            rate_limit_period=rate_limit_period,
        )
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self._transport = transport
        self._request_ids = itertools.count(1)

    async def is_available(self) -> bool:
        """Check if the node answers getHealth."""
        try:
            return await self._rpc("getHealth", []) == "ok"
        except DataSourceError:
            return False

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        """Make a rate-limited JSON-RPC call, retrying on throttling."""
        attempt = 0
        while True:
            try:
                return await self._post(method, params)
            except RateLimitError as e:
                if attempt >= self.max_retries:
                    raise
                delay = e.retry_after_seconds or self.backoff_seconds * (2 ** attempt)
                logger.warning(f"{method}: rate limited, retrying in {delay:.1f}s")
                await asyncio.sleep(delay)
                attempt += 1

    async def _post(self, method: str, params: list[Any]) -> Any:
        await self._wait_for_rate_limit()
        start_time = time.monotonic()

        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
            "params": params,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.rpc_url, json=payload)

            duration_ms = int((time.monotonic() - start_time) * 1000)

            if response.status_code == 429:
                self._record_audit(
                    action=method,
                    success=False,
                    error_message="Rate limit exceeded",
                    duration_ms=duration_ms,
                )
                raise RateLimitError(
                    source=self.SOURCE.value,
                    retry_after_seconds=_parse_retry_after(response.headers.get("retry-after")),
                    endpoint=method,
                )

            response.raise_for_status()
            body = response.json()

        except httpx.HTTPStatusError as e:
            self._record_audit(action=method, success=False, error_message=str(e))
            raise DataSourceError(
                source=self.SOURCE.value,
                message=f"HTTP {e.response.status_code}",
                endpoint=method,
                status_code=e.response.status_code,
            )
        except httpx.RequestError as e:
            self._record_audit(action=method, success=False, error_message=str(e))
            raise DataSourceError(
                source=self.SOURCE.value,
                message=str(e) or type(e).__name__,
                endpoint=method,
            )
        except ValueError as e:
            self._record_audit(action=method, success=False, error_message="invalid JSON")
            raise DataSourceError(
                source=self.SOURCE.value,
                message=f"Invalid JSON response: {e}",
                endpoint=method,
            )

        error = body.get("error") if isinstance(body, dict) else None
        if error:
            code = error.get("code")
            message = error.get("message", "unknown error")
            self._record_audit(
                action=method,
                success=False,
                error_message=f"{code}: {message}",
                duration_ms=duration_ms,
            )
            if code in (RPC_RATE_LIMIT_CODE, 429):
                raise RateLimitError(source=self.SOURCE.value, endpoint=method)
            raise DataSourceError(
                source=self.SOURCE.value,
                message=f"RPC error {code}: {message}",
                endpoint=method,
            )

        self._record_audit(action=method, success=True, duration_ms=duration_ms)
        logger.debug(f"{method} answered in {duration_ms}ms")
        return body.get("result")

    async def get_token_largest_accounts(self, mint: str) -> list[TokenAccountBalance]:
        """Return the largest token accounts holding a mint."""
        result = await self._rpc("getTokenLargestAccounts", [mint])
        return [
            TokenAccountBalance(
                address=item["address"],
                amount=item.get("amount", "0"),
                decimals=item.get("decimals", 0),
                ui_amount=item.get("uiAmount"),
            )
            for item in (result or {}).get("value") or []
        ]

    async def get_token_account_owner(self, account: str) -> str | None:
        """Return the wallet that owns an SPL token account."""
        result = await self._rpc("getAccountInfo", [account, {"encoding": "jsonParsed"}])
        value = (result or {}).get("value")
        if not value:
            return None
        data = value.get("data")
        if not isinstance(data, dict):
            return None
        return data.get("parsed", {}).get("info", {}).get("owner")

    async def get_signatures_for_address(self, address: str) -> list[SignatureInfo]:
        """
        Return the full signature history of an address, newest first.

        Pages backwards with ``before`` until the node returns a short page.
        """
        signatures: list[SignatureInfo] = []
        before: str | None = None

        while True:
            options: dict[str, Any] = {"limit": SIGNATURE_PAGE_LIMIT}
            if before:
                options["before"] = before

            page = await self._rpc("getSignaturesForAddress", [address, options]) or []
            signatures.extend(parse_signature_info(item) for item in page)

            if len(page) < SIGNATURE_PAGE_LIMIT:
                break
            before = page[-1]["signature"]

        return signatures

    async def get_transaction(self, signature: str) -> TransactionDetails | None:
        """Fetch a confirmed transaction, or None if the node does not know it."""
        result = await self._rpc(
            "getTransaction",
            [signature, {"encoding": "json", "maxSupportedTransactionVersion": 0}],
        )
        if not result:
            return None
        return parse_transaction(signature, result)

    async def get_account_data(self, address: str) -> bytes | None:
        """Return the raw data of an account, or None if it does not exist."""
        result = await self._rpc("getAccountInfo", [address, {"encoding": "base64"}])
        value = (result or {}).get("value")
        if not value:
            return None
        return _decode_data(value.get("data"))

    async def get_program_account_slices(
        self,
        program_id: str,
        data_offset: int,
        data_length: int,
        memcmp: list[tuple[int, str]],
    ) -> list[bytes]:
        """Return a slice of the data of every program account matching the filters."""
        config = {
            "encoding": "base64",
            "dataSlice": {"offset": data_offset, "length": data_length},
            "filters": [
                {"memcmp": {"offset": offset, "bytes": value}} for offset, value in memcmp
            ],
        }
        result = await self._rpc("getProgramAccounts", [program_id, config]) or []
        slices = []
        for item in result:
            data = _decode_data(item.get("account", {}).get("data"))
            if data is not None:
                slices.append(data)
        return slices


def parse_signature_info(item: dict[str, Any]) -> SignatureInfo:
    """Parse one getSignaturesForAddress entry."""
    return SignatureInfo(
        signature=item["signature"],
        slot=item.get("slot", 0),
        err=item.get("err"),
        block_time=item.get("blockTime"),
        confirmation_status=item.get("confirmationStatus"),
    )


def parse_transaction(signature: str, result: dict[str, Any]) -> TransactionDetails:
    """Parse a json-encoded getTransaction result."""
    message = result.get("transaction", {}).get("message", {})
    account_keys = [
        key if isinstance(key, str) else key.get("pubkey")
        for key in message.get("accountKeys", [])
    ]

    meta = None
    raw_meta = result.get("meta")
    if raw_meta:
        loaded = raw_meta.get("loadedAddresses") or {}
        account_keys.extend(loaded.get("writable", []))
        account_keys.extend(loaded.get("readonly", []))
        meta = TransactionMeta(
            err=raw_meta.get("err"),
            fee=raw_meta.get("fee", 0),
            pre_balances=raw_meta.get("preBalances", []),
            post_balances=raw_meta.get("postBalances", []),
        )

    return TransactionDetails(
        signature=signature,
        slot=result.get("slot", 0),
        block_time=result.get("blockTime"),
        account_keys=account_keys,
        meta=meta,
    )


def _decode_data(data: Any) -> bytes | None:
    # base64 account data arrives as [payload, "base64"]
    if isinstance(data, list) and data:
        return base64.b64decode(data[0])
    return None


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None
