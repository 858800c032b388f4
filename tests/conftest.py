"""Pytest configuration and fixtures for snapshot toolkit tests."""

import struct
from collections import Counter
from pathlib import Path
from typing import Any

import pytest

from gib.core.exceptions import DataSourceError
from gib.core.models import (
    SignatureInfo,
    TokenAccountBalance,
    TransactionDetails,
    TransactionMeta,
)
from gib.core.types import ConfirmationStatus

# Well-known, valid base-58 addresses used wherever PDAs are derived
SYSTEM_PROGRAM = "11111111111111111111111111111111"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"
WRAPPED_SOL_MINT = "So11111111111111111111111111111111111111112"


class FakeLedger:
    """
    In-memory LedgerClient.

    Every capability reads from a dict keyed by its argument. Keys listed in
    ``failures`` raise DataSourceError. Calls are counted per method.
    """

    def __init__(self):
        self.largest_accounts: dict[str, list[TokenAccountBalance]] = {}
        self.owners: dict[str, str] = {}
        self.signatures: dict[str, list[SignatureInfo]] = {}
        self.transactions: dict[str, TransactionDetails] = {}
        self.account_data: dict[str, bytes] = {}
        self.program_slices: list[bytes] = []
        self.failures: set[str] = set()
        self.calls: Counter = Counter()
        self.program_account_requests: list[tuple[str, int, int, list[tuple[int, str]]]] = []

    def _check(self, method: str, key: str) -> None:
        self.calls[method] += 1
        if key in self.failures:
            raise DataSourceError("fake", f"{method} failed for {key}", endpoint=method)

    async def get_token_largest_accounts(self, mint: str) -> list[TokenAccountBalance]:
        self._check("get_token_largest_accounts", mint)
        return self.largest_accounts.get(mint, [])

    async def get_token_account_owner(self, account: str) -> str | None:
        self._check("get_token_account_owner", account)
        return self.owners.get(account)

    async def get_signatures_for_address(self, address: str) -> list[SignatureInfo]:
        self._check("get_signatures_for_address", address)
        return self.signatures.get(address, [])

    async def get_transaction(self, signature: str) -> TransactionDetails | None:
        self._check("get_transaction", signature)
        return self.transactions.get(signature)

    async def get_account_data(self, address: str) -> bytes | None:
        self._check("get_account_data", address)
        return self.account_data.get(address)

    async def get_program_account_slices(
        self,
        program_id: str,
        data_offset: int,
        data_length: int,
        memcmp: list[tuple[int, str]],
    ) -> list[bytes]:
        self.calls["get_program_account_slices"] += 1
        self.program_account_requests.append((program_id, data_offset, data_length, memcmp))
        return list(self.program_slices)

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    # Helpers for building fixtures

    def hold(self, mint: str, owner: str, ui_amount: float = 1.0) -> str:
        """Make ``owner`` the holder of ``mint`` through a single token account."""
        account = f"{mint}-account"
        self.largest_accounts[mint] = [
            TokenAccountBalance(address=account, amount="1", decimals=0, ui_amount=ui_amount)
        ]
        self.owners[account] = owner
        return account

    def add_transaction(
        self,
        address: str,
        signature: str,
        account_keys: list[str],
        block_time: int | None = None,
        status: ConfirmationStatus | None = ConfirmationStatus.FINALIZED,
        err: Any | None = None,
        pre_balance: int | None = None,
        post_balance: int | None = None,
    ) -> None:
        """Append a transaction to the history of ``address``."""
        self.signatures.setdefault(address, []).append(
            SignatureInfo(
                signature=signature,
                err=err,
                block_time=block_time,
                confirmation_status=status,
            )
        )
        meta = None
        if pre_balance is not None and post_balance is not None:
            meta = TransactionMeta(
                fee=5000,
                pre_balances=[pre_balance],
                post_balances=[post_balance],
            )
        self.transactions[signature] = TransactionDetails(
            signature=signature,
            block_time=block_time,
            account_keys=account_keys,
            meta=meta,
        )


def borsh_string(value: str, padded_length: int | None = None) -> bytes:
    raw = value.encode("utf-8")
    if padded_length is not None:
        raw = raw.ljust(padded_length, b"\x00")
    return struct.pack("<I", len(raw)) + raw


def build_metadata_account(
    update_authority: bytes,
    mint: bytes,
    name: str,
    symbol: str,
    uri: str,
    seller_fee_basis_points: int = 500,
    creators: list[tuple[bytes, bool, int]] | None = None,
    padded: bool = True,
) -> bytes:
    """Serialize a Metadata account the way the Token Metadata program does."""
    data = bytes([4]) + update_authority + mint
    data += borsh_string(name, 32 if padded else None)
    data += borsh_string(symbol, 10 if padded else None)
    data += borsh_string(uri, 200 if padded else None)
    data += struct.pack("<H", seller_fee_basis_points)
    if creators is None:
        data += bytes([0])
    else:
        data += bytes([1]) + struct.pack("<I", len(creators))
        for address, verified, share in creators:
            data += address + bytes([1 if verified else 0, share])
    # primary_sale_happened, is_mutable
    return data + bytes([0, 1])


@pytest.fixture
def ledger() -> FakeLedger:
    """Empty in-memory ledger."""
    return FakeLedger()


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch) -> Path:
    """Run inside an empty directory with no GIB_* settings in the environment."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "GIB_RPC_URL",
        "GIB_VAULT_ADDRESS",
        "GIB_RATE_LIMIT_CALLS",
        "GIB_RATE_LIMIT_PERIOD",
        "GIB_REQUEST_TIMEOUT",
        "GIB_MAX_RETRIES",
        "GIB_CONCURRENCY",
    ):
        # setenv first so teardown also removes values loaded from .env files
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return tmp_path
