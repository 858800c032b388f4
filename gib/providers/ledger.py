"""Read-only ledger capabilities the pipelines depend on."""

from typing import Protocol, runtime_checkable

from ..core.models import SignatureInfo, TokenAccountBalance, TransactionDetails


@runtime_checkable
class LedgerClient(Protocol):
    """Chain queries used by the snapshot, metadata and minter pipelines.

    Implementations raise ``DataSourceError`` for transport or node failures
    and return ``None``/empty results for accounts that do not exist.
    """

    async def get_token_largest_accounts(self, mint: str) -> list[TokenAccountBalance]:
        ...

    async def get_token_account_owner(self, account: str) -> str | None:
        ...

    async def get_signatures_for_address(self, address: str) -> list[SignatureInfo]:
        ...

    async def get_transaction(self, signature: str) -> TransactionDetails | None:
        ...

    async def get_account_data(self, address: str) -> bytes | None:
        ...

    async def get_program_account_slices(
        self,
        program_id: str,
        data_offset: int,
        data_length: int,
        memcmp: list[tuple[int, str]],
    ) -> list[bytes]:
        ...
