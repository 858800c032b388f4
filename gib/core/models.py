"""Pydantic data models for the snapshot toolkit.

Chain facts (balances, signatures, transactions, metadata) are immutable
(frozen) after creation. Accumulators built up during a run
(``OwnershipRecord``, ``HolderSnapshot``, ``RunSummary``) are mutable.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, PrivateAttr

from .types import LAMPORTS_PER_SOL, ConfirmationStatus, DataSource, SkipReason

MINT_PRICE_UNAVAILABLE = "CHECK EXPLORER"
MINT_DATE_UNAVAILABLE = "Check signature for date"


class AuditEntry(BaseModel):
    """Audit trail entry for a single RPC or HTTP call."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source: DataSource
    action: str  # RPC method name or "fetch_json"
    endpoint: str | None = None
    success: bool = True
    error_message: str | None = None
    duration_ms: int | None = None
    notes: str | None = None

    model_config = {"frozen": True}


class TokenAccountBalance(BaseModel):
    """One entry of a largest-token-accounts query."""

    address: str
    amount: str = "0"  # raw amount as returned by the node
    decimals: int = 0
    ui_amount: float | None = None

    model_config = {"frozen": True}


class SignatureInfo(BaseModel):
    """A transaction signature from an address's history."""

    signature: str
    slot: int = 0
    err: Any | None = None
    block_time: int | None = None
    confirmation_status: ConfirmationStatus | None = None

    model_config = {"frozen": True}

    @property
    def succeeded(self) -> bool:
        """True when the node reported no execution error."""
        return self.err is None

    @property
    def is_finalized(self) -> bool:
        return self.confirmation_status == ConfirmationStatus.FINALIZED

    def sort_time(self, now: int) -> int:
        """Block time used for ordering; a missing block time counts as ``now``."""
        return self.block_time if self.block_time is not None else now


class TransactionMeta(BaseModel):
    """Execution metadata of a confirmed transaction."""

    err: Any | None = None
    fee: int = 0
    pre_balances: list[int] = Field(default_factory=list)
    post_balances: list[int] = Field(default_factory=list)

    model_config = {"frozen": True}


class TransactionDetails(BaseModel):
    """A confirmed transaction reduced to the fields the pipelines use."""

    signature: str
    slot: int = 0
    block_time: int | None = None
    account_keys: list[str] = Field(default_factory=list)  # static keys, then loaded addresses
    meta: TransactionMeta | None = None

    model_config = {"frozen": True}

    @property
    def fee_payer(self) -> str | None:
        """The first account key, which funded the transaction."""
        return self.account_keys[0] if self.account_keys else None

    def references(self, address: str) -> bool:
        """Check whether the transaction touched the given account."""
        return address in self.account_keys

    def fee_payer_balance_change(self) -> int | None:
        """Lamports spent by the fee payer (pre - post), None without meta."""
        if self.meta is None or not self.meta.pre_balances or not self.meta.post_balances:
            return None
        return self.meta.pre_balances[0] - self.meta.post_balances[0]


class Creator(BaseModel):
    """A creator entry of a Metaplex metadata account."""

    address: str
    verified: bool = False
    share: int = 0  # percentage, 0-100

    model_config = {"frozen": True}


class TokenData(BaseModel):
    """Descriptive on-chain metadata of a mint."""

    name: str
    symbol: str
    uri: str
    royalty_basis_points: int = Field(default=0, alias="royaltyBasisPoints")
    creators: list[Creator] | None = None

    model_config = {"frozen": True, "populate_by_name": True}


class OnChainMetadata(BaseModel):
    """Decoded Metaplex Token Metadata account."""

    update_authority: str
    mint: str
    data: TokenData

    model_config = {"frozen": True}


class MetadataEntry(BaseModel):
    """One element of the metadata cache file."""

    token_data: TokenData = Field(alias="tokenData")
    metadata: Any | None = None  # parsed off-chain JSON document
    mint: str

    model_config = {"frozen": True, "populate_by_name": True}

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with the field names used in the cache file."""
        return self.model_dump(by_alias=True, mode="json")


class MinterRecord(BaseModel):
    """Mint attribution row for one token."""

    token: str
    minter: str
    mint_price_lamports: int | None = None
    block_time: int | None = None
    mint_signature: str

    model_config = {"frozen": True}

    @property
    def mint_price(self) -> str:
        """Mint price in SOL, or a sentinel when the node returned no meta."""
        if self.mint_price_lamports is None:
            return MINT_PRICE_UNAVAILABLE
        # fixed point, never scientific notation
        price = f"{self.mint_price_lamports / LAMPORTS_PER_SOL:.9f}"
        return price.rstrip("0").rstrip(".")

    @property
    def mint_date(self) -> str:
        """UTC date of the mint transaction with commas removed."""
        if self.block_time is None:
            return MINT_DATE_UNAVAILABLE
        dt = datetime.fromtimestamp(self.block_time, tz=timezone.utc)
        return dt.strftime("%a, %d %b %Y %H:%M:%S GMT").replace(",", "")

    def to_row(self) -> list[str]:
        return [
            self.token,
            self.minter,
            self.mint_price,
            self.mint_date,
            self.mint_signature,
        ]


class OwnershipRecord(BaseModel):
    """Tokens held by a single owner."""

    amount: int = 0
    mints: list[str] = Field(default_factory=list)

    def add(self, mint: str) -> bool:
        """Attribute a mint to this owner. Returns False if already attributed."""
        if mint in self.mints:
            return False
        self.mints.append(mint)
        self.amount += 1
        return True


class HolderSnapshot(BaseModel):
    """Aggregate ownership table keyed by owner address.

    A mint is attributed to at most one owner; duplicates in the input are
    ignored.
    """

    holders: dict[str, OwnershipRecord] = Field(default_factory=dict)

    _attributed: set[str] = PrivateAttr(default_factory=set)

    @property
    def total_holders(self) -> int:
        return len(self.holders)

    @property
    def total_mints(self) -> int:
        return sum(record.amount for record in self.holders.values())

    def record(self, owner: str, mint: str) -> bool:
        """Upsert an owner and attribute the mint to them."""
        if mint in self._attributed:
            return False
        if owner not in self.holders:
            self.holders[owner] = OwnershipRecord()
        self._attributed.add(mint)
        return self.holders[owner].add(mint)

    def to_json_dict(self) -> dict[str, Any]:
        return {owner: record.model_dump() for owner, record in self.holders.items()}


class TokenOutcome(BaseModel):
    """Result of processing one token: a value or the reason it was skipped."""

    token: str
    value: Any | None = None
    skip_reason: SkipReason | None = None
    detail: str | None = None

    model_config = {"frozen": True}

    @property
    def ok(self) -> bool:
        return self.skip_reason is None


class RunSummary(BaseModel):
    """Totals of a bulk run, reported when the command finishes."""

    command: str
    total: int = 0
    succeeded: int = 0
    already_cached: int = 0
    duplicates: int = 0  # repeated hashlist entries, processed once
    skipped: list[TokenOutcome] = Field(default_factory=list)
    output_path: str | None = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def add(self, outcome: TokenOutcome) -> None:
        if outcome.ok:
            self.succeeded += 1
        else:
            self.skipped.append(outcome)

    def elapsed_seconds(self, now: datetime | None = None) -> float:
        """Seconds since the run started."""
        now = now or datetime.now(timezone.utc)
        return (now - self.started_at).total_seconds()

    def skip_counts(self) -> dict[SkipReason, int]:
        counts: dict[SkipReason, int] = {}
        for outcome in self.skipped:
            counts[outcome.skip_reason] = counts.get(outcome.skip_reason, 0) + 1
        return counts
