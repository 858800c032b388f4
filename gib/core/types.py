"""Type definitions and enums for the snapshot toolkit."""

from enum import Enum

class DataSource(str, Enum):
    """Data source identifiers."""

    SOLANA_RPC = "solana_rpc"
    OFFCHAIN_JSON = "offchain_json"
    UNKNOWN = "unknown"

class ConfirmationStatus(str, Enum):
    """Commitment level reported for a transaction signature."""

    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"

class SkipReason(str, Enum):
    """Why a token produced no output during a bulk run."""

    NO_HOLDER = "no_holder"
    OWNER_LOOKUP_FAILED = "owner_lookup_failed"
    CUSTODY_UNRESOLVED = "custody_unresolved"
    NO_FINALIZED_TRANSACTION = "no_finalized_transaction"
    TRANSACTION_NOT_FOUND = "transaction_not_found"
    NOT_MINT_TRANSACTION = "not_mint_transaction"
    METADATA_ACCOUNT_MISSING = "metadata_account_missing"
    RPC_ERROR = "rpc_error"

    @property
    def display_name(self) -> str:
        """Human-readable display name."""
        names = {
            self.NO_HOLDER: "No holder account",
            self.OWNER_LOOKUP_FAILED: "Owner lookup failed",
            self.CUSTODY_UNRESOLVED: "Custody owner unresolved",
            self.NO_FINALIZED_TRANSACTION: "No finalized transaction",
            self.TRANSACTION_NOT_FOUND: "Transaction not found",
            self.NOT_MINT_TRANSACTION: "Not a mint transaction",
            self.METADATA_ACCOUNT_MISSING: "No metadata account",
            self.RPC_ERROR: "RPC error",
        }
        return names.get(self, self.value)


LAMPORTS_PER_SOL = 1_000_000_000
