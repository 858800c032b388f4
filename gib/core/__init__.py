"""Core module - data models, types, configuration and exceptions."""

from .config import Settings
from .exceptions import (
    ConfigurationError,
    DataSourceError,
    GibError,
    RateLimitError,
    TokenSkipped,
)
from .models import (
    AuditEntry,
    Creator,
    HolderSnapshot,
    MetadataEntry,
    MinterRecord,
    OnChainMetadata,
    OwnershipRecord,
    RunSummary,
    SignatureInfo,
    TokenAccountBalance,
    TokenData,
    TokenOutcome,
    TransactionDetails,
    TransactionMeta,
)
from .types import ConfirmationStatus, DataSource, SkipReason

__all__ = [
    # Config
    "Settings",
    # Models
    "AuditEntry",
    "Creator",
    "HolderSnapshot",
    "MetadataEntry",
    "MinterRecord",
    "OnChainMetadata",
    "OwnershipRecord",
    "RunSummary",
    "SignatureInfo",
    "TokenAccountBalance",
    "TokenData",
    "TokenOutcome",
    "TransactionDetails",
    "TransactionMeta",
    # Types
    "ConfirmationStatus",
    "DataSource",
    "SkipReason",
    # Exceptions
    "GibError",
    "DataSourceError",
    "RateLimitError",
    "ConfigurationError",
    "TokenSkipped",
]
