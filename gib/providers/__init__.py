"""Data providers for the snapshot toolkit.

This module contains:
- The read-only ledger capability interface
- A Solana JSON-RPC implementation of it
- An off-chain JSON fetcher for metadata URIs
- Metaplex address derivation and account decoding
"""

from .base import BaseProvider
from .ledger import LedgerClient
from .offchain import OffChainJSONProvider
from .solana_rpc import SolanaRPCProvider

__all__ = ["BaseProvider", "LedgerClient", "OffChainJSONProvider", "SolanaRPCProvider"]
