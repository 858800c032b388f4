"""gib - Solana collection snapshot toolkit.

Builds hashlists, holder snapshots, metadata caches and minter attribution
reports for NFT collections and SPL tokens by reading chain state over
JSON-RPC.
"""

__version__ = "0.1.0"
