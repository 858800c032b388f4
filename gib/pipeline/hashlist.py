"""Hashlist generation from a creator or Candy Machine address.

Metadata accounts are matched on the creator stored at a given position of
their creators list, and only the mint field of each match is downloaded.
A Candy Machine v2 signs every NFT it mints with a creator PDA derived from
the machine address, which is matched at the first position.
"""

import logging

from ..providers.ledger import LedgerClient
from ..providers.metaplex import (
    MINT_OFFSET,
    PUBKEY_LENGTH,
    TOKEN_METADATA_PROGRAM_ID,
    address_from_bytes,
    creator_filter_offset,
    find_candy_machine_creator,
)

logger = logging.getLogger(__name__)


class HashlistGenerator:
    """Lists the mints of a collection."""

    def __init__(self, ledger: LedgerClient):
        self.ledger = ledger

    async def from_creator(self, creator: str, position: int = 1) -> list[str]:
        """Return the sorted mints whose creator at ``position`` is ``creator``."""
        logger.info(f"Fetching NFTs created by {creator} (creator position {position})")
        slices = await self.ledger.get_program_account_slices(
            TOKEN_METADATA_PROGRAM_ID,
            MINT_OFFSET,
            PUBKEY_LENGTH,
            [(creator_filter_offset(position), creator)],
        )
        hashlist = sorted({address_from_bytes(data) for data in slices})
        logger.info(f"Found {len(hashlist)} mints")
        return hashlist

    async def from_candy_machine(self, candy_machine: str) -> list[str]:
        """Return the sorted mints minted by a Candy Machine v2."""
        creator = find_candy_machine_creator(candy_machine)
        logger.debug(f"Candy Machine {candy_machine} creator PDA: {creator}")
        return await self.from_creator(creator)
