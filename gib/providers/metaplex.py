"""Metaplex Token Metadata helpers.

Program-derived address derivation (delegated to solders) and a decoder for
the Borsh layout of Metadata accounts:

    key: u8
    update_authority: Pubkey
    mint: Pubkey
    name: String          (u32 length + bytes, null padded)
    symbol: String
    uri: String
    seller_fee_basis_points: u16
    creators: Option<Vec<Creator { address: Pubkey, verified: u8, share: u8 }>>
"""

import logging
import struct

from solders.pubkey import Pubkey

from ..core.models import Creator, OnChainMetadata, TokenData

logger = logging.getLogger(__name__)

TOKEN_METADATA_PROGRAM_ID = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
ASSOCIATED_TOKEN_PROGRAM_ID = "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
CANDY_MACHINE_V2_PROGRAM_ID = "cndy3Z4yapfJBmL3ShUp5exZKqR3z33thTzeNMm2gRZ"

# Max sizes of the padded metadata strings
MAX_NAME_LENGTH = 32
MAX_SYMBOL_LENGTH = 10
MAX_URI_LENGTH = 200

# Mint field of a metadata account
MINT_OFFSET = 1 + 32
PUBKEY_LENGTH = 32

# First creator address when all strings are at their max (padded) size
FIRST_CREATOR_OFFSET = (
    1 + 32 + 32
    + 4 + MAX_NAME_LENGTH
    + 4 + MAX_SYMBOL_LENGTH
    + 4 + MAX_URI_LENGTH
    + 2  # seller fee basis points
    + 1  # creators option tag
    + 4  # creators vec length
)
CREATOR_SIZE = PUBKEY_LENGTH + 1 + 1


def is_valid_address(address: str) -> bool:
    """Check that a string is a base-58 encoded 32-byte address."""
    try:
        Pubkey.from_string(address)
    except ValueError:
        return False
    return True


def find_metadata_address(mint: str) -> str:
    """Derive the metadata account of a mint."""
    program_id = Pubkey.from_string(TOKEN_METADATA_PROGRAM_ID)
    seeds = [b"metadata", bytes(program_id), bytes(Pubkey.from_string(mint))]
    address, _ = Pubkey.find_program_address(seeds, program_id)
    return str(address)


def find_associated_token_address(owner: str, mint: str) -> str:
    """Derive the associated token account of (owner, mint)."""
    seeds = [
        bytes(Pubkey.from_string(owner)),
        bytes(Pubkey.from_string(TOKEN_PROGRAM_ID)),
        bytes(Pubkey.from_string(mint)),
    ]
    address, _ = Pubkey.find_program_address(
        seeds, Pubkey.from_string(ASSOCIATED_TOKEN_PROGRAM_ID)
    )
    return str(address)


def find_candy_machine_creator(candy_machine: str) -> str:
    """Derive the creator PDA a Candy Machine v2 signs its mints with."""
    seeds = [b"candy_machine", bytes(Pubkey.from_string(candy_machine))]
    address, _ = Pubkey.find_program_address(
        seeds, Pubkey.from_string(CANDY_MACHINE_V2_PROGRAM_ID)
    )
    return str(address)


def creator_filter_offset(position: int = 1) -> int:
    """Offset of the creator at a 1-based position, assuming padded strings."""
    if position < 1:
        raise ValueError(f"creator position must be >= 1, got {position}")
    return FIRST_CREATOR_OFFSET + (position - 1) * CREATOR_SIZE


def address_from_bytes(data: bytes) -> str:
    """Encode a 32-byte slice as a base-58 address."""
    if len(data) != PUBKEY_LENGTH:
        raise ValueError(f"expected {PUBKEY_LENGTH} bytes, got {len(data)}")
    return str(Pubkey.from_bytes(data))


class _Reader:
    """Sequential Borsh reader."""

    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def take(self, size: int) -> bytes:
        end = self.offset + size
        if end > len(self.data):
            raise ValueError(
                f"metadata account truncated at offset {self.offset} (need {size} bytes)"
            )
        chunk = self.data[self.offset:end]
        self.offset = end
        return chunk

    def u8(self) -> int:
        return self.take(1)[0]

    def u16(self) -> int:
        return struct.unpack("<H", self.take(2))[0]

    def u32(self) -> int:
        return struct.unpack("<I", self.take(4))[0]

    def pubkey(self) -> str:
        return address_from_bytes(self.take(PUBKEY_LENGTH))

    def string(self) -> str:
        length = self.u32()
        return self.take(length).decode("utf-8", errors="ignore").replace("\x00", "").strip()


def decode_metadata_account(data: bytes) -> OnChainMetadata:
    """
    Decode a Metadata account.

    Args:
        data: Raw account data

    Returns:
        OnChainMetadata with the descriptive fields and creators

    Raises:
        ValueError: If the data is truncated or malformed
    """
    reader = _Reader(data)
    reader.u8()  # account key discriminator
    update_authority = reader.pubkey()
    mint = reader.pubkey()
    name = reader.string()
    symbol = reader.string()
    uri = reader.string()
    seller_fee_basis_points = reader.u16()

    creators = None
    if reader.u8() == 1:
        creators = []
        for _ in range(reader.u32()):
            address = reader.pubkey()
            verified = reader.u8() == 1
            share = reader.u8()
            creators.append(Creator(address=address, verified=verified, share=share))

    return OnChainMetadata(
        update_authority=update_authority,
        mint=mint,
        data=TokenData(
            name=name,
            symbol=symbol,
            uri=uri,
            royalty_basis_points=seller_fee_basis_points,
            creators=creators,
        ),
    )
