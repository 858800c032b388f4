"""Storage module for hashlists, snapshots, metadata cache and minter reports."""

from .csv_store import MINTERS_FILE, MINTERS_HEADER, MinterReport
from .json_store import (
    HASHLIST_FILE,
    HOLDERS_FILE,
    METADATA_FILE,
    MetadataStore,
    load_hashlist,
    save_hashlist,
    save_holders,
)

__all__ = [
    "HASHLIST_FILE",
    "HOLDERS_FILE",
    "METADATA_FILE",
    "MINTERS_FILE",
    "MINTERS_HEADER",
    "MetadataStore",
    "MinterReport",
    "load_hashlist",
    "save_hashlist",
    "save_holders",
]
