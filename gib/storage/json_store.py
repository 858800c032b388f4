"""
JSON file storage for hashlists, holder snapshots and the metadata cache.

Simple, file-based storage in the working directory:
- hashlist.json     ordered list of mint addresses
- gib-holders.json  owner address -> {amount, mints}
- gib-meta.json     list of {tokenData, metadata, mint}
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from ..core.exceptions import ConfigurationError
from ..core.models import HolderSnapshot, MetadataEntry

logger = logging.getLogger(__name__)

HASHLIST_FILE = "hashlist.json"
HOLDERS_FILE = "gib-holders.json"
METADATA_FILE = "gib-meta.json"


def load_hashlist(path: Path) -> List[str]:
    """
    Load a hashlist file.

    Raises ConfigurationError if the file is missing or is not a JSON
    array of strings.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(str(path), "hashlist file not found")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(str(path), f"hashlist is not valid JSON: {e}")

    if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
        raise ConfigurationError(str(path), "hashlist must be a JSON array of addresses")

    return [item.strip() for item in data]


def save_hashlist(path: Path, hashlist: List[str]) -> Path:
    """Write a hashlist and return its path."""
    path = Path(path)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(hashlist, f)
    return path


def save_holders(path: Path, snapshot: HolderSnapshot) -> Path:
    """Write a holder snapshot and return its path."""
    path = Path(path)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(snapshot.to_json_dict(), f)
    return path


class MetadataStore:
    """
    Key-addressed metadata cache persisted as a JSON array.

    Entries loaded from a previous run are kept verbatim; new entries are
    appended and the whole file is rewritten on every flush.

    Usage:
        store = MetadataStore(Path("gib-meta.json"))
        if not store.contains(mint):
            store.add(entry)
            store.flush()
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._entries: List[Dict[str, Any]] = []
        self._mints: set[str] = set()
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(str(self.path), f"metadata cache is not valid JSON: {e}")

        if not isinstance(data, list):
            raise ConfigurationError(str(self.path), "metadata cache must be a JSON array")

        for entry in data:
            if isinstance(entry, dict) and isinstance(entry.get("mint"), str):
                self._entries.append(entry)
                self._mints.add(entry["mint"])
            else:
                logger.warning(f"Ignoring malformed metadata cache entry: {entry!r:.80}")

        logger.info(f"Loaded {len(self._entries)} cached metadata entries from {self.path}")

    def contains(self, mint: str) -> bool:
        """Check if a mint is already cached."""
        return mint in self._mints

    def add(self, entry: MetadataEntry) -> None:
        """Append a new entry (ignored if the mint is already cached)."""
        if entry.mint in self._mints:
            return
        self._entries.append(entry.to_json_dict())
        self._mints.add(entry.mint)

    def flush(self) -> Path:
        """Write the full cache to disk."""
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self._entries, f)
        return self.path

    @property
    def entries(self) -> List[Dict[str, Any]]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
