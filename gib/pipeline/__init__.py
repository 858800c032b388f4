"""Bulk pipelines run over a hashlist."""

from .hashlist import HashlistGenerator
from .holders import HolderSnapshotter, select_largest_account
from .metadata import MetadataCache
from .minters import MinterScanner
from .runner import run_tokens, unique_tokens

__all__ = [
    "HashlistGenerator",
    "HolderSnapshotter",
    "MetadataCache",
    "MinterScanner",
    "run_tokens",
    "select_largest_account",
    "unique_tokens",
]
