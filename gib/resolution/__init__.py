"""Resolution module - resolves nominal holders to beneficial owners."""

from .custody_resolver import CustodyResolver

__all__ = ["CustodyResolver"]
