"""Console output module."""

from .audit_trail import AuditTrailFormatter
from .formatters import ProgressReporter, SummaryFormatter

__all__ = [
    "AuditTrailFormatter",
    "ProgressReporter",
    "SummaryFormatter",
]
