"""
Utilities shared across the service.
"""

from .date_utils import to_asana_date, to_iso_timestamp
from .logging import get_logger, setup_logging

__all__ = [
    # Date/time
    "to_asana_date",
    "to_iso_timestamp",
    # Logging
    "setup_logging",
    "get_logger",
]
