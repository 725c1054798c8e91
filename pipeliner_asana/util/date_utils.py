"""
Date helpers shared by the formatter and the Asana gateway.
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional, Union

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso_timestamp(moment: Optional[datetime] = None) -> str:
    """
    Render a UTC timestamp the way JavaScript's toISOString() does,
    e.g. 2025-06-30T14:05:09.123Z.
    """
    moment = moment or utc_now()
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment.isoformat(timespec="milliseconds") + "Z"


def to_asana_date(value: Union[str, float, date, datetime, None]) -> Optional[str]:
    """
    Convert a date, datetime, ISO string or epoch milliseconds to Asana's
    YYYY-MM-DD.

    Timezone-aware datetimes are converted to UTC first.

    Args:
        value: Date value from the webhook payload

    Returns:
        Optional[str]: Date in YYYY-MM-DD format, or None if it cannot be parsed
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return value.isoformat()
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        # Epoch milliseconds
        try:
            parsed = datetime.fromtimestamp(value / 1000, timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.warning(f"Cannot parse date value: {value!r}")
            return None
    else:
        text = str(value).strip()
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"Cannot parse date value: {value!r}")
            return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date().isoformat()
