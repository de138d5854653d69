"""Date parsing and timeline bucketing utilities."""

from datetime import datetime
from typing import Optional, Tuple

from ..core.logger import get_logger

logger = get_logger(__name__)


class DateUtils:
    """Date parsing and formatting helpers."""

    # Shapes the analyzer is asked for (YYYY-MM) plus the ones it tends to drift into
    GUESSED_DATE_FORMATS = [
        '%Y-%m',
        '%Y-%m-%d',
        '%Y/%m',
        '%Y/%m/%d',
        '%B %Y',
        '%b %Y',
        '%Y',
    ]

    @staticmethod
    def parse_guessed_date(date_str: Optional[str]) -> Optional[datetime]:
        """Parse an analyzer date estimate, returning None when it is unusable."""
        if not date_str or not isinstance(date_str, str):
            return None

        date_str = date_str.strip()

        parsed = DateUtils._parse_iso(date_str)
        if parsed is not None:
            return parsed

        for fmt in DateUtils.GUESSED_DATE_FORMATS:
            try:
                return datetime.strptime(date_str, fmt)
            except ValueError:
                continue

        logger.debug(f"Unparseable date estimate: {date_str!r}")
        return None

    @staticmethod
    def _parse_iso(date_str: str) -> Optional[datetime]:
        """Full ISO 8601 timestamps, with any offset converted to naive local time."""
        if date_str.endswith(('Z', 'z')):
            date_str = date_str[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(date_str)
        except ValueError:
            return None
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone().replace(tzinfo=None)
        return parsed

    @staticmethod
    def resolve_timestamp(date_str: Optional[str], fallback: datetime) -> datetime:
        """Use the parsed estimate when possible, else the fallback time."""
        parsed = DateUtils.parse_guessed_date(date_str)
        return parsed if parsed is not None else fallback

    @staticmethod
    def month_key(dt: datetime) -> Tuple[int, int]:
        return dt.year, dt.month

    @staticmethod
    def month_label(dt: datetime) -> str:
        """Locale-formatted month and year, e.g. 'May 2023'."""
        return dt.strftime('%B %Y')

    @staticmethod
    def current_year_month(now: Optional[datetime] = None) -> str:
        return (now or datetime.now()).strftime('%Y-%m')


# Convenience functions
def parse_guessed_date(date_str: Optional[str]) -> Optional[datetime]:
    """Parse an analyzer date estimate."""
    return DateUtils.parse_guessed_date(date_str)


def month_label(dt: datetime) -> str:
    """Format the timeline bucket label for a timestamp."""
    return DateUtils.month_label(dt)
