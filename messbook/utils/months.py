"""Month key helpers.

A month key is the ``YYYY-MM`` string that names a billing period. It is both
the external parameter format and the partition key stored on every record.
"""
import calendar
import re
from datetime import date, datetime, timezone
from typing import NamedTuple, Union

from messbook.core.exceptions import ValidationError

MONTH_KEY_PATTERN = re.compile(r"[0-9]{4}-(0[1-9]|1[0-2])")


class MonthKey(NamedTuple):
    """Billing period, ordered by (year, month)."""

    year: int
    month: int

    @classmethod
    def parse(cls, value: str) -> "MonthKey":
        """Parse a ``YYYY-MM`` string, raising ValidationError when malformed."""
        if not isinstance(value, str) or not MONTH_KEY_PATTERN.fullmatch(value):
            raise ValidationError(
                f"Invalid month '{value}', expected YYYY-MM format"
            )
        year, month = value.split("-")
        return cls(int(year), int(month))

    @classmethod
    def from_date(cls, value: Union[date, datetime]) -> "MonthKey":
        return cls(value.year, value.month)

    @classmethod
    def current(cls) -> "MonthKey":
        return cls.from_date(datetime.now(timezone.utc))

    @property
    def name(self) -> str:
        """English month name, e.g. ``January``."""
        return calendar.month_name[self.month]

    def is_current_or_future(self) -> bool:
        return self >= MonthKey.current()

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


def normalize_month(value: str) -> str:
    """Validate a month key and return its canonical string form."""
    return str(MonthKey.parse(value))


def month_of(value: Union[date, datetime]) -> str:
    """Month key string for a record date."""
    return str(MonthKey.from_date(value))


def start_of_day(value: Union[date, datetime]) -> datetime:
    """Naive midnight datetime for a record date, as stored in Mongo."""
    return datetime(value.year, value.month, value.day)
