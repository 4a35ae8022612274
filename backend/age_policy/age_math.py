"""Age arithmetic: whole years from a birth date and age bracket derivation."""

from datetime import date, datetime
from typing import Optional, Union

from dateutil import parser as date_parser

from utils import utc_now

from .errors import InvalidDate
from .types import AgeBracket, WorkerAgeInfo

DateLike = Union[date, datetime]

ADULT_AGE = 18

# Baseline thresholds a worker unlocks as they get older
AGE_UNLOCK_THRESHOLDS = (15, 16, 18)


def _as_date(value: DateLike, name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise InvalidDate(f"{name} must be a date, got {type(value).__name__}")


def compute_age_years(birth_date: DateLike, as_of: Optional[DateLike] = None) -> int:
    """
    Whole years elapsed between ``birth_date`` and ``as_of`` (default: today, UTC).

    Compares (month, day) so a birthday tomorrow does not count yet. A
    29 February birthday is reached on 1 March in non-leap years.

    Raises:
        InvalidDate: if birth_date is not a date or lies after as_of
    """
    born = _as_date(birth_date, "birth_date")
    today = _as_date(as_of, "as_of") if as_of is not None else utc_now().date()

    if born > today:
        raise InvalidDate(f"Birth date {born.isoformat()} is after {today.isoformat()}")

    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return age


def derive_age_bracket(age_years: int) -> AgeBracket:
    """Map an age to its bracket. Total over all integers."""
    if age_years < 15:
        return AgeBracket.UNDER_15
    if age_years == 15:
        return AgeBracket.AGE_15
    if age_years == 16:
        return AgeBracket.AGE_16
    if age_years == 17:
        return AgeBracket.AGE_17
    return AgeBracket.AGE_18_PLUS


def worker_age_info(age_years: int) -> WorkerAgeInfo:
    bracket = derive_age_bracket(age_years)
    return WorkerAgeInfo(age_years=age_years, age_bracket=bracket, is_minor=bracket.is_minor)


def worker_age_info_from_birth_date(
    birth_date: DateLike, as_of: Optional[DateLike] = None
) -> WorkerAgeInfo:
    return worker_age_info(compute_age_years(birth_date, as_of))


def parse_birth_date(value: Union[str, DateLike]) -> date:
    """
    Parse a birth date from various formats.
    Supports: YYYY-MM-DD, MM/DD/YYYY, "May 15, 2009", etc.

    Raises:
        InvalidDate: if the value is empty or cannot be parsed
    """
    if isinstance(value, (date, datetime)):
        return _as_date(value, "birth_date")

    if not value or not str(value).strip():
        raise InvalidDate("Birth date is empty")

    try:
        parsed = date_parser.parse(str(value).strip(), dayfirst=False)
    except (ValueError, OverflowError) as e:
        raise InvalidDate(f"Unparseable birth date: {value!r}") from e
    return parsed.date()


def next_age_unlock(age_years: int) -> Optional[int]:
    """Next baseline threshold the worker will reach, or None if all are reached."""
    for threshold in AGE_UNLOCK_THRESHOLDS:
        if age_years < threshold:
            return threshold
    return None
