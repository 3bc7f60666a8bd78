"""
Spanish natural-language date and time parsing.

Listings describe dates the way a person would ("sábado 15 de marzo",
"5, 12 y 19 de abril", "20 al 22 de junio 2025"). Everything returned here is
timezone-aware in the site timezone; ``to_utc_iso`` produces the stored form.

When a date has no year, the year hint (current year by default) is used and,
if that date has already passed, the event is assumed to be next year's.
"""
import re
from datetime import datetime
from typing import List, Optional

import pytz
from dateutil import parser as date_parser

from cartelera.config import settings
from cartelera.schema_adapter import Occurrence, ParsedDateInfo

SPANISH_MONTHS = {
    'enero': 1, 'febrero': 2, 'marzo': 3, 'abril': 4,
    'mayo': 5, 'junio': 6, 'julio': 7, 'agosto': 8,
    'septiembre': 9, 'setiembre': 9, 'octubre': 10, 'noviembre': 11, 'diciembre': 12,
    'ene': 1, 'feb': 2, 'mar': 3, 'abr': 4,
    'may': 5, 'jun': 6, 'jul': 7, 'ago': 8,
    'sep': 9, 'sept': 9, 'oct': 10, 'nov': 11, 'dic': 12,
}

WEEKDAY_PREFIX_RE = re.compile(
    r'^(lunes|martes|miércoles|miercoles|jueves|viernes|sábado|sabado|domingo),?\s*',
    re.IGNORECASE,
)

_WORD = r'[a-záéíóúñ]+'

DAY_MONTH_YEAR_RE = re.compile(rf'(\d{{1,2}})\s+({_WORD})\.?\s+(\d{{4}})')
DAY_MONTH_RE = re.compile(rf'(\d{{1,2}})\s+({_WORD})')
SLASH_DATE_RE = re.compile(r"(?<!\d)(\d{1,2})/(\d{1,2})/(\d{2,4})(?!\d)")
DASH_DATE_RE = re.compile(r"(?<!\d)(\d{1,2})-(\d{1,2})-(\d{2,4})(?!\d)")

# "20 al 22 de junio", "28 de febrero - 2 de marzo 2026"
RANGE_RE = re.compile(
    rf'(\d{{1,2}})(?:\s+(?:de\s+)?({_WORD}))?\s*(?:-|–|al|a)\s*(\d{{1,2}})\s+(?:de\s+)?({_WORD})(?:\s+(?:de\s+)?(\d{{4}}))?'
)
# "5, 12 y 19 de abril" (two or more days sharing one month)
MULTI_DAY_RE = re.compile(
    rf'((?:\d{{1,2}}\s*(?:,\s*y|,|y)\s*)+\d{{1,2}})\s+(?:de\s+)?({_WORD})(?:\s+(?:de\s+)?(\d{{4}}))?'
)
TIME_RE = re.compile(r'(\d{1,2})[:.](\d{2})\s*(hrs?|am|pm)?', re.IGNORECASE)


def site_timezone():
    return pytz.timezone(settings.site_timezone)


def _resolve_now(now: Optional[datetime]) -> datetime:
    tz = site_timezone()
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        return tz.localize(now)
    return now


def _local_date(year: int, month: int, day: int) -> Optional[datetime]:
    try:
        return site_timezone().localize(datetime(year, month, day))
    except ValueError:
        return None


def _month_number(name: Optional[str]) -> Optional[int]:
    if not name:
        return None
    return SPANISH_MONTHS.get(name.lower().rstrip('.'))


def _roll_forward(date_value: datetime, now: datetime) -> datetime:
    """Moves a year-less date that is already in the past to next year."""
    if date_value >= now:
        return date_value
    return _local_date(date_value.year + 1, date_value.month, date_value.day) or date_value


def _prepare(date_text: str) -> str:
    cleaned = date_text.lower().strip()
    cleaned = WEEKDAY_PREFIX_RE.sub('', cleaned)
    return re.sub(r'\s+', ' ', cleaned)


def _full_year(year_text: str) -> int:
    year = int(year_text)
    return 2000 + year if len(year_text) == 2 else year


def parse_spanish_date(date_text: Optional[str], year_hint: Optional[int] = None, *, now: Optional[datetime] = None) -> Optional[datetime]:
    if not date_text:
        return None

    now = _resolve_now(now)
    year = year_hint or now.year
    cleaned = re.sub(r'\s+de\s+', ' ', _prepare(date_text))

    match = DAY_MONTH_YEAR_RE.search(cleaned)
    if match:
        month = _month_number(match.group(2))
        if month:
            parsed = _local_date(int(match.group(3)), month, int(match.group(1)))
            if parsed:
                return parsed

    match = DAY_MONTH_RE.search(cleaned)
    if match:
        month = _month_number(match.group(2))
        if month:
            parsed = _local_date(year, month, int(match.group(1)))
            if parsed:
                return _roll_forward(parsed, now)

    for pattern in (SLASH_DATE_RE, DASH_DATE_RE):
        match = pattern.search(cleaned)
        if match:
            parsed = _local_date(_full_year(match.group(3)), int(match.group(2)), int(match.group(1)))
            if parsed:
                return parsed

    try:
        parsed = date_parser.isoparse(date_text.strip())
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = site_timezone().localize(parsed)
    return parsed


def parse_date_range(date_text: Optional[str], *, now: Optional[datetime] = None) -> ParsedDateInfo:
    if not date_text:
        return ParsedDateInfo()

    now = _resolve_now(now)
    cleaned = _prepare(date_text)

    match = RANGE_RE.search(cleaned)
    if match:
        start_day, start_month_name, end_day, end_month_name, year_text = match.groups()
        end_month = _month_number(end_month_name)
        start_month = _month_number(start_month_name) if start_month_name else end_month
        if start_month and end_month:
            target_year = int(year_text) if year_text else now.year
            start = _local_date(target_year, start_month, int(start_day))
            end = _local_date(target_year, end_month, int(end_day))
            if start and end:
                if end < start:
                    # "28 de diciembre al 3 de enero"
                    end = _local_date(target_year + 1, end_month, int(end_day)) or end
                if not year_text and start < now:
                    start = _roll_forward(start, now)
                    end = _local_date(end.year + 1, end.month, end.day) or end
                return ParsedDateInfo(start=start, end=end)

    match = MULTI_DAY_RE.search(cleaned)
    if match:
        days_text, month_name, year_text = match.groups()
        month = _month_number(month_name)
        if month:
            target_year = int(year_text) if year_text else now.year
            dates: List[datetime] = [
                d for d in (_local_date(target_year, month, int(day)) for day in re.findall(r'\d{1,2}', days_text))
                if d is not None
            ]
            if dates:
                occurrences = [Occurrence(date=d.date()) for d in dates]
                return ParsedDateInfo(
                    start=dates[0],
                    end=dates[-1] if len(dates) > 1 else None,
                    occurrences=occurrences,
                )

    return ParsedDateInfo(start=parse_spanish_date(date_text, now=now))


def parse_time(time_text: Optional[str]) -> Optional[str]:
    """Returns "HH:MM". "20:30 hrs" stays 20:30; "8.30 pm" becomes 20:30."""
    if not time_text:
        return None

    match = TIME_RE.search(time_text)
    if not match:
        return None

    hours = int(match.group(1))
    minutes = match.group(2)
    period = (match.group(3) or '').lower()

    if period == 'pm' and hours < 12:
        hours += 12
    elif period == 'am' and hours == 12:
        hours = 0

    return f"{hours:02d}:{minutes}"


def apply_time(date_value: Optional[datetime], time_hhmm: Optional[str]) -> Optional[datetime]:
    if date_value is None or not time_hhmm:
        return date_value
    hours, minutes = (int(part) for part in time_hhmm.split(':'))
    try:
        naive = date_value.replace(tzinfo=None, hour=hours, minute=minutes)
    except ValueError:
        return date_value
    if date_value.tzinfo is None:
        return naive
    return site_timezone().localize(naive)


def to_utc_iso(date_value: Optional[datetime]) -> Optional[str]:
    if date_value is None:
        return None
    if date_value.tzinfo is None:
        date_value = site_timezone().localize(date_value)
    return date_value.astimezone(pytz.utc).isoformat()
