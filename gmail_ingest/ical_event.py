"""
Calendar invitation parsing.

Turns a text/calendar payload into a CalendarEvent summary (title, location,
start, end, recurrence) and an HTML fragment that is embedded in the post.
Only the first VEVENT is used; VTIMEZONE and other components are ignored.
"""

import html
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Any, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from icalendar import Calendar

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/Los_Angeles"

_FREQ_UNITS = {
    "SECONDLY": "second",
    "MINUTELY": "minute",
    "HOURLY": "hour",
    "DAILY": "day",
    "WEEKLY": "week",
    "MONTHLY": "month",
    "YEARLY": "year",
}

_WEEKDAYS = {
    "MO": "Monday",
    "TU": "Tuesday",
    "WE": "Wednesday",
    "TH": "Thursday",
    "FR": "Friday",
    "SA": "Saturday",
    "SU": "Sunday",
}

_MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

_BYDAY_RE = re.compile(r"^([+-]?\d+)?([A-Z]{2})$")


@dataclass(frozen=True)
class CalendarEvent:
    """Normalized summary of a calendar invitation."""

    title: str
    location: str
    start: Optional[str]
    end: Optional[str]
    recurrence: Optional[str] = None

    def to_html(self) -> str:
        """Render the event as an HTML block. Recurrence is left out when absent."""
        rows = [
            ("Location", self.location),
            ("Starts", self.start),
            ("Ends", self.end),
        ]
        if self.recurrence:
            rows.append(("Repeats", self.recurrence))
        items = "".join(
            f"<li><strong>{label}:</strong> {html.escape(value)}</li>"
            for label, value in rows
            if value
        )
        return (
            '<div class="email-calendar-event">'
            f"<h3>{html.escape(self.title)}</h3>"
            f"<ul>{items}</ul>"
            "</div>"
        )


def format_datetime(value: Any) -> str:
    """Long-form date-time, e.g. 'January 5, 2025 at 2:30 PM'. Dates omit the time."""
    if isinstance(value, datetime):
        hour = value.hour % 12 or 12
        meridiem = "AM" if value.hour < 12 else "PM"
        return f"{_MONTHS[value.month - 1]} {value.day}, {value.year} at {hour}:{value.minute:02d} {meridiem}"
    return f"{_MONTHS[value.month - 1]} {value.day}, {value.year}"


def _ordinal(n: int) -> str:
    if n == -1:
        return "last"
    if n < 0:
        return f"{_ordinal(-n)} to last"
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def _join(items: List[str]) -> str:
    if len(items) <= 1:
        return "".join(items)
    return ", ".join(items[:-1]) + " and " + items[-1]


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


class CalendarEventParser:
    """Parses text/calendar payloads into CalendarEvent summaries."""

    def __init__(self, default_timezone: str = DEFAULT_TIMEZONE):
        self.default_zone = ZoneInfo(default_timezone)

    def parse(self, payload: Optional[bytes]) -> Optional[CalendarEvent]:
        if not payload:
            return None
        try:
            cal = Calendar.from_ical(payload)
        except Exception as e:
            logger.warning("Could not parse calendar payload: %s", e)
            return None

        events = cal.walk("VEVENT")
        if not events:
            logger.info("Calendar payload has no VEVENT component")
            return None
        event = events[0]

        # broken properties only raise once their values are read
        try:
            return self._summarize(event)
        except Exception as e:
            logger.warning("Could not read calendar event: %s", e)
            return None

    def _summarize(self, event: Any) -> CalendarEvent:
        start_prop = event.get("dtstart")
        end_prop = event.get("dtend")
        zone = self._zone_for(start_prop)
        return CalendarEvent(
            title=self._text(event.get("summary")),
            location=self._text(event.get("location")),
            start=self._format_instant(start_prop, zone),
            end=self._format_instant(end_prop, self._zone_for(end_prop) if end_prop is not None else zone),
            recurrence=self._describe_rrule(_first(event.get("rrule")), zone),
        )

    def render(self, payload: Optional[bytes]) -> Optional[str]:
        """HTML fragment for the payload's first event, or None."""
        event = self.parse(payload)
        return event.to_html() if event else None

    @staticmethod
    def _text(prop: Any) -> str:
        """Prefer the property's structured value; fall back to its iCalendar string."""
        prop = _first(prop)
        if prop is None:
            return ""
        if isinstance(prop, str):
            return str(prop)
        try:
            return prop.to_ical().decode("utf-8", errors="replace")
        except AttributeError:
            return str(prop)

    def _zone_for(self, prop: Any) -> tzinfo:
        """The event's own zone (TZID) when supplied, else the configured default."""
        params = getattr(prop, "params", None) or {}
        tzid = params.get("TZID")
        if tzid:
            try:
                return ZoneInfo(str(tzid))
            except (ZoneInfoNotFoundError, ValueError):
                own = getattr(getattr(prop, "dt", None), "tzinfo", None)
                if own is not None:
                    return own
                logger.warning("Unknown TZID %s; using default time zone", tzid)
        return self.default_zone

    @staticmethod
    def _localize(value: Any, zone: tzinfo) -> Any:
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.replace(tzinfo=zone)
            return value.astimezone(zone)
        return value

    def _format_instant(self, prop: Any, zone: tzinfo) -> Optional[str]:
        value = getattr(prop, "dt", None)
        if not isinstance(value, (datetime, date)):
            return None
        return format_datetime(self._localize(value, zone))

    def _describe_rrule(self, rule: Any, zone: tzinfo) -> Optional[str]:
        """Human-readable text for an RRULE, e.g. 'every 2 weeks on Monday and Friday'."""
        if not rule:
            return None
        freq = _first(rule.get("FREQ"))
        unit = _FREQ_UNITS.get(str(freq).upper()) if freq else None
        if not unit:
            return None

        interval = int(_first(rule.get("INTERVAL")) or 1)
        text = f"every {unit}" if interval == 1 else f"every {interval} {unit}s"

        days = []
        for byday in rule.get("BYDAY") or []:
            match = _BYDAY_RE.match(str(byday).upper())
            if not match or match.group(2) not in _WEEKDAYS:
                continue
            name = _WEEKDAYS[match.group(2)]
            days.append(f"the {_ordinal(int(match.group(1)))} {name}" if match.group(1) else name)
        if days:
            text += f" on {_join(days)}"

        month_days = [int(d) for d in rule.get("BYMONTHDAY") or [] if 1 <= abs(int(d)) <= 31]
        if month_days:
            text += " on the " + _join([_ordinal(d) if d != -1 else "last day" for d in month_days])

        months = [_MONTHS[int(m) - 1] for m in rule.get("BYMONTH") or [] if 1 <= int(m) <= 12]
        if months:
            text += f" in {_join(months)}"

        until = _first(rule.get("UNTIL"))
        count = _first(rule.get("COUNT"))
        if until is not None and isinstance(until, (datetime, date)):
            local = self._localize(until, zone)
            text += f" until {format_datetime(local.date() if isinstance(local, datetime) else local)}"
        elif count:
            count = int(count)
            text += " for 1 time" if count == 1 else f" for {count} times"
        return text
