"""
Minimal iCalendar (RFC 5545) reader for channel-manager availability feeds.

Only VEVENT blocks with UID, DTSTART and DTEND are returned; everything else in
the feed is ignored.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional

import requests

from property_crm.core.config import settings

logger = logging.getLogger(__name__)


class CalendarFetchError(Exception):
    pass


@dataclass
class CalendarEvent:
    uid: str
    summary: str
    description: str
    start: date
    end: date
    source: str  # airbnb / booking_com / other


def _unfold(text: str) -> List[str]:
    """Join continuation lines (a leading space or tab continues the previous line)."""
    lines: List[str] = []
    for raw in text.splitlines():
        if raw[:1] in (" ", "\t") and lines:
            lines[-1] += raw[1:]
        else:
            lines.append(raw.rstrip("\r"))
    return lines


def parse_ical_date(value: str) -> date:
    """Accepts 20240101, 20240101T120000 and 20240101T120000Z."""
    value = value.strip()
    if "T" in value:
        return datetime.strptime(value[:15], "%Y%m%dT%H%M%S").date()
    return datetime.strptime(value[:8], "%Y%m%d").date()


def _unescape(value: str) -> str:
    return (
        value.replace("\\n", "\n")
        .replace("\\N", "\n")
        .replace("\\,", ",")
        .replace("\\;", ";")
        .replace("\\\\", "\\")
    )


def _infer_source(uid: str, summary: str) -> str:
    uid_l = uid.lower()
    summary_l = summary.lower()
    if "airbnb" in uid_l or "airbnb" in summary_l:
        return "airbnb"
    if "booking" in uid_l or "booking.com" in summary_l:
        return "booking_com"
    return "other"


def parse_ical(text: str) -> List[CalendarEvent]:
    events: List[CalendarEvent] = []
    current: Optional[Dict[str, str]] = None

    for line in _unfold(text):
        if line == "BEGIN:VEVENT":
            current = {}
            continue
        if line == "END:VEVENT":
            if current is not None and all(k in current for k in ("UID", "DTSTART", "DTEND")):
                try:
                    start = parse_ical_date(current["DTSTART"])
                    end = parse_ical_date(current["DTEND"])
                except ValueError:
                    logger.warning("Skipping event %s with unreadable dates", current.get("UID"))
                else:
                    summary = _unescape(current.get("SUMMARY", ""))
                    events.append(
                        CalendarEvent(
                            uid=current["UID"],
                            summary=summary,
                            description=_unescape(current.get("DESCRIPTION", "")),
                            start=start,
                            end=end,
                            source=_infer_source(current["UID"], summary),
                        )
                    )
            current = None
            continue
        if current is None or ":" not in line:
            continue

        name, value = line.split(":", 1)
        # Drop parameters such as DTSTART;VALUE=DATE
        key = name.split(";", 1)[0].upper()
        if key in ("UID", "SUMMARY", "DESCRIPTION", "DTSTART", "DTEND"):
            current[key] = value

    return events


def fetch_calendar(url: str) -> str:
    try:
        resp = requests.get(url, timeout=settings.CALENDAR_FETCH_TIMEOUT)
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.exception("Failed to fetch calendar %s", url)
        raise CalendarFetchError(str(e)) from e
    return resp.text
