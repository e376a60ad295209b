"""Text, URL and date normalization for scraped news records.

Every record leaving the crawler goes through :func:`build_record`, which
guarantees an absolute URL, markup-free text and ISO-8601 timestamps.

Date policy: :func:`normalize_date` never raises. Input it cannot parse is
replaced by the fetch time. This is lossy on purpose so a record is never
dropped for a bad date; callers that need to know use :func:`parse_date`,
which reports whether the value was actually parsed.
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Mapping, NamedTuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from dateutil import tz
from dateutil.parser import isoparse
from dateutil.parser import parse as _dateutil_parse

if TYPE_CHECKING:
    from .adapters import SourceAdapter
    from .extraction import RawCandidate

logger = logging.getLogger(__name__)

# Common US timezone abbreviations so dateutil does not emit
# UnknownTimezoneWarning and keeps the offset.
_TZINFOS = {
    "CST": tz.gettz("America/Chicago"),
    "CDT": tz.gettz("America/Chicago"),
    "EST": tz.gettz("America/New_York"),
    "EDT": tz.gettz("America/New_York"),
    "MST": tz.gettz("America/Denver"),
    "MDT": tz.gettz("America/Denver"),
    "PST": tz.gettz("America/Los_Angeles"),
    "PDT": tz.gettz("America/Los_Angeles"),
    "UTC": tz.UTC,
    "GMT": tz.UTC,
}

RECORD_FIELDS = (
    "source",
    "url",
    "title",
    "description",
    "published_at",
    "fetched_at",
    "category",
    "author",
    "content_type",
    "full_content",
    "preview_content",
)

_WHITESPACE_RE = re.compile(r"\s+")
_TAG_RE = re.compile(r"<[^>]+>")
_ISO_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}"
    r"([T ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?)?"
    r"(Z|[+-]\d{2}:?\d{2})?$"
)
_RELATIVE_RE = re.compile(
    r"\b(?P<amount>\d+|an?|one)\s*"
    r"(?P<unit>seconds?|secs?|minutes?|mins?|hours?|hrs?|days?|weeks?|months?)"
    r"\s+ago",
    re.IGNORECASE,
)
_AMPM_RE = re.compile(r"\d\s*(am|pm)\b", re.IGNORECASE)
_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 7 * 86400,
}


class DateParseResult(NamedTuple):
    """ISO-8601 value plus whether the raw input was actually understood."""

    value: str
    parsed: bool


@dataclass
class NormalizedRecord:
    """Final, persisted shape of one scraped article."""

    source: str
    url: str
    title: str
    description: str = ""
    published_at: str = ""
    fetched_at: str = ""
    category: str | None = None
    author: str | None = None
    content_type: str | None = "Article"
    full_content: str = ""
    preview_content: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render ``value`` as UTC ISO-8601 with millisecond precision and ``Z``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def clean_text(value: str | None) -> str:
    """Strip markup and entities, then collapse runs of whitespace."""
    if not value:
        return ""
    text = str(value)
    if "<" in text and ">" in text:
        text = BeautifulSoup(text, "html.parser").get_text(" ")
        text = _TAG_RE.sub(" ", text)
    text = html.unescape(text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def resolve_url(href: str | None, base: str) -> str:
    """Return ``href`` if already absolute, otherwise resolve it against ``base``.

    Applying this twice yields the same result as applying it once.
    """
    if not href:
        return ""
    href = href.strip()
    if href.lower().startswith(("http://", "https://")):
        return href
    return urljoin(base, href)


def _parse_relative(raw: str, now: datetime) -> datetime | None:
    match = _RELATIVE_RE.search(raw)
    if not match:
        return None

    amount_text = match.group("amount").lower()
    amount = 1 if amount_text in {"a", "an", "one"} else int(amount_text)
    unit = match.group("unit").lower()

    if unit.startswith("mo"):
        return now - timedelta(days=30 * amount)
    if unit.startswith("mi"):
        seconds = _UNIT_SECONDS["m"]
    else:
        seconds = _UNIT_SECONDS[unit[0]]
    return now - timedelta(seconds=seconds * amount)


def _parse_clock_format(raw: str) -> datetime:
    # "Mar 18, 2025 • 5:16PM EDT" style listing dates
    text = raw.replace("•", " ").replace("|", " ")
    text = re.sub(r"(\d)(am|pm)\b", r"\1 \2", text, flags=re.IGNORECASE)
    text = _WHITESPACE_RE.sub(" ", text).strip(" ,")
    return _dateutil_parse(text, tzinfos=_TZINFOS)


def parse_date(raw: str | None, now: datetime | None = None) -> DateParseResult:
    """Normalize ``raw`` and report whether it was parsed.

    Accepts ISO timestamps, relative phrases ("3 hours ago", "an hour ago"),
    listing formats with a comma and AM/PM clock plus a timezone
    abbreviation, and anything else dateutil understands. Naive values are
    taken as UTC. Unparsable input yields ``now`` with ``parsed=False``.
    """
    now = now or utcnow()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    text = clean_text(raw)
    if not text:
        return DateParseResult(format_timestamp(now), False)

    try:
        if _ISO_RE.match(text):
            return DateParseResult(format_timestamp(isoparse(text)), True)

        relative = _parse_relative(text, now)
        if relative is not None:
            return DateParseResult(format_timestamp(relative), True)

        if "," in text and _AMPM_RE.search(text):
            return DateParseResult(format_timestamp(_parse_clock_format(text)), True)

        parsed = _dateutil_parse(text, tzinfos=_TZINFOS)
        return DateParseResult(format_timestamp(parsed), True)
    except (ValueError, OverflowError) as exc:
        logger.debug("Unparsable date %r, using fetch time: %s", raw, exc)
        return DateParseResult(format_timestamp(now), False)


def normalize_date(raw: str | None, now: datetime | None = None) -> str:
    """Return an ISO-8601 UTC timestamp for ``raw``; never raises.

    Unparsable input falls back to ``now`` (the fetch time). See
    :func:`parse_date` for the variant that exposes the failure.
    """
    return parse_date(raw, now).value


def sanitize(record: NormalizedRecord | Mapping[str, Any]) -> dict[str, Any]:
    """Trim ``record`` down to the persisted field set."""
    data = record.to_dict() if isinstance(record, NormalizedRecord) else dict(record)
    return {field: data.get(field) for field in RECORD_FIELDS}


def build_record(
    candidate: "RawCandidate",
    adapter: "SourceAdapter",
    full_content: str = "",
    now: datetime | None = None,
) -> NormalizedRecord:
    """Turn a scraped listing candidate into a :class:`NormalizedRecord`."""
    now = now or utcnow()
    date_result = parse_date(candidate.published, now)
    if not date_result.parsed and candidate.published:
        logger.debug(
            "[%s] falling back to fetch time for date %r",
            adapter.name,
            candidate.published,
        )

    description = clean_text(candidate.description)
    return NormalizedRecord(
        source=adapter.name,
        url=resolve_url(candidate.url, adapter.base_url),
        title=clean_text(candidate.title),
        description=description,
        published_at=date_result.value,
        fetched_at=format_timestamp(now),
        category=clean_text(candidate.category) or None,
        author=clean_text(candidate.author) or None,
        content_type=adapter.content_type,
        full_content=(full_content or "").strip(),
        preview_content=description or None,
    )
