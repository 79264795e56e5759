"""Parsing utilities for fetched articles."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional, Union

from bs4 import BeautifulSoup
from dateutil import parser as date_parser
from dateutil import tz

_WHITESPACE_RE = re.compile(r"\s+")


def html_to_text(html: Optional[str]) -> str:
    """Strip markup and collapse whitespace into plain text."""
    if not html:
        return ""
    if "<" not in html:
        return _WHITESPACE_RE.sub(" ", html).strip()
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    text = soup.get_text(separator=" ")
    return _WHITESPACE_RE.sub(" ", text).strip()


def parse_publish_date(
    value: Optional[Union[str, datetime]],
    *,
    default_timezone: Union[str, tz.tzfile, None] = "UTC",
) -> Optional[datetime]:
    """Parse a publish date into an aware UTC datetime.

    Naive values are interpreted in ``default_timezone``. Unparseable input
    returns None rather than raising.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = date_parser.parse(value)
        except (ValueError, OverflowError):
            return None

    if dt.tzinfo is None:
        tzinfo = tz.gettz(default_timezone) if isinstance(default_timezone, str) else default_timezone
        if tzinfo is None:
            tzinfo = timezone.utc
        dt = dt.replace(tzinfo=tzinfo)

    return dt.astimezone(timezone.utc).replace(microsecond=0)


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters on a word boundary, adding an ellipsis."""
    if len(text) <= limit:
        return text
    cut = text[: max(limit - 1, 0)].rsplit(" ", 1)[0].rstrip(",;:")
    return cut + "…"
