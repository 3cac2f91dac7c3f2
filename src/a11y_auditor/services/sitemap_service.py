# src/a11y_auditor/services/sitemap_service.py
import asyncio
import logging
import re
from collections import deque
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Iterable, List, Optional, Tuple

import aiohttp
from bs4 import BeautifulSoup
from pydantic import BaseModel

from ..errors import SitemapError
from ..model import SitemapFilterOptions

logger = logging.getLogger(__name__)

# W3C datetime: YYYY, YYYY-MM, YYYY-MM-DD, then optional time with any fraction and offset.
_W3C_DATETIME = re.compile(
    r"^(\d{4})(?:-(\d{2})(?:-(\d{2})"
    r"(?:[T ](\d{2}):(\d{2})(?::(\d{2})(?:\.(\d+))?)?\s*(Z|[+-]\d{2}:?\d{2})?)?)?)?$",
    re.IGNORECASE,
)


class SitemapEntry(BaseModel):
    loc: str
    lastmod: Optional[str] = None


class ParsedSitemap(BaseModel):
    is_index: bool
    entries: List[SitemapEntry]


def _child_text(element, name: str) -> Optional[str]:
    child = element.find(name, recursive=False)
    if child is None:
        return None
    return child.get_text(strip=True) or None


def parse_sitemap_xml(xml: str) -> ParsedSitemap:
    """
    Parses a <urlset> or <sitemapindex> document. Prefixed namespaces, CDATA
    and comments are handled by the XML parser; entries without <loc> are dropped.
    """
    soup = BeautifulSoup(xml or "", "xml")
    is_index = soup.find("sitemapindex") is not None

    entries = []
    for element in soup.find_all("sitemap" if is_index else "url"):
        loc = _child_text(element, "loc")
        if not loc:
            continue
        entries.append(SitemapEntry(loc=loc, lastmod=_child_text(element, "lastmod")))
    return ParsedSitemap(is_index=is_index, entries=entries)


def glob_to_regex(pattern: str) -> re.Pattern:
    """`**` matches anything, `*` anything but '/'. Case-insensitive, anchored."""
    out = ["^"]
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if char == "*":
            if i + 1 < len(pattern) and pattern[i + 1] == "*":
                out.append(".*")
                i += 2
                continue
            out.append("[^/]*")
        else:
            out.append(re.escape(char))
        i += 1
    out.append("$")
    return re.compile("".join(out), re.IGNORECASE)


def _offset(text: Optional[str]) -> tzinfo:
    if not text or text.upper() == "Z":
        return timezone.utc
    sign = -1 if text[0] == "-" else 1
    digits = text[1:].replace(":", "")
    return timezone(sign * timedelta(hours=int(digits[:2]), minutes=int(digits[2:])))


def _parse_lastmod(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    match = _W3C_DATETIME.match(value.strip())
    if not match:
        return None
    year, month, day, hour, minute, second, fraction, offset = match.groups()
    try:
        parsed = datetime(
            int(year), int(month or 1), int(day or 1),
            int(hour or 0), int(minute or 0), int(second or 0),
            int((fraction or "0")[:6].ljust(6, "0")),
            tzinfo=_offset(offset),
        )
    except ValueError:
        return None
    return parsed.timestamp()


def _sort_key(entry: SitemapEntry) -> Tuple[int, float, str]:
    # Dated entries first (newest first), then undated; ties by loc.
    timestamp = _parse_lastmod(entry.lastmod)
    if timestamp is None:
        return 1, 0.0, entry.loc
    return 0, -timestamp, entry.loc


def filter_sitemap_urls(entries: Iterable[SitemapEntry], options: SitemapFilterOptions) -> List[SitemapEntry]:
    include = [glob_to_regex(p) for p in options.include if p]
    exclude = [glob_to_regex(p) for p in options.exclude if p]

    out = list(entries)
    if include:
        out = [e for e in out if any(p.match(e.loc) for p in include)]
    if exclude:
        out = [e for e in out if not any(p.match(e.loc) for p in exclude)]

    out.sort(key=_sort_key)
    if options.max_pages and options.max_pages > 0:
        out = out[:options.max_pages]
    return out


class SitemapService:
    """Discovers page URLs from a sitemap or sitemap index over aiohttp."""

    def __init__(self, timeout_s: float = 30, user_agent: Optional[str] = None):
        self.timeout_s = timeout_s
        self.user_agent = user_agent

    async def fetch_text(self, session: aiohttp.ClientSession, url: str) -> str:
        try:
            async with session.get(url, allow_redirects=True) as response:
                if response.status != 200:
                    raise SitemapError(f"Failed to fetch sitemap: {url} ({response.status})")
                return await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SitemapError(f"Failed to fetch sitemap: {url} ({e})") from e

    async def discover(self, sitemap_url: str, max_urls: int) -> List[SitemapEntry]:
        """
        Breadth-first walk over nested sitemap indexes, collecting at most
        `max_urls` page entries. Any fetch failure raises SitemapError.
        """
        headers = {"User-Agent": self.user_agent} if self.user_agent else None
        timeout = aiohttp.ClientTimeout(total=self.timeout_s)

        visited = set()
        queue = deque([sitemap_url])
        found: List[SitemapEntry] = []

        async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
            while queue and len(found) < max_urls:
                url = queue.popleft()
                if url in visited:
                    continue
                visited.add(url)

                parsed = parse_sitemap_xml(await self.fetch_text(session, url))
                logger.debug("Sitemap %s: %d entries (index=%s).", url, len(parsed.entries), parsed.is_index)

                if parsed.is_index:
                    queue.extend(entry.loc for entry in parsed.entries)
                    continue

                for entry in parsed.entries:
                    if len(found) >= max_urls:
                        break
                    found.append(entry)

        return found

    async def discover_and_filter(self, sitemap_url: str, options: SitemapFilterOptions) -> List[str]:
        discovered = await self.discover(sitemap_url, options.max_pages or 50)
        return [entry.loc for entry in filter_sitemap_urls(discovered, options)]
