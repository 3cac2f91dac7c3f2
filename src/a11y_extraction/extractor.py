# src/a11y_extraction/extractor.py
import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp
from bs4 import BeautifulSoup, Tag

from .model import (
    ElementSnapshot,
    ExtractionOptions,
    ExtractionSnapshot,
    FormFieldSnapshot,
    FormSnapshot,
    HeadingNode,
    ImageSnapshot,
    LinkSnapshot,
)
from .utils import (
    attributes_to_dict,
    build_selector,
    has_aria,
    has_keyboard_hooks,
    normalize_text,
    resolved_style,
    sanitize_html,
    truncate,
)

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; a11y-auditor/0.4; +https://www.w3.org/WAI/)"

_FIELD_TAGS = ("input", "select", "textarea")
_SKIPPED_INPUT_TYPES = {"hidden", "submit", "reset", "button", "image"}
_HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")


class ExtractionError(Exception):
    """The page could not be loaded or parsed into a snapshot."""


class DOMExtractor:
    """
    Builds an ExtractionSnapshot from raw HTML or from a URL.

    URL input is downloaded with aiohttp; parsing is always done with
    BeautifulSoup so the result is the same whichever way the HTML arrived.
    """

    def __init__(
            self,
            html: Optional[str] = None,
            url: Optional[str] = None,
            options: Optional[ExtractionOptions] = None,
            user_agent: str = DEFAULT_USER_AGENT,
    ):
        if html is None and url is None:
            raise ValueError("DOMExtractor needs either html or url.")
        self.html = html
        self.url = url
        self.options = options or ExtractionOptions()
        self.user_agent = user_agent

    async def extract_all(self) -> ExtractionSnapshot:
        """Extracts every supported element collection plus page metadata."""
        if self.html is not None:
            return self.extract_from_html(self.html, url=self.url)

        html = await self.fetch_html(self.url)
        return self.extract_from_html(html, url=self.url)

    async def fetch_html(self, url: str) -> str:
        timeout = aiohttp.ClientTimeout(total=self.options.timeout_ms / 1000)
        headers = {"User-Agent": self.user_agent, "Accept": "text/html,application/xhtml+xml"}
        try:
            async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
                async with session.get(url, allow_redirects=True) as response:
                    if response.status != 200:
                        raise ExtractionError(f"Failed to load {url} (HTTP {response.status})")
                    try:
                        return await response.text()
                    except UnicodeDecodeError:
                        content_bytes = await response.read()
                        return content_bytes.decode("utf-8", errors="replace")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ExtractionError(f"Failed to load {url}: {e}") from e

    def extract_from_html(self, html: str, url: Optional[str] = None) -> ExtractionSnapshot:
        clean_html = (html or "").replace("\ufeff", "").strip()
        soup = BeautifulSoup(clean_html, "html.parser")

        headings = [self._snapshot(tag) for tag in soup.find_all(_HEADING_TAGS)]

        return ExtractionSnapshot(
            url=url,
            images=tuple(self._extract_images(soup)),
            links=tuple(self._extract_links(soup)),
            forms=tuple(self._extract_forms(soup)),
            headings=tuple(headings),
            aria_elements=tuple(self._snapshot(tag) for tag in soup.find_all(has_aria)),
            interactive_elements=tuple(self._snapshot(tag) for tag in soup.find_all(has_keyboard_hooks)),
            page_title=self._page_title(soup),
            page_language=self._page_language(soup),
            meta_description=self._meta_description(soup),
            document_outline=tuple(build_document_outline(soup.find_all(_HEADING_TAGS))),
            raw_html=sanitize_html(soup, self.options.max_raw_html_length),
        )

    # -------- Element Snapshots --------

    def _snapshot_kwargs(self, tag: Tag) -> Dict[str, Any]:
        return {
            "selector": build_selector(tag),
            "html": truncate(str(tag), self.options.max_element_html_length),
            "tag_name": tag.name.lower(),
            "attributes": attributes_to_dict(tag),
            "text_content": truncate(normalize_text(tag.get_text(" ")), self.options.max_text_length),
            "style": resolved_style(tag),
        }

    def _snapshot(self, tag: Tag) -> ElementSnapshot:
        return ElementSnapshot(**self._snapshot_kwargs(tag))

    def _extract_images(self, soup: BeautifulSoup) -> List[ImageSnapshot]:
        out = []
        for img in soup.find_all("img"):
            alt = img.get("alt")
            out.append(ImageSnapshot(
                **self._snapshot_kwargs(img),
                src=(img.get("src") or img.get("data-src") or "").strip(),
                alt=alt if isinstance(alt, str) else None,
                has_alt=img.has_attr("alt"),
            ))
        return out

    def _extract_links(self, soup: BeautifulSoup) -> List[LinkSnapshot]:
        out = []
        for anchor in soup.find_all("a"):
            href = anchor.get("href")
            out.append(LinkSnapshot(
                **self._snapshot_kwargs(anchor),
                href=href.strip() if isinstance(href, str) else None,
            ))
        return out

    def _extract_forms(self, soup: BeautifulSoup) -> List[FormSnapshot]:
        labels_by_id = self._labels_by_target(soup)
        forms: List[FormSnapshot] = []

        for form in soup.find_all("form"):
            fields = [self._field(tag, soup, labels_by_id) for tag in self._fields_in(form)]
            forms.append(FormSnapshot(**self._snapshot_kwargs(form), fields=tuple(fields)))

        # Fields outside any <form> are grouped into one implicit form.
        orphans = [
            tag for tag in self._fields_in(soup)
            if tag.find_parent("form") is None
        ]
        if orphans:
            fields = [self._field(tag, soup, labels_by_id) for tag in orphans]
            forms.append(FormSnapshot(selector="", tag_name="form", fields=tuple(fields)))

        return forms

    @staticmethod
    def _fields_in(root: Tag) -> List[Tag]:
        out = []
        for tag in root.find_all(_FIELD_TAGS):
            if tag.name == "input" and (tag.get("type") or "text").lower() in _SKIPPED_INPUT_TYPES:
                continue
            out.append(tag)
        return out

    @staticmethod
    def _labels_by_target(soup: BeautifulSoup) -> Dict[str, str]:
        out: Dict[str, str] = {}
        for label in soup.find_all("label"):
            target = label.get("for")
            if isinstance(target, str) and target:
                out[target] = normalize_text(label.get_text(" "))
        return out

    def _field(self, tag: Tag, soup: BeautifulSoup, labels_by_id: Dict[str, str]) -> FormFieldSnapshot:
        label_text = None
        field_id = tag.get("id")
        if isinstance(field_id, str) and field_id in labels_by_id:
            label_text = labels_by_id[field_id]
        else:
            wrapping = tag.find_parent("label")
            if wrapping is not None:
                label_text = normalize_text(wrapping.get_text(" "))

        labelledby = tag.get("aria-labelledby")
        if not label_text and isinstance(labelledby, str):
            texts = []
            for ref in labelledby.split():
                ref_tag = soup.find(id=ref)
                if ref_tag is not None:
                    texts.append(normalize_text(ref_tag.get_text(" ")))
            label_text = " ".join(t for t in texts if t) or None

        field_type = tag.get("type")
        return FormFieldSnapshot(
            **self._snapshot_kwargs(tag),
            name=tag.get("name"),
            type=field_type.lower() if isinstance(field_type, str) else None,
            label_text=label_text or None,
            aria_label=tag.get("aria-label"),
            aria_labelledby=labelledby if isinstance(labelledby, str) else None,
        )

    # -------- Page Metadata --------

    @staticmethod
    def _page_title(soup: BeautifulSoup) -> str:
        el = soup.find("title")
        return normalize_text(el.get_text()) if el else ""

    @staticmethod
    def _page_language(soup: BeautifulSoup) -> Optional[str]:
        html_tag = soup.find("html")
        if html_tag is None:
            return None
        lang = html_tag.get("lang")
        if not isinstance(lang, str):
            return None
        return lang.strip() or None

    @staticmethod
    def _meta_description(soup: BeautifulSoup) -> Optional[str]:
        meta = soup.find("meta", attrs={"name": "description"})
        if not meta:
            return None
        return (meta.get("content") or "").strip() or None


def build_document_outline(heading_tags: List[Tag]) -> List[HeadingNode]:
    """
    Nests headings by level: each heading becomes a child of the closest
    preceding heading with a lower level.
    """
    # Mutable scaffolding first; HeadingNode is frozen.
    roots: List[Dict[str, Any]] = []
    stack: List[Dict[str, Any]] = []

    for tag in heading_tags:
        node = {
            "level": int(tag.name[1]),
            "text": normalize_text(tag.get_text(" ")),
            "selector": build_selector(tag),
            "children": [],
        }
        while stack and stack[-1]["level"] >= node["level"]:
            stack.pop()
        if stack:
            stack[-1]["children"].append(node)
        else:
            roots.append(node)
        stack.append(node)

    def freeze(raw: Dict[str, Any]) -> HeadingNode:
        return HeadingNode(
            level=raw["level"],
            text=raw["text"],
            selector=raw["selector"],
            children=tuple(freeze(child) for child in raw["children"]),
        )

    return [freeze(root) for root in roots]


async def extract_from_page(page: Any, options: Optional[ExtractionOptions] = None) -> ExtractionSnapshot:
    """
    Extracts from a live browser page (playwright-style: `await page.content()`
    and a `url` attribute). The rendered DOM is serialized once and parsed like
    any other HTML.
    """
    html = await page.content()
    url = getattr(page, "url", None)
    if callable(url):
        url = url()
    return DOMExtractor(html=html, url=url, options=options).extract_from_html(html, url=url)

