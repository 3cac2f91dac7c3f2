"""
Page-level checks. These run once per document and return
(offending tag or None, finding) pairs so the runner can build selectors.
"""
from collections import Counter
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from ..core import DOCUMENT, ElementDefinition, EngineFinding, engine_rule

DocumentFinding = Tuple[Optional[Tag], EngineFinding]

_HEADINGS = ["h1", "h2", "h3", "h4", "h5", "h6"]


# --- RULES ---

@engine_rule(ids=["html-has-lang"], category="language")
def check_html_lang(tag: BeautifulSoup, doc: BeautifulSoup) -> List[DocumentFinding]:
    html_tag = doc.find("html")
    lang = html_tag.get("lang") if html_tag is not None else None
    if isinstance(lang, str) and lang.strip():
        return []
    return [(html_tag, (
        "html-has-lang", "serious",
        "<html> element must have a lang attribute",
        "The <html> element does not have a lang attribute",
    ))]


@engine_rule(ids=["document-title"], category="structure")
def check_document_title(tag: BeautifulSoup, doc: BeautifulSoup) -> List[DocumentFinding]:
    title = doc.find("title")
    if title is not None and title.get_text(strip=True):
        return []
    return [(doc.find("html"), (
        "document-title", "serious",
        "Documents must have <title> element to aid in navigation",
        "Document does not have a non-empty <title> element",
    ))]


@engine_rule(ids=["heading-order"], category="structure")
def check_heading_order(tag: BeautifulSoup, doc: BeautifulSoup) -> List[DocumentFinding]:
    out: List[DocumentFinding] = []
    previous = 0
    for heading in doc.find_all(_HEADINGS):
        level = int(heading.name[1])
        if previous and level > previous + 1:
            out.append((heading, (
                "heading-order", "moderate",
                "Heading levels should only increase by one",
                f"Heading level jumps from h{previous} to h{level}",
            )))
        previous = level
    return out


@engine_rule(ids=["duplicate-id"], category="parsing")
def check_duplicate_ids(tag: BeautifulSoup, doc: BeautifulSoup) -> List[DocumentFinding]:
    tagged = [t for t in doc.find_all(id=True) if isinstance(t.get("id"), str) and t.get("id").strip()]
    counts = Counter(t.get("id") for t in tagged)
    out: List[DocumentFinding] = []
    # Each duplicated id is reported once, on its second occurrence.
    for element_id, count in counts.items():
        if count < 2:
            continue
        occurrences = [t for t in tagged if t.get("id") == element_id]
        out.append((occurrences[1], (
            "duplicate-id", "minor",
            "id attribute value must be unique",
            f"Document has multiple elements with id '{element_id}'",
        )))
    return out


# --- DEFINITION ---
DEFINITION = ElementDefinition(
    tag_names=[DOCUMENT],
    rules=[check_html_lang, check_document_title, check_heading_order, check_duplicate_ids],
)
