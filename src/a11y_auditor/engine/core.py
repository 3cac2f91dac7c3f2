# src/a11y_auditor/engine/core.py
from typing import Callable, List, Optional, Sequence, Set, Tuple

from bs4 import BeautifulSoup, Tag

from a11y_extraction.utils import normalize_text

# (engine rule id, severity, help, failure summary)
EngineFinding = Tuple[str, str, str, str]

EngineRuleFunc = Callable[[Tag, BeautifulSoup], List[EngineFinding]]

DOCUMENT = "[document]"


def engine_rule(ids: List[str], category: str):
    """
    Declares which engine ids a check can report and the category they
    score under. Lets the registry list every possible id up front.
    """
    def decorator(func):
        func.defined_ids = list(ids)
        func.category = category
        return func
    return decorator


class ElementDefinition:
    """
    Binds tag names to the checks that run on them. Use DOCUMENT as the tag
    name for checks that look at the whole page once.
    """

    def __init__(self, tag_names: Sequence[str], rules: Optional[List[EngineRuleFunc]] = None):
        self.tag_names = tuple(tag_names)
        self.rules = rules or []

        ids: Set[str] = set()
        for rule in self.rules:
            ids.update(getattr(rule, "defined_ids", []))
        self.ids = sorted(ids)


def accessible_name(tag: Tag, doc: BeautifulSoup) -> str:
    """
    Approximates the accessible name: aria-labelledby, aria-label, text
    content (including alt of nested images), then title.
    """
    labelledby = tag.get("aria-labelledby")
    if isinstance(labelledby, str) and labelledby.strip():
        parts = []
        for ref in labelledby.split():
            target = doc.find(id=ref)
            if target is not None:
                parts.append(normalize_text(target.get_text(" ")))
        name = " ".join(p for p in parts if p)
        if name:
            return name

    aria_label = tag.get("aria-label")
    if isinstance(aria_label, str) and aria_label.strip():
        return normalize_text(aria_label)

    text = normalize_text(tag.get_text(" "))
    if text:
        return text

    for img in tag.find_all("img"):
        alt = img.get("alt")
        if isinstance(alt, str) and alt.strip():
            return normalize_text(alt)

    title = tag.get("title")
    if isinstance(title, str) and title.strip():
        return normalize_text(title)
    return ""


def is_hidden(tag: Tag) -> bool:
    if tag.has_attr("hidden") or str(tag.get("aria-hidden", "")).lower() == "true":
        return True
    style = str(tag.get("style", "")).replace(" ", "").lower()
    return "display:none" in style or "visibility:hidden" in style
