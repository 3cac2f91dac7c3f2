# src/a11y_extraction/utils.py
import re
from typing import Dict, List, Optional

from bs4 import BeautifulSoup, Comment, Tag

from .color import parse_color

_WHITESPACE = re.compile(r"\s+")
_SIMPLE_ID = re.compile(r"^[A-Za-z][\w-]*$")


def normalize_text(text: Optional[str]) -> str:
    """Collapses runs of whitespace and trims the result."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


def truncate(text: str, limit: int) -> str:
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit]


def attributes_to_dict(tag: Tag) -> Dict[str, str]:
    """
    Flattens bs4 attributes into plain strings.
    Multi-valued attributes (class, rel) come back from bs4 as lists.
    """
    out: Dict[str, str] = {}
    for key, value in tag.attrs.items():
        if isinstance(value, (list, tuple)):
            out[key.lower()] = " ".join(str(v) for v in value)
        else:
            out[key.lower()] = "" if value is None else str(value)
    return out


def build_selector(tag: Tag) -> str:
    """
    Builds a best-effort, stable CSS selector for a tag.

    Elements with a simple id get `#id`. Everything else gets a
    `tag:nth-of-type(n)` chain up to the closest ancestor with an id, or up
    to <html>. The deterministic checker and the extractor both use this so
    their findings line up on the same selector.
    """
    element_id = tag.get("id")
    if isinstance(element_id, str) and _SIMPLE_ID.match(element_id):
        return f"#{element_id}"

    parts: List[str] = []
    current: Optional[Tag] = tag
    while current is not None and isinstance(current, Tag) and current.name not in ("[document]", None):
        current_id = current.get("id")
        if current is not tag and isinstance(current_id, str) and _SIMPLE_ID.match(current_id):
            parts.append(f"#{current_id}")
            break

        if current.name in ("html", "body", "head"):
            parts.append(current.name)
            if current.name == "html":
                break
        else:
            parent = current.parent
            index = 1
            if parent is not None:
                for sibling in parent.find_all(current.name, recursive=False):
                    if sibling is current:
                        break
                    index += 1
            parts.append(f"{current.name}:nth-of-type({index})")
        current = current.parent

    return " > ".join(reversed(parts))


def sanitize_html(soup: BeautifulSoup, limit: int) -> str:
    """
    Returns a copy of the document without scripts, styles and comments,
    truncated to `limit` characters. The original soup is left untouched.
    """
    clone = BeautifulSoup(str(soup), "html.parser")
    for node in clone.find_all(["script", "style", "noscript", "template"]):
        node.decompose()
    for comment in clone.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    return truncate(str(clone).strip(), limit)


def has_aria(tag: Tag) -> bool:
    """True when the tag carries an explicit role or any aria-* attribute."""
    return any(key == "role" or key.startswith("aria-") for key in tag.attrs)


_INHERITED_STYLE = ("color", "font-size", "font-weight", "visibility")


def parse_inline_style(style: Optional[str]) -> Dict[str, str]:
    """Splits a style attribute into lower-cased property names and raw values."""
    out: Dict[str, str] = {}
    if not isinstance(style, str):
        return out
    for declaration in style.split(";"):
        name, sep, value = declaration.partition(":")
        if sep and name.strip() and value.strip():
            out[name.strip().lower()] = value.strip()
    return out


def resolved_style(tag: Tag) -> Dict[str, str]:
    """
    Inline-style view of a tag's presentation. Inherited properties come from
    the closest declaring ancestor; background-color from the closest ancestor
    with a non-transparent background. Stylesheets are not consulted.
    """
    own = parse_inline_style(tag.get("style"))
    out = {key: own[key] for key in ("display", "opacity") if key in own}

    current: Optional[Tag] = tag
    while isinstance(current, Tag) and current.name != "[document]":
        declared = own if current is tag else parse_inline_style(current.get("style"))
        for key in _INHERITED_STYLE:
            if key in declared:
                out.setdefault(key, declared[key])
        background = declared.get("background-color") or declared.get("background")
        if background and "background-color" not in out and not _is_transparent(background):
            out["background-color"] = background
        if declared.get("display", "").lower() == "none":
            out["display"] = "none"
        if declared.get("opacity", "").strip() in ("0", "0.0"):
            out["opacity"] = "0"
        current = current.parent
    return out


def _is_transparent(value: str) -> bool:
    if value.strip().lower() in ("none", "inherit", "initial"):
        return True
    color = parse_color(value)
    return color is not None and color[3] == 0


_KEYBOARD_ATTRS = ("onclick", "tabindex")
_COLLECTED_ELSEWHERE = ("a", "input", "select", "textarea")


def has_keyboard_hooks(tag: Tag) -> bool:
    """
    True for tags outside the link/field/ARIA collections that carry onclick
    or tabindex, or set outline/overflow inline.
    """
    if tag.name in _COLLECTED_ELSEWHERE or has_aria(tag):
        return False
    if any(key in tag.attrs for key in _KEYBOARD_ATTRS):
        return True
    style = parse_inline_style(tag.get("style"))
    return "outline" in style or any(key.startswith("overflow") for key in style)
