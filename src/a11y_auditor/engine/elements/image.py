from typing import List

from bs4 import BeautifulSoup, Tag

from ..core import ElementDefinition, EngineFinding, accessible_name, engine_rule, is_hidden


def _has_text(tag: Tag, attr: str) -> bool:
    value = tag.get(attr)
    return isinstance(value, str) and bool(value.strip())


# --- RULES ---

@engine_rule(ids=["image-alt", "input-image-alt", "area-alt", "object-alt"], category="alt-text")
def check_text_alternative(tag: Tag, doc: BeautifulSoup) -> List[EngineFinding]:
    if is_hidden(tag):
        return []

    if tag.name == "img":
        role = str(tag.get("role", "")).lower()
        # alt="" and presentational roles mark the image as decorative.
        if tag.has_attr("alt") or role in ("presentation", "none"):
            return []
        if _has_text(tag, "aria-label") or _has_text(tag, "aria-labelledby") or _has_text(tag, "title"):
            return []
        return [(
            "image-alt", "critical",
            "Images must have alternate text",
            "Element does not have an alt attribute",
        )]

    if tag.name == "input":
        if str(tag.get("type", "")).lower() != "image":
            return []
        if _has_text(tag, "alt") or accessible_name(tag, doc):
            return []
        return [(
            "input-image-alt", "critical",
            "Image buttons must have alternate text",
            "Element has no alt attribute or the alt attribute is empty",
        )]

    if tag.name == "area":
        if not tag.has_attr("href") or _has_text(tag, "alt") or _has_text(tag, "aria-label"):
            return []
        return [(
            "area-alt", "critical",
            "Active <area> elements must have alternate text",
            "Element does not have an alt attribute",
        )]

    if tag.name == "object":
        if accessible_name(tag, doc):
            return []
        return [(
            "object-alt", "serious",
            "<object> elements must have alternate text",
            "Element has no text alternative",
        )]

    return []


# --- DEFINITION ---
DEFINITION = ElementDefinition(
    tag_names=["img", "input", "area", "object"],
    rules=[check_text_alternative],
)
