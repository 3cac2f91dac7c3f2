from typing import List

from bs4 import BeautifulSoup, Tag

from ..core import ElementDefinition, EngineFinding, engine_rule, is_hidden

_UNLABELLED_INPUT_TYPES = {"hidden", "submit", "reset", "button", "image"}


def has_label(tag: Tag, doc: BeautifulSoup) -> bool:
    field_id = tag.get("id")
    if isinstance(field_id, str) and field_id:
        label = doc.find("label", attrs={"for": field_id})
        if label is not None and label.get_text(strip=True):
            return True
    wrapping = tag.find_parent("label")
    if wrapping is not None and wrapping.get_text(strip=True):
        return True
    for attr in ("aria-label", "aria-labelledby", "title"):
        value = tag.get(attr)
        if isinstance(value, str) and value.strip():
            return True
    return False


# --- RULES ---

@engine_rule(ids=["label", "select-name", "textarea-name"], category="form-labels")
def check_field_label(tag: Tag, doc: BeautifulSoup) -> List[EngineFinding]:
    if is_hidden(tag) or has_label(tag, doc):
        return []

    if tag.name == "input":
        if str(tag.get("type") or "text").lower() in _UNLABELLED_INPUT_TYPES:
            return []
        return [(
            "label", "critical",
            "Form elements must have labels",
            "Form element does not have an implicit (wrapped) <label> or an explicit <label>",
        )]
    if tag.name == "select":
        return [(
            "select-name", "critical",
            "Select element must have an accessible name",
            "Select element does not have a label",
        )]
    if tag.name == "textarea":
        return [(
            "textarea-name", "critical",
            "Textarea must have an accessible name",
            "Textarea does not have a label",
        )]
    return []


# --- DEFINITION ---
DEFINITION = ElementDefinition(
    tag_names=["input", "select", "textarea"],
    rules=[check_field_label],
)