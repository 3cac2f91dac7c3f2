from typing import List

from bs4 import BeautifulSoup, Tag

from ..core import ElementDefinition, EngineFinding, accessible_name, engine_rule, is_hidden


# --- RULES ---

@engine_rule(ids=["button-name"], category="form-labels")
def check_button_name(tag: Tag, doc: BeautifulSoup) -> List[EngineFinding]:
    if is_hidden(tag) or accessible_name(tag, doc):
        return []
    value = tag.get("value")
    if isinstance(value, str) and value.strip():
        return []
    return [(
        "button-name", "critical",
        "Buttons must have discernible text",
        "Element does not have inner text that is visible to screen readers",
    )]


# --- DEFINITION ---
DEFINITION = ElementDefinition(
    tag_names=["button"],
    rules=[check_button_name],
)
