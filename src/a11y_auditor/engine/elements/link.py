from typing import List

from bs4 import BeautifulSoup, Tag

from ..core import ElementDefinition, EngineFinding, accessible_name, engine_rule, is_hidden


# --- RULES ---

@engine_rule(ids=["link-name"], category="link-text")
def check_link_name(tag: Tag, doc: BeautifulSoup) -> List[EngineFinding]:
    # Anchors without href are not links.
    if not tag.has_attr("href") or is_hidden(tag):
        return []
    if accessible_name(tag, doc):
        return []
    return [(
        "link-name", "serious",
        "Links must have discernible text",
        "Element is in tab order and does not have accessible text",
    )]


# --- DEFINITION ---
DEFINITION = ElementDefinition(
    tag_names=["a"],
    rules=[check_link_name],
)
