from typing import List

from bs4 import BeautifulSoup, Tag

from ..core import ElementDefinition, EngineFinding, accessible_name, engine_rule, is_hidden


# --- RULES ---

@engine_rule(ids=["empty-heading"], category="structure")
def check_heading_content(tag: Tag, doc: BeautifulSoup) -> List[EngineFinding]:
    if is_hidden(tag) or accessible_name(tag, doc):
        return []
    return [(
        "empty-heading", "minor",
        "Headings should not be empty",
        "Element does not have text that is visible to screen readers",
    )]


# --- DEFINITION ---
DEFINITION = ElementDefinition(
    tag_names=["h1", "h2", "h3", "h4", "h5", "h6"],
    rules=[check_heading_content],
)
