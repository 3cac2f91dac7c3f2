# src/a11y_extraction/model.py
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class ElementSnapshot(BaseModel):
    """
    Immutable snapshot of a single DOM element, as seen at extraction time.
    """
    model_config = ConfigDict(frozen=True)

    selector: str = ""
    html: str = ""
    tag_name: str = ""
    attributes: Dict[str, str] = Field(default_factory=dict)
    text_content: str = ""
    # Inline declarations with inherited values filled in from ancestors.
    style: Dict[str, str] = Field(default_factory=dict)


class ImageSnapshot(ElementSnapshot):
    src: str = ""
    alt: Optional[str] = None
    has_alt: bool = False


class LinkSnapshot(ElementSnapshot):
    href: Optional[str] = None


class FormFieldSnapshot(ElementSnapshot):
    name: Optional[str] = None
    type: Optional[str] = None
    label_text: Optional[str] = None
    aria_label: Optional[str] = None
    aria_labelledby: Optional[str] = None


class FormSnapshot(ElementSnapshot):
    fields: Tuple[FormFieldSnapshot, ...] = ()


class HeadingNode(BaseModel):
    """Node in the document outline; children are headings nested below it."""
    model_config = ConfigDict(frozen=True)

    level: int
    text: str
    selector: str
    children: Tuple["HeadingNode", ...] = ()


class ExtractionSnapshot(BaseModel):
    """
    Everything the rules and the deterministic checker need to know about a page.

    Produced once per audit and shared read-only between the engine check and
    every rule, so it is frozen.
    """
    model_config = ConfigDict(frozen=True)

    url: Optional[str] = None
    images: Tuple[ImageSnapshot, ...] = ()
    links: Tuple[LinkSnapshot, ...] = ()
    forms: Tuple[FormSnapshot, ...] = ()
    headings: Tuple[ElementSnapshot, ...] = ()
    aria_elements: Tuple[ElementSnapshot, ...] = ()
    # Scripted or focusable elements that are not links, fields or ARIA elements.
    interactive_elements: Tuple[ElementSnapshot, ...] = ()

    page_title: str = ""
    page_language: Optional[str] = None
    meta_description: Optional[str] = None
    document_outline: Tuple[HeadingNode, ...] = ()

    # Sanitized (scripts, styles and comments removed) and truncated HTML.
    raw_html: str = ""

    @property
    def form_fields(self) -> List[FormFieldSnapshot]:
        return [field for form in self.forms for field in form.fields]


class ExtractionOptions(BaseModel):
    """Limits and browser preferences for DOM extraction."""
    max_element_html_length: int = 2_000
    max_text_length: int = 500
    max_raw_html_length: int = 200_000
    timeout_ms: int = 30_000
    viewport_width: int = 1280
    viewport_height: int = 800
    # 'auto' prefers playwright, 'none' disables shared browser sessions.
    browser: str = "auto"
