from typing import List

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from a11y_extraction.color import WHITE, alpha_blend, contrast_ratio, is_large_text, parse_color, required_ratio, to_hex
from a11y_extraction.utils import resolved_style

from ..core import ElementDefinition, EngineFinding, engine_rule, is_hidden

TEXT_TAGS = [
    "p", "span", "a", "h1", "h2", "h3", "h4", "h5", "h6", "li", "td", "th", "label", "button",
    "div", "strong", "em", "b", "i", "small", "blockquote", "dt", "dd", "figcaption", "caption", "legend",
]


def has_own_text(tag: Tag) -> bool:
    return any(
        isinstance(child, NavigableString) and not isinstance(child, Comment) and child.strip()
        for child in tag.children
    )


# --- RULES ---

@engine_rule(ids=["color-contrast"], category="contrast")
def check_color_contrast(tag: Tag, doc: BeautifulSoup) -> List[EngineFinding]:
    # Inline styles only; anything the parser cannot resolve is left alone.
    if is_hidden(tag) or not has_own_text(tag):
        return []
    style = resolved_style(tag)
    if "color" not in style and "background-color" not in style:
        return []
    if style.get("display") == "none" or style.get("opacity") == "0" or style.get("visibility") == "hidden":
        return []

    foreground = parse_color(style.get("color", "#000"))
    background = parse_color(style.get("background-color", "#fff"))
    if foreground is None or background is None:
        return []
    if background[3] < 1:
        background = alpha_blend(background, WHITE)

    ratio = contrast_ratio(foreground, background)
    required = required_ratio(is_large_text(style.get("font-size"), style.get("font-weight")))
    if ratio >= required:
        return []
    return [(
        "color-contrast", "serious",
        "Elements must meet minimum color contrast ratio thresholds",
        f"Element has insufficient color contrast of {ratio:.2f} (foreground color: {to_hex(foreground)}, "
        f"background color: {to_hex(background)}, expected contrast ratio of {required:g}:1)",
    )]


# --- DEFINITION ---
DEFINITION = ElementDefinition(
    tag_names=TEXT_TAGS,
    rules=[check_color_contrast],
)
