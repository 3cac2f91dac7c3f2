# src/a11y_rules/prompts.py
import json
from typing import Any, Dict, Iterable, Optional

from a11y_extraction.model import ElementSnapshot

STANDARDS_CONTEXT = "Evaluate against WCAG 2.2 level AA. Report only concrete, actionable problems."

SEVERITY_DEFINITIONS = {
    "critical": "Blocks access to content or functionality for some users.",
    "serious": "Makes content or functionality very difficult to use.",
    "moderate": "Causes confusion or extra effort.",
    "minor": "Small annoyance or best-practice deviation.",
}

MAX_ELEMENT_HTML = 300


def build_prompt(
        instruction: str,
        elements: Iterable[ElementSnapshot],
        output_schema: Dict[str, Any],
        system: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Renders one prompt as a single JSON document.

    The output is deterministic for identical input so response caching keys
    stay stable between runs.
    """
    payload: Dict[str, Any] = {
        "standards": STANDARDS_CONTEXT,
        "severity": SEVERITY_DEFINITIONS,
        "instruction": instruction.strip(),
        "output": output_schema,
        "elements": [
            {
                "selector": e.selector,
                "tagName": e.tag_name,
                "html": e.html[:MAX_ELEMENT_HTML],
                "text": e.text_content,
                "attributes": e.attributes,
            }
            for e in elements
        ],
    }
    if system:
        payload["system"] = system.strip()
    if extra:
        payload["extra"] = extra

    return json.dumps(payload, ensure_ascii=False, sort_keys=True)
