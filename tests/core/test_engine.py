# tests/core/test_engine.py
import pytest

from a11y_auditor.engine.registry import EngineRegistry
from a11y_auditor.engine.runner import EngineRunner
from a11y_auditor.model import EngineConfig
from a11y_extraction.extractor import DOMExtractor

from support import CLEAN_HTML, SAMPLE_HTML


@pytest.fixture(scope="module")
def runner():
    return EngineRunner()


def ids(violations):
    return [v.id for v in violations]


def test_registry_discovers_all_checks(runner):
    assert EngineRegistry.get_all_ids() == sorted([
        "area-alt", "button-name", "color-contrast", "document-title", "duplicate-id", "empty-heading", "heading-order",
        "html-has-lang", "image-alt", "input-image-alt", "label", "link-name", "object-alt",
        "select-name", "textarea-name",
    ])


def test_sample_page_violations(runner):
    violations = runner.run(SAMPLE_HTML)
    assert ids(violations) == ["image-alt", "link-name", "label", "heading-order"]

    image = violations[0]
    assert image.severity == "critical"
    assert image.category == "alt-text"
    assert image.html.startswith("<img")


def test_clean_page_has_no_violations(runner):
    assert runner.run(CLEAN_HTML) == []


def test_selectors_line_up_with_extraction(runner):
    """Engine en extractor moeten dezelfde selector voor hetzelfde element opleveren."""
    extraction = DOMExtractor(html=SAMPLE_HTML).extract_from_html(SAMPLE_HTML)
    violations = {v.id: v for v in runner.run(SAMPLE_HTML)}

    assert violations["image-alt"].selector == extraction.images[1].selector
    assert violations["link-name"].selector == extraction.links[2].selector
    unlabelled = [f for f in extraction.form_fields if f.name == "nickname"][0]
    assert violations["label"].selector == unlabelled.selector


def test_document_level_checks(runner):
    violations = runner.run("<html><body><h1></h1></body></html>")
    assert ids(violations) == ["empty-heading", "html-has-lang", "document-title"]
    assert violations[1].selector == "html"


def test_duplicate_ids_reported_once_per_id(runner):
    html = '<html lang="en"><head><title>t</title></head><body><p id="x">a</p><p id="x">b</p><p id="x">c</p></body></html>'
    violations = runner.run(html)
    assert ids(violations) == ["duplicate-id"]
    assert violations[0].selector == "#x"


@pytest.mark.parametrize("snippet, expected", [
    ("<button></button>", ["button-name"]),
    ('<button aria-label="Close"></button>', []),
    ('<input type="image" src="go.png">', ["input-image-alt"]),
    ('<map name="m"><area href="/x"></map>', ["area-alt"]),
    ('<object data="movie.swf"></object>', ["object-alt"]),
    ('<select name="size"><option>S</option></select>', ["select-name"]),
    ("<textarea></textarea>", ["textarea-name"]),
    ('<label>Name <input type="text"></label>', []),
    ('<img src="/deco.png" aria-hidden="true">', []),
    ('<img src="/deco.png" alt="">', []),
    ('<a href="/home"><img src="/logo.png" alt="Home"></a>', []),
    ("<a>not a link</a>", []),
])
def test_element_checks(runner, snippet, expected):
    html = f'<html lang="en"><head><title>t</title></head><body><h1>x</h1>{snippet}</body></html>'
    assert ids(runner.run(html)) == expected


def test_run_only_and_disabled(runner):
    assert ids(runner.run(SAMPLE_HTML, EngineConfig(run_only=["image-alt"]))) == ["image-alt"]
    assert "label" not in ids(runner.run(SAMPLE_HTML, EngineConfig(disabled=["label"])))


@pytest.mark.parametrize("snippet, expected", [
    ('<p style="color: #777777; background-color: #ffffff">Grey on white</p>', ["color-contrast"]),
    ('<p style="color: #000000; background-color: #ffffff">Black on white</p>', []),
    ('<div style="background: #000"><span style="color: #333">Dark on dark</span></div>', ["color-contrast"]),
    ('<p style="color: #777777; font-size: 32px">Large grey text</p>', []),
    ('<p style="color: var(--muted)">Unknown colour</p>', []),
    ('<p style="color: #777777; display: none">Hidden</p>', []),
    ('<div style="color: #777777"><img src="/x.png" alt="x"></div>', []),
])
def test_color_contrast_from_inline_styles(runner, snippet, expected):
    html = f'<html lang="en"><head><title>t</title></head><body><h1>x</h1>{snippet}</body></html>'
    assert ids(runner.run(html)) == expected


def test_color_contrast_selector_matches_contrast_rule_candidates(runner):
    html = '<html lang="en"><head><title>t</title></head><body><h1 style="color: #aaa">Faint</h1></body></html>'
    extraction = DOMExtractor(html=html).extract_from_html(html)

    violations = runner.run(html)
    assert ids(violations) == ["color-contrast"]
    assert violations[0].selector == extraction.headings[0].selector
    assert violations[0].category == "contrast"
