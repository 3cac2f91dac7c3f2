# tests/core/test_rules.py
import asyncio
import json

import pytest

from a11y_extraction.extractor import DOMExtractor
from a11y_rules.builtin.alt_text import AltTextRule, suspicious_alt_reasons
from a11y_rules.builtin.aria import AriaRule
from a11y_rules.builtin.contrast import ContrastRule
from a11y_rules.builtin.form_labels import FormLabelRule
from a11y_rules.builtin.headings import HeadingStructureRule
from a11y_rules.builtin.keyboard import KeyboardRule
from a11y_rules.builtin.language import LanguageRule
from a11y_rules.builtin.link_text import LinkTextRule
from a11y_rules.builtin.media import MediaRule
from a11y_rules.core import RuleContext
from a11y_rules.model import RuleConfig, RulesConfig
from a11y_rules.prompts import build_prompt

from support import ScriptedProvider

STATIC_ONLY = RulesConfig(rules={
    rule_id: RuleConfig(settings={"ai_enabled": False})
    for rule_id in (
        "ai/alt-text-quality", "ai/link-text-quality", "ai/form-label-relevance", "ai/language-readability",
        "ai/contrast-analysis", "ai/aria-validation", "ai/media-accessibility",
    )
})


def context_for(html, config=STATIC_ONLY, url="https://shop.example/"):
    extraction = DOMExtractor(html=html, url=url).extract_from_html(html, url=url)
    return RuleContext(url=url, rule_id="", extraction=extraction, config=config)


def evaluate(rule, context, provider=None):
    return asyncio.run(rule.evaluate(context, provider or ScriptedProvider()))


def test_alt_text_static_checks():
    html = """<html lang="en"><body>
      <img src="/a.png">
      <img src="/b.png" alt="">
      <img src="/spacer.gif" alt="">
      <img src="/c.png" alt="IMG_1234.jpg">
      <img src="/d.png" alt="Team photo at the summer event">
    </body></html>"""
    results = evaluate(AltTextRule(), context_for(html))

    reasons = [r.context.get("reason") or "suspicious" for r in results]
    assert reasons == ["missing-alt-attribute", "empty-alt-not-decorative", "suspicious"]
    assert all(r.source == "static" for r in results)
    assert results[0].severity == "serious"


def test_suspicious_alt_reasons():
    assert suspicious_alt_reasons("photo.jpg") == ["filename"]
    assert suspicious_alt_reasons("image") == ["placeholder"]
    assert suspicious_alt_reasons("Picture of a dog") == ["redundant-prefix"]
    assert suspicious_alt_reasons("A dog on a beach") == []


def test_alt_text_ai_results_are_parsed_from_raw():
    html = '<html lang="en"><body><img id="hero" src="/h.png" alt="banner"></body></html>'
    response = json.dumps({"results": [
        {"element": "#hero", "quality": "poor", "suggestedAlt": "Summer sale banner", "confidence": 0.9},
    ]})
    provider = ScriptedProvider([response])

    results = evaluate(AltTextRule(), context_for(html, RulesConfig()), provider)

    assert provider.calls == 1
    assert len(results) == 1
    assert results[0].source == "ai"
    assert results[0].severity == "serious"
    assert results[0].suggestion == "Summer sale banner"
    assert results[0].confidence == 0.9


def test_alt_text_batches_ai_calls():
    images = "".join(f'<img src="/{i}.png" alt="Product photo number {i}">' for i in range(5))
    config = RulesConfig(rules={"ai/alt-text-quality": RuleConfig(batch_size=2)})
    provider = ScriptedProvider()

    evaluate(AltTextRule(), context_for(f"<html><body>{images}</body></html>", config), provider)
    assert provider.calls == 3


def test_link_text_static_checks():
    html = """<html lang="en"><body>
      <a href="/one">Click here</a>
      <a href="/two"></a>
      <a href="https://shop.example/three">https://shop.example/three</a>
      <a href="/four">Pricing</a>
      <a href="tel:abc">Call</a>
    </body></html>"""
    results = evaluate(LinkTextRule(), context_for(html))
    messages = [r.message for r in results]

    assert messages == [
        "Link text is too generic.",
        "Link has no accessible text (empty text and no aria-label).",
        "Link text is a raw URL.",
        "tel/mailto link format looks invalid.",
    ]


def test_link_text_flags_missing_skip_target():
    html = '<html><body><a href="#skip-main">Skip to content</a><main id="main">x</main></body></html>'
    results = evaluate(LinkTextRule(), context_for(html))
    assert results[0].message == "Skip link target does not exist on the page."


def test_form_label_static_checks():
    html = """<html><body><form>
      <label for="name">Name</label><input id="name" type="text">
      <input type="email" name="email">
      <input id="dup" type="text" aria-label="First"><input id="dup" type="text" aria-label="Second">
    </form></body></html>"""
    results = evaluate(FormLabelRule(), context_for(html))
    severities = sorted(r.severity for r in results)

    assert severities == ["critical", "serious", "serious"]


def test_heading_structure_checks():
    html = "<html><body><h2>Intro</h2><h4>Deep</h4><h2></h2></body></html>"
    results = evaluate(HeadingStructureRule(), context_for(html))
    messages = [r.message for r in results]

    assert messages[0] == "Page is missing an <h1> heading."
    assert results[0].element.selector == "html"
    assert "Heading level is skipped (from h2 to h4)." in messages
    assert "Heading has no text content." in messages


def test_language_rule_flags_missing_lang():
    results = evaluate(LanguageRule(), context_for("<html><body><p>Hello</p></body></html>"))
    assert results[0].message == "Missing lang attribute on <html>."
    assert results[0].severity == "serious"


def test_language_rule_flags_rtl_without_dir():
    results = evaluate(LanguageRule(), context_for('<html lang="ar"><body><p>مرحبا</p></body></html>'))
    assert results[0].message.startswith("RTL language detected")


def test_build_prompt_is_deterministic():
    a = build_prompt("Check", [], {"type": "object"}, extra={"b": 1, "a": 2})
    b = build_prompt("Check", [], {"type": "object"}, extra={"a": 2, "b": 1})
    assert a == b


@pytest.mark.parametrize("rule_cls", [
    AltTextRule, LinkTextRule, FormLabelRule, HeadingStructureRule, LanguageRule,
    ContrastRule, AriaRule, KeyboardRule, MediaRule,
])
def test_rules_on_empty_page_do_not_call_the_provider_without_content(rule_cls):
    provider = ScriptedProvider()
    evaluate(rule_cls(), context_for('<html lang="en"><body></body></html>', RulesConfig()), provider)
    assert provider.calls == 0


def test_contrast_static_checks():
    html = """<html lang="en"><body style="background-color: #ffffff">
      <h1 style="color: #777777">Grey heading</h1>
      <h2 style="color: #000000">Black heading</h2>
      <div style="background-color: #000"><h3 style="color: #222">Dark on dark</h3></div>
      <a id="brand" href="/x" style="color: var(--brand)">Brand</a>
      <h4>Inherited page colours</h4>
    </body></html>"""
    results = evaluate(ContrastRule(), context_for(html))

    assert [r.message for r in results] == [
        "Text contrast is too low (4.48:1, requires ≥ 4.5:1).",
        "Text contrast is too low (1.32:1, requires ≥ 4.5:1).",
        "Unable to compute contrast due to unsupported color format.",
    ]
    assert [r.severity for r in results] == ["moderate", "serious", "minor"]
    assert results[1].context["background"] == "#000000"
    assert "#ffffff" in results[1].suggestion
    assert results[2].element.selector == "#brand"


def test_contrast_aaa_setting_raises_the_bar():
    html = '<html lang="en"><body><h1 style="color: #666666">Mid grey</h1></body></html>'
    assert evaluate(ContrastRule(), context_for(html)) == []

    config = RulesConfig(rules={
        "ai/contrast-analysis": RuleConfig(settings={"ai_enabled": False, "standard": "AAA"}),
    })
    results = evaluate(ContrastRule(), context_for(html, config))
    assert results[0].message == "Text contrast is too low (5.74:1, requires ≥ 7:1)."


def test_contrast_asks_model_only_about_unresolved_colours():
    html = """<html lang="en"><body>
      <h1 style="color: #777777">Grey heading</h1>
      <a id="brand" href="/x" style="color: var(--brand)">Brand</a>
    </body></html>"""
    response = json.dumps({"results": [
        {"element": "#brand", "passes": False, "estimated_ratio": 2.1, "confidence": 0.7},
    ]})
    provider = ScriptedProvider([response])

    results = evaluate(ContrastRule(), context_for(html, RulesConfig()), provider)

    assert provider.calls == 1
    assert "Grey heading" not in provider.prompts[0]
    assert [r.source for r in results] == ["static", "ai"]
    assert results[1].message == "Text contrast is likely too low (estimated 2.10:1)."
    assert results[1].confidence == 0.7


def test_aria_static_checks():
    html = """<html lang="en"><body>
      <div role="widget">Abstract</div>
      <button role="button">Redundant</button>
      <div role="slider" aria-valuenow="5">Slider</div>
      <a href="/x" aria-hidden="true">Hidden link</a>
      <span aria-labelledby="label-1 missing" aria-foo="1">Refs</span>
      <span id="label-1">Label</span>
      <div role="tab" aria-selected="true" aria-expanded="yes">Tab</div>
    </body></html>"""
    results = evaluate(AriaRule(), context_for(html))
    by_message = {r.message: r for r in results}

    assert by_message['Abstract ARIA role used directly: "widget".'].severity == "serious"
    assert by_message['Redundant role="button" on a native <button> element.'].severity == "minor"
    assert by_message[
        'Role "slider" is missing required ARIA attributes: aria-valuemin, aria-valuemax.'
    ].severity == "serious"
    assert 'Focusable element is hidden from assistive technologies via aria-hidden="true".' in by_message
    assert "Invalid ARIA attribute: aria-foo." in by_message
    assert by_message["aria-labelledby references missing ids: missing."].context["missing"] == ["missing"]
    assert 'aria-expanded must be "true" or "false".' in by_message
    assert len(results) == 7
    assert all(r.source == "static" for r in results)


def test_aria_sends_only_unflagged_widgets_to_the_model():
    html = """<html lang="en"><body>
      <div id="tabs" role="tablist">Tabs</div>
      <div id="bad" role="widget">Abstract</div>
    </body></html>"""
    response = json.dumps({"results": [
        {"element": "#tabs", "issues": ["Use native buttons"], "recommendation": "simplify"},
        {"element": "#unknown", "issues": ["Ignored"], "recommendation": "fix"},
    ]})
    provider = ScriptedProvider([response])

    results = evaluate(AriaRule(), context_for(html, RulesConfig()), provider)

    assert provider.calls == 1
    assert '"#bad"' not in provider.prompts[0]
    ai = [r for r in results if r.source == "ai"]
    assert len(ai) == 1
    assert ai[0].element.selector == "#tabs"
    assert ai[0].severity == "moderate"
    assert ai[0].confidence == 0.55


def test_keyboard_checks():
    html = """<html lang="en"><body>
      <a href="/x" tabindex="3">Jump</a>
      <a href="/y" style="outline: none">Outline</a>
      <div role="button" tabindex="0" onclick="go()" onkeydown="go()">Fine</div>
      <button tabindex="-1">Unreachable</button>
      <div onclick="go()">Clickable div</div>
      <div style="overflow: auto; height: 50px">Scrolling</div>
    </body></html>"""
    results = evaluate(KeyboardRule(), context_for(html))

    assert [r.message for r in results] == [
        "Positive tabindex can disrupt natural tab order.",
        "Focus outline is disabled via inline styles.",
        'Interactive element is removed from the tab order via tabindex="-1".',
        "Non-interactive element has a click handler.",
        "Click handler may not be accessible via keyboard.",
        "Scrollable container may not be keyboard-scrollable.",
    ]
    assert results[3].severity == "serious"
    assert all(r.source == "static" for r in results)


def test_media_static_checks():
    html = """<html lang="en"><body>
      <video src="/a.mp4" autoplay></video>
      <video controls><track kind="captions" src="/c.vtt"><track kind="descriptions" src="/d.vtt"></video>
      <audio src="/p.mp3"></audio>
      <iframe src="https://www.youtube.com/embed/x" title="Clip"></iframe>
      <iframe src="https://maps.example/embed" title="Map"></iframe>
    </body></html>"""
    results = evaluate(MediaRule(), context_for(html))

    assert [(r.element.tag_name, r.severity) for r in results] == [
        ("video", "serious"),
        ("video", "minor"),
        ("video", "moderate"),
        ("video", "moderate"),
        ("audio", "moderate"),
        ("audio", "minor"),
        ("iframe", "minor"),
    ]
    assert results[0].element.selector == "html > body > video:nth-of-type(1)"


def test_media_transcript_mention_satisfies_audio_heuristic():
    html = '<html lang="en"><body><audio controls src="/p.mp3"></audio><a href="/t">Read the transcript</a></body></html>'
    assert evaluate(MediaRule(), context_for(html)) == []


def test_media_ai_summary_is_one_call_per_page():
    html = '<html lang="en"><body><video controls><track kind="captions"><track kind="descriptions"></video></body></html>'
    response = json.dumps({"issues": ["No transcript"], "suggestions": ["Add a transcript"], "confidence": 0.8})
    provider = ScriptedProvider([response])

    results = evaluate(MediaRule(), context_for(html, RulesConfig()), provider)

    assert provider.calls == 1
    assert len(results) == 1
    assert results[0].source == "ai"
    assert results[0].suggestion == "Add a transcript"
    assert results[0].confidence == 0.8
