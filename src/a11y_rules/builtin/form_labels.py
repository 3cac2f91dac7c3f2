# src/a11y_rules/builtin/form_labels.py
from collections import Counter
from typing import List

from a11y_extraction.model import FormFieldSnapshot, FormSnapshot
from a11y_extraction.utils import normalize_text
from a11y_providers.model import CapabilityProvider

from ..core import Rule, RuleContext, RuleResult, confidence_of
from ..prompts import build_prompt

LABEL_SCHEMA = {
    "type": "object",
    "properties": {
        "results": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "element": {"type": "string"},
                    "relevant": {"type": "boolean"},
                    "issue": {"type": "string"},
                    "suggestedLabel": {"type": "string"},
                    "confidence": {"type": "number"},
                },
            },
        },
    },
    "required": ["results"],
}


def accessible_label(field: FormFieldSnapshot) -> str:
    return normalize_text(field.label_text or field.aria_label or field.attributes.get("title") or "")


class FormLabelRule(Rule):
    id = "ai/form-label-relevance"
    category = "form-labels"
    description = "Checks that form fields have labels and that the labels describe the expected input."
    default_batch_size = 10
    requires_ai = True
    estimated_cost = "1 request per ~10 labelled fields"

    async def evaluate(self, context: RuleContext, provider: CapabilityProvider) -> List[RuleResult]:
        results: List[RuleResult] = []
        fields = context.extraction.form_fields

        ids = Counter(f.attributes.get("id") for f in fields if f.attributes.get("id"))
        for field in fields:
            field_id = field.attributes.get("id")
            if field_id and ids[field_id] > 1:
                results.append(self.make_result(
                    field,
                    "Duplicate id attribute detected on form fields.",
                    "Give every form field a unique id so labels point at the right control.",
                    severity="serious",
                    confidence=0.95,
                    context={"id": field_id},
                ))
            elif not accessible_label(field):
                results.append(self.make_result(
                    field,
                    "Form field is missing an accessible label.",
                    "Associate a <label for> with the field, or add aria-label/aria-labelledby.",
                    severity="critical",
                    context={"placeholder": field.attributes.get("placeholder")},
                ))

        for form in context.extraction.forms:
            results.extend(self._check_groups(form))

        if self.ai_enabled(context):
            flagged = {r.element.selector for r in results}
            candidates = [f for f in fields if f.selector not in flagged and accessible_label(f)]
            if candidates:
                results.extend(await self.evaluate_in_batches(
                    candidates,
                    self.batch_size(context),
                    lambda batch: self._evaluate_ai(batch, context, provider),
                ))
        return results

    def _check_groups(self, form: FormSnapshot) -> List[RuleResult]:
        """Radio and checkbox sets sharing a name should sit in a fieldset with a legend."""
        if "<legend" in form.html.lower():
            return []
        names = Counter(
            f.name for f in form.fields
            if f.type in ("radio", "checkbox") and f.name
        )
        out = []
        for name, count in names.items():
            if count < 2:
                continue
            first = next(f for f in form.fields if f.name == name)
            out.append(self.make_result(
                first,
                "Radio/checkbox group may be missing a fieldset/legend.",
                "Wrap related options in <fieldset> with a <legend> that names the group.",
                severity="moderate",
                confidence=0.6,
                context={"group": name, "options": count},
            ))
        return out

    async def _evaluate_ai(
            self,
            batch: List[FormFieldSnapshot],
            context: RuleContext,
            provider: CapabilityProvider,
    ) -> List[RuleResult]:
        prompt = build_prompt(
            instruction=(
                "For each form field, decide whether its label clearly describes the expected input. "
                "Return ONLY valid JSON matching the output schema."
            ),
            elements=batch,
            output_schema=LABEL_SCHEMA,
            extra={"labels": {f.selector: accessible_label(f) for f in batch}},
        )
        analysis = await provider.analyze(prompt, context)
        by_selector = {f.selector: f for f in batch}

        out = []
        for item in self.parse_items(analysis.raw, "results"):
            field = by_selector.get(item.get("element"))
            if field is None or item.get("relevant", True) is not False:
                continue
            suggested = item.get("suggestedLabel") if isinstance(item.get("suggestedLabel"), str) else ""
            out.append(self.make_result(
                field,
                item.get("issue") if isinstance(item.get("issue"), str) and item.get("issue")
                else "Label does not describe the expected input.",
                f'Consider the label "{suggested}".' if suggested else "Reword the label to describe the input.",
                severity="moderate",
                confidence=confidence_of(item),
                source="ai",
                context={"current_label": accessible_label(field)},
            ))
        return out
