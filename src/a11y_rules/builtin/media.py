# src/a11y_rules/builtin/media.py
from typing import List

from bs4 import BeautifulSoup, Tag

from a11y_extraction.model import ElementSnapshot
from a11y_extraction.utils import attributes_to_dict, build_selector, normalize_text, truncate
from a11y_providers.model import CapabilityProvider

from ..core import Rule, RuleContext, RuleResult, confidence_of
from ..prompts import build_prompt

KNOWN_EMBED_HOSTS = ("youtube.com", "youtu.be", "vimeo.com", "soundcloud.com", "spotify.com")
MAX_MEDIA_HTML = 2_000
MAX_AI_SAMPLES = 3

MEDIA_SCHEMA = {
    "type": "object",
    "properties": {
        "issues": {"type": "array", "items": {"type": "string"}},
        "suggestions": {"type": "array", "items": {"type": "string"}},
        "confidence": {"type": "number"},
    },
    "required": ["issues", "suggestions", "confidence"],
}


def media_snapshot(tag: Tag) -> ElementSnapshot:
    return ElementSnapshot(
        selector=build_selector(tag),
        html=truncate(str(tag), MAX_MEDIA_HTML),
        tag_name=tag.name,
        attributes=attributes_to_dict(tag),
        text_content=normalize_text(tag.get_text(" ")),
    )


def track_kinds(tag: Tag) -> List[str]:
    return [str(track.get("kind", "")).strip().lower() for track in tag.find_all("track")]


def is_known_embed(src: str) -> bool:
    src = src.lower()
    return any(host in src for host in KNOWN_EMBED_HOSTS)


def _strings(value) -> List[str]:
    return [v for v in value if isinstance(v, str)] if isinstance(value, list) else []


class MediaRule(Rule):
    id = "ai/media-accessibility"
    category = "structure"
    description = "Checks common accessibility issues for video/audio/embed media."
    requires_ai = True
    estimated_cost = "1 request per page with media (optional) + static"

    async def evaluate(self, context: RuleContext, provider: CapabilityProvider) -> List[RuleResult]:
        soup = BeautifulSoup(context.extraction.raw_html or "", "html.parser")
        videos = soup.find_all("video")
        audios = soup.find_all("audio")
        embeds = [
            tag for tag in soup.find_all("iframe")
            if is_known_embed(str(tag.get("src") or ""))
        ]
        if not (videos or audios or embeds):
            return []

        results: List[RuleResult] = []
        for video in videos:
            results.extend(self._check_video(video))

        has_transcript = "transcript" in soup.get_text(" ").lower()
        for audio in audios:
            results.extend(self._check_audio(audio, has_transcript))

        for embed in embeds:
            results.append(self.make_result(
                media_snapshot(embed),
                "Embedded media detected; captions/transcripts may require manual verification.",
                "Verify captions/transcripts and keyboard accessibility for the embedded player.",
                severity="minor",
                confidence=0.5,
                context={"src": embed.get("src")},
            ))

        if self.ai_enabled(context):
            anchor = media_snapshot((videos or audios or embeds)[0])
            results.extend(await self._evaluate_ai(anchor, videos, audios, embeds, context, provider))
        return results

    def _check_video(self, video: Tag) -> List[RuleResult]:
        element = media_snapshot(video)
        kinds = track_kinds(video)
        autoplay = video.has_attr("autoplay")
        controls = video.has_attr("controls")
        out = []

        if "captions" not in kinds and "subtitles" not in kinds:
            out.append(self.make_result(
                element,
                "<video> is missing captions/subtitles track.",
                'Provide <track kind="captions"> (and/or subtitles) for video content.',
                severity="serious",
                confidence=0.85,
                context={"track_kinds": kinds},
            ))

        if "descriptions" not in kinds:
            out.append(self.make_result(
                element,
                "<video> is missing audio descriptions track.",
                'Consider providing <track kind="descriptions"> for key visual information.',
                severity="minor",
                confidence=0.5,
                context={"track_kinds": kinds},
            ))

        if autoplay and not controls:
            out.append(self.make_result(
                element,
                "Video autoplay is enabled without user controls.",
                "Avoid autoplay or ensure controls are present so users can pause/stop.",
                severity="moderate",
                confidence=0.7,
                context={"autoplay": autoplay, "controls": controls},
            ))

        if not controls:
            out.append(self.make_result(
                element,
                "<video> element is missing controls.",
                "Add the controls attribute, or ensure equivalent accessible controls are provided.",
                severity="moderate",
                confidence=0.7,
                context={"controls": controls},
            ))
        return out

    def _check_audio(self, audio: Tag, has_transcript: bool) -> List[RuleResult]:
        element = media_snapshot(audio)
        out = []
        if not audio.has_attr("controls"):
            out.append(self.make_result(
                element,
                "<audio> element is missing controls.",
                "Add the controls attribute, or ensure equivalent accessible controls are provided.",
                severity="moderate",
                confidence=0.7,
                context={"controls": False},
            ))
        if not has_transcript:
            out.append(self.make_result(
                element,
                "Audio content may be missing a transcript link nearby.",
                "Provide a transcript link close to the audio player.",
                severity="minor",
                confidence=0.45,
                context={"transcript_heuristic": "page-text-scan"},
            ))
        return out

    async def _evaluate_ai(
            self,
            anchor: ElementSnapshot,
            videos: List[Tag],
            audios: List[Tag],
            embeds: List[Tag],
            context: RuleContext,
            provider: CapabilityProvider,
    ) -> List[RuleResult]:
        prompt = build_prompt(
            instruction=(
                "Review the media elements for accessibility concerns (captions, transcripts, controls, "
                "keyboard access). Return ONLY valid JSON matching the output schema."
            ),
            elements=[media_snapshot(tag) for tag in (*videos, *audios, *embeds)[:MAX_AI_SAMPLES]],
            output_schema=MEDIA_SCHEMA,
            extra={
                "page_title": context.extraction.page_title,
                "video_count": len(videos),
                "audio_count": len(audios),
                "embed_count": len(embeds),
            },
        )
        analysis = await provider.analyze(prompt, context)

        parsed = self.parse_json(analysis.raw)
        if not isinstance(parsed, dict):
            return []
        issues = _strings(parsed.get("issues"))
        if not issues:
            return []
        suggestions = _strings(parsed.get("suggestions"))
        return [self.make_result(
            anchor,
            "Media accessibility issues detected.",
            " ".join(suggestions) or " ".join(issues),
            severity="minor",
            confidence=confidence_of(parsed, 0.5),
            source="ai",
            context={
                "issues": issues,
                "suggestions": suggestions,
                "latency_ms": analysis.latency_ms,
                "attempts": analysis.attempts,
            },
        )]
