# src/a11y_extraction/color.py
"""
CSS colour parsing and WCAG 2.x contrast math.

Colours are (r, g, b, a) tuples with channels in 0-255 and alpha in 0-1.
Only the formats that show up in inline styles are understood: hex (3, 4,
6 or 8 digits), rgb()/rgba(), hsl()/hsla() and a handful of keywords.
"""
import colorsys
import re
from typing import Optional, Tuple

RGBA = Tuple[float, float, float, float]

WHITE: RGBA = (255.0, 255.0, 255.0, 1.0)
BLACK: RGBA = (0.0, 0.0, 0.0, 1.0)

_NAMED = {
    "black": BLACK,
    "white": WHITE,
    "red": (255.0, 0.0, 0.0, 1.0),
    "green": (0.0, 128.0, 0.0, 1.0),
    "blue": (0.0, 0.0, 255.0, 1.0),
    "gray": (128.0, 128.0, 128.0, 1.0),
    "grey": (128.0, 128.0, 128.0, 1.0),
    "transparent": (0.0, 0.0, 0.0, 0.0),
}

_HEX = re.compile(r"^#([0-9a-f]{3,4}|[0-9a-f]{6}|[0-9a-f]{8})$")
_FUNC = re.compile(r"^(rgba?|hsla?)\(([^)]*)\)$")
_PX = re.compile(r"^([\d.]+)px$")


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _alpha(part: Optional[str]) -> float:
    if part is None:
        return 1.0
    if part.endswith("%"):
        return _clamp(float(part[:-1]) / 100, 0.0, 1.0)
    return _clamp(float(part), 0.0, 1.0)


def _channel(part: str) -> float:
    if part.endswith("%"):
        return _clamp(float(part[:-1]) * 2.55, 0.0, 255.0)
    return _clamp(float(part), 0.0, 255.0)


def parse_color(value: Optional[str]) -> Optional[RGBA]:
    """Returns None for anything it does not understand (var(), gradients, currentColor...)."""
    if not value:
        return None
    text = value.strip().lower().replace("!important", "").strip()

    if text in _NAMED:
        return _NAMED[text]

    match = _HEX.match(text)
    if match:
        digits = match.group(1)
        if len(digits) in (3, 4):
            digits = "".join(c * 2 for c in digits)
        r, g, b = (int(digits[i:i + 2], 16) for i in (0, 2, 4))
        a = int(digits[6:8], 16) / 255 if len(digits) == 8 else 1.0
        return float(r), float(g), float(b), a

    match = _FUNC.match(text)
    if not match:
        return None
    # Accept both "1, 2, 3, 0.5" and "1 2 3 / 0.5".
    parts = [p for p in re.split(r"[\s,/]+", match.group(2).strip()) if p]
    if len(parts) not in (3, 4):
        return None
    try:
        alpha = _alpha(parts[3] if len(parts) == 4 else None)
        if match.group(1).startswith("rgb"):
            return _channel(parts[0]), _channel(parts[1]), _channel(parts[2]), alpha
        hue = float(parts[0].replace("deg", "")) % 360 / 360
        saturation = _clamp(float(parts[1].rstrip("%")) / 100, 0.0, 1.0)
        lightness = _clamp(float(parts[2].rstrip("%")) / 100, 0.0, 1.0)
    except ValueError:
        return None
    r, g, b = colorsys.hls_to_rgb(hue, lightness, saturation)
    return r * 255, g * 255, b * 255, alpha


def alpha_blend(top: RGBA, bottom: RGBA) -> RGBA:
    """Composites `top` over `bottom` (source-over)."""
    alpha = top[3] + bottom[3] * (1 - top[3])
    if alpha == 0:
        return 0.0, 0.0, 0.0, 0.0
    channels = tuple(
        (top[i] * top[3] + bottom[i] * bottom[3] * (1 - top[3])) / alpha
        for i in range(3)
    )
    return channels[0], channels[1], channels[2], alpha


def _linear(channel: float) -> float:
    c = channel / 255
    return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4


def relative_luminance(color: RGBA) -> float:
    r, g, b = (_linear(color[i]) for i in range(3))
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def contrast_ratio(foreground: RGBA, background: RGBA) -> float:
    """WCAG ratio between 1 and 21. A translucent foreground is blended over the background first."""
    if foreground[3] < 1:
        foreground = alpha_blend(foreground, background)
    lighter, darker = sorted((relative_luminance(foreground), relative_luminance(background)), reverse=True)
    return (lighter + 0.05) / (darker + 0.05)


def perceived_brightness(color: RGBA) -> float:
    """YIQ brightness in 0-255; used to pick a readable suggestion colour."""
    return (color[0] * 299 + color[1] * 587 + color[2] * 114) / 1000


def to_hex(color: RGBA) -> str:
    return "#" + "".join(f"{int(round(_clamp(color[i], 0, 255))):02x}" for i in range(3))


def font_size_px(value: Optional[str], default: float = 16.0) -> float:
    """Pixel sizes only; other units fall back to `default`."""
    if not value:
        return default
    match = _PX.match(value.strip().lower())
    if not match:
        return default
    try:
        return float(match.group(1))
    except ValueError:
        return default


def is_large_text(font_size: Optional[str], font_weight: Optional[str] = None) -> bool:
    """WCAG large text: 24px, or 18.66px (14pt) when bold."""
    size = font_size_px(font_size)
    weight = (font_weight or "").strip().lower()
    bold = weight in ("bold", "bolder") or (weight.isdigit() and int(weight) >= 700)
    return size >= 24 or (bold and size >= 18.66)


def required_ratio(large_text: bool, level: str = "AA") -> float:
    if str(level).upper() == "AAA":
        return 4.5 if large_text else 7.0
    return 3.0 if large_text else 4.5
