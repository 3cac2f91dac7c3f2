# src/a11y_providers/providers/http_client.py
import base64
import logging
from typing import Any, Dict, Optional, Tuple

import aiohttp

from ..errors import ProviderError

logger = logging.getLogger(__name__)


async def post_json(
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """
    POSTs a JSON payload and returns the decoded JSON body.

    Non-2xx statuses raise ProviderError with a short excerpt of the body so
    the retry loop can log something useful.
    """
    request_headers = {"Content-Type": "application/json"}
    request_headers.update(headers or {})

    try:
        async with aiohttp.ClientSession() as session:
            async with session.post(url, json=payload, headers=request_headers) as response:
                if response.status < 200 or response.status >= 300:
                    body = await response.text()
                    raise ProviderError(f"Request to {url} failed with status {response.status}: {body[:200]}")
                return await response.json(content_type=None)
    except aiohttp.ClientError as e:
        raise ProviderError(f"Request to {url} failed: {e}") from e


def split_image(image: Any) -> Tuple[str, str]:
    """
    Returns `(kind, value)` for an image payload.

    kind is 'url' for http(s) URLs, otherwise 'base64' with the value being
    the base64 body. Data URLs are split on the comma; raw bytes are encoded.
    """
    if isinstance(image, (bytes, bytearray)):
        return "base64", base64.b64encode(bytes(image)).decode("ascii")
    if isinstance(image, str):
        if image.startswith("data:") and "," in image:
            return "base64", image.split(",", 1)[1]
        if image.startswith(("http://", "https://")):
            return "url", image
        return "base64", image
    raise ProviderError(f"Unsupported image payload type: {type(image).__name__}")


def image_media_type(image: Any, default: str = "image/png") -> str:
    if isinstance(image, str) and image.startswith("data:") and ";" in image:
        return image[5:image.index(";")] or default
    if isinstance(image, (bytes, bytearray)):
        if image[:3] == b"\xff\xd8\xff":
            return "image/jpeg"
        if image[:6] in (b"GIF87a", b"GIF89a"):
            return "image/gif"
        if image[:4] == b"RIFF" and image[8:12] == b"WEBP":
            return "image/webp"
    return default
