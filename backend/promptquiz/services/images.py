from __future__ import annotations

import hashlib
import logging
from typing import Callable
from xml.sax.saxutils import escape

import httpx

from ..config import Config
from ..game.errors import ImageGenerationFailed
from ..game.models import GeneratedImage


logger = logging.getLogger(__name__)

ImageProvider = Callable[[str], GeneratedImage]

MOCK_COLORS = ["#FF6B6B", "#4ECDC4", "#45B7D1", "#96CEB4", "#FFEAA7", "#DDA0DD", "#98D8C8"]


def generate_mock_image(prompt: str) -> GeneratedImage:
    digest = int(hashlib.sha1(prompt.encode("utf-8")).hexdigest(), 16)
    color = MOCK_COLORS[digest % len(MOCK_COLORS)]
    bg_color = MOCK_COLORS[(digest + 3) % len(MOCK_COLORS)]
    teaser = escape(prompt[:30], {'"': "&quot;"})

    svg = (
        '<svg xmlns="http://www.w3.org/2000/svg" width="512" height="384" viewBox="0 0 512 384">'
        f'<rect width="512" height="384" fill="{bg_color}"/>'
        f'<rect x="40" y="40" width="432" height="304" rx="16" fill="{color}" opacity="0.5"/>'
        '<text x="256" y="160" text-anchor="middle" font-size="24" fill="#333" font-family="sans-serif">'
        "AI Generated Image</text>"
        '<text x="256" y="196" text-anchor="middle" font-size="16" fill="#666" font-family="sans-serif">'
        "(Mock Mode)</text>"
        '<text x="256" y="288" text-anchor="middle" font-size="18" fill="#333" font-family="sans-serif">'
        f"{teaser}...</text>"
        "</svg>"
    )
    return GeneratedImage(data=svg.encode("utf-8"), mime_type="image/svg+xml")


class StabilityImageProvider:
    """Text-to-image through the Stability AI REST API."""

    def __init__(
        self,
        api_key: str,
        url: str = Config.STABILITY_API_URL,
        timeout: float = Config.IMAGE_TIMEOUT_SEC,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self._transport = transport

    def __call__(self, prompt: str) -> GeneratedImage:
        form = {"prompt": prompt, "output_format": "png", "aspect_ratio": "4:3"}
        headers = {"Authorization": f"Bearer {self.api_key}", "Accept": "image/*"}
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                # multipart/form-data is required by the endpoint
                resp = client.post(self.url, headers=headers, data=form, files={"none": ("", b"")})
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = exc.response.text[:200]
            logger.warning("image API error %s: %s", exc.response.status_code, detail)
            raise ImageGenerationFailed(f"image API error: {exc.response.status_code}") from exc
        except httpx.RequestError as exc:
            logger.warning("image API unreachable: %s", exc)
            raise ImageGenerationFailed("image API unreachable") from exc

        if not resp.content:
            raise ImageGenerationFailed("image API returned no data")

        mime_type = resp.headers.get("content-type", "image/png").split(";")[0].strip() or "image/png"
        return GeneratedImage(data=resp.content, mime_type=mime_type)


def build_image_provider(config=Config) -> ImageProvider:
    api_key = getattr(config, "STABILITY_API_KEY", "")
    if not api_key:
        logger.info("STABILITY_API_KEY not set, serving mock images")
        return generate_mock_image
    return StabilityImageProvider(
        api_key=api_key,
        url=getattr(config, "STABILITY_API_URL", Config.STABILITY_API_URL),
        timeout=getattr(config, "IMAGE_TIMEOUT_SEC", Config.IMAGE_TIMEOUT_SEC),
    )
