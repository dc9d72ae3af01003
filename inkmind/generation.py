# generation.py
"""
Image generation service (Gemini).

The lineage engine treats generation as a black box: a request goes in,
and either an `image_ref` comes out or `GenerationError` is raised.
`GeminiImageGenerator` calls the Gemini `generateContent` REST endpoint,
decodes the returned inline image and uploads it to blob storage.
"""

import abc
import asyncio
import base64
import logging
import uuid
from typing import Any, Dict, Optional, Tuple

import httpx
from pydantic import BaseModel, Field

from errors import GenerationError, ValidationError
from settings import settings
from storage import BlobStorage, blob_path, get_storage, is_data_url, parse_data_url

logger = logging.getLogger(__name__)

STYLE_NAMES = {
    "fine-line": "Fine-line blackwork",
    "geometric": "Geometric blackwork",
    "blackwork": "Bold blackwork",
    "watercolor": "Watercolor with black outlines",
    "traditional": "Traditional American style",
    "minimalist": "Minimalist fine-line",
}


class GenerationRequest(BaseModel):
    """Parameters for one generation. `parent_id` continues an existing lineage."""
    prompt: Optional[str] = Field(None, max_length=2000, examples=["A dragon coiled around a dagger"])
    style: Optional[str] = Field(None, max_length=64, examples=["fine-line"])
    placement: Optional[str] = Field(None, max_length=64, examples=["forearm"])
    reference_image_ref: Optional[str] = None
    parent_id: Optional[uuid.UUID] = None


def build_tattoo_prompt(prompt: str, style: Optional[str], placement: Optional[str], has_reference: bool) -> str:
    lines = ["Create a professional tattoo design on a clean white background, ready to show a client.", ""]
    if style:
        lines.append(f"STYLE: {STYLE_NAMES.get(style, style)}")
    lines.append(f"SUBJECT: {prompt}")
    if placement:
        lines.append(f"PLACEMENT: {placement}")
    lines += [
        "",
        "REQUIREMENTS:",
        "- Crisp linework that would translate well to skin",
        "- High contrast black ink, clean centered composition",
        "- No skin texture, no background elements, just the design itself",
    ]
    if placement:
        lines.append(f"- Composition optimized for {placement.lower()} anatomy")
    if has_reference:
        lines += [
            "",
            "REFERENCE: A reference image is provided. Maintain its core subject matter "
            "but translate it into the chosen tattoo style.",
        ]
    return "\n".join(lines)


async def _make_request(client: httpx.AsyncClient, method: str, url: str, max_retries: int = 0, **kwargs) -> Any:
    """
    Retry-enabled async HTTP request helper.

    Returns:
        The JSON response from the server.

    Raises:
        GenerationError: If the request fails after all retries.
    """
    last_exc = None
    for attempt in range(max_retries + 1):
        try:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except (httpx.RequestError, httpx.HTTPStatusError) as e:
            last_exc = e
            logger.warning(f"HTTP {method} to generation API failed (attempt {attempt + 1}/{max_retries + 1}): {e}")
            if attempt < max_retries:
                # Exponential backoff: 0.5s, 1s, 2s
                await asyncio.sleep(0.5 * (2 ** attempt))
        except ValueError as e:
            last_exc = e
            logger.error("Generation API returned a non-JSON body.")
            break

    raise GenerationError(f"Image generation service is unavailable: {last_exc}")


class ImageGenerator(abc.ABC):

    @abc.abstractmethod
    async def generate(self, request: GenerationRequest, owner_id) -> str:
        """Renders one image for `request` and returns its stored `image_ref`."""


class GeminiImageGenerator(ImageGenerator):

    def __init__(
        self,
        storage: BlobStorage,
        client: Optional[httpx.AsyncClient] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ):
        self.storage = storage
        self.client = client
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL

    @property
    def endpoint(self) -> str:
        return f"{settings.GEMINI_API_URL}/{self.model}:generateContent"

    async def _load_reference(self, client: httpx.AsyncClient, ref: str) -> Tuple[bytes, str]:
        if is_data_url(ref):
            return parse_data_url(ref)
        try:
            response = await client.get(ref)
            response.raise_for_status()
        except (httpx.RequestError, httpx.HTTPStatusError) as e:
            raise GenerationError(f"Could not fetch reference image: {e}")
        mime_type = response.headers.get("content-type", "image/png").split(";")[0]
        return response.content, mime_type

    async def _build_payload(self, client: httpx.AsyncClient, request: GenerationRequest) -> Dict[str, Any]:
        parts = []
        if request.reference_image_ref:
            data, mime_type = await self._load_reference(client, request.reference_image_ref)
            parts.append({"inlineData": {"mimeType": mime_type, "data": base64.b64encode(data).decode("ascii")}})
        prompt = request.prompt or "Translate the reference image into a tattoo design"
        parts.append({"text": build_tattoo_prompt(prompt, request.style, request.placement, bool(request.reference_image_ref))})
        return {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {"responseModalities": ["IMAGE"]},
        }

    @staticmethod
    def _extract_image(data: Dict[str, Any]) -> Tuple[bytes, str]:
        candidates = data.get("candidates") or []
        parts = (candidates[0].get("content") or {}).get("parts", []) if candidates else []
        for part in parts:
            inline = part.get("inlineData") or {}
            if inline.get("data"):
                return base64.b64decode(inline["data"]), inline.get("mimeType", "image/png")
        logger.error(f"No image data in generation response: {str(data)[:500]}")
        raise GenerationError("AI service returned no image.")

    async def generate(self, request: GenerationRequest, owner_id) -> str:
        if not self.api_key:
            logger.error("Gemini API is not configured.")
            raise GenerationError("AI generation service is not configured.")
        if not request.prompt and not request.reference_image_ref:
            raise ValidationError("A prompt or a reference image is required.")

        client = self.client or httpx.AsyncClient(timeout=settings.GENERATION_HTTP_TIMEOUT)
        try:
            payload = await self._build_payload(client, request)
            data = await _make_request(
                client, "POST", self.endpoint,
                max_retries=settings.GENERATION_MAX_RETRIES,
                params={"key": self.api_key},
                json=payload,
            )
        finally:
            if self.client is None:
                await client.aclose()

        image, mime_type = self._extract_image(data)
        image_ref = await self.storage.put(blob_path(owner_id, mime_type), image)
        logger.info(f"Generated image {image_ref} for owner {owner_id} (parent={request.parent_id})")
        return image_ref


_generator: Optional[ImageGenerator] = None


def get_generator() -> ImageGenerator:
    """FastAPI dependency returning the process-wide image generator."""
    global _generator
    if _generator is None:
        _generator = GeminiImageGenerator(get_storage())
    return _generator
