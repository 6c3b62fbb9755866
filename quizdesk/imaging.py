"""Gemini image generation/editing for assessment artwork.

Independent of the quiz side: nothing here touches the database, and every
failure is raised as UpstreamError (or ValidationError for bad arguments)
for the caller to show next to the image panel.

Credentials come from a key provider. When the API answers "Requested
entity was not found" (the selected key is stale or belongs to another
project), generate() asks the provider to reselect once and retries exactly
once before giving up.
"""

import base64
import logging
import os
import re
from dataclasses import dataclass
from typing import Optional, Tuple

import httpx
from dotenv import load_dotenv

from quizdesk.config import settings
from quizdesk.errors import UpstreamError, ValidationError
from quizdesk.schemas import ASPECT_RATIOS, IMAGE_SIZES

logger = logging.getLogger(__name__)

GENERATE_MODEL = "gemini-3-pro-image-preview"
EDIT_MODEL = "gemini-2.5-flash-image"
ENTITY_NOT_FOUND = "Requested entity was not found"

_DATA_URL_RE = re.compile(r"^data:(image/(?:png|jpeg|jpg|webp|gif));base64,", re.I)


@dataclass
class GeneratedImage:
    data: bytes
    mime_type: str = "image/png"

    @property
    def data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


def split_data_url(value: str) -> Tuple[str, bytes]:
    """
    "data:image/png;base64,AAAA" -> ("image/png", b"...").
    A bare base64 string is taken as PNG.
    """
    value = (value or "").strip()
    mime = "image/png"
    m = _DATA_URL_RE.match(value)
    if m:
        mime = m.group(1).lower().replace("image/jpg", "image/jpeg")
        value = value[m.end():]
    try:
        return mime, base64.b64decode(value, validate=True)
    except ValueError as e:
        raise ValidationError("Source image is not valid base64 data") from e


class EnvKeyProvider:
    """
    Reads GEMINI_API_KEY on every call. reselect() re-reads .env so an
    operator can drop in a new key without restarting the server.
    """

    def current(self) -> Optional[str]:
        return os.getenv("GEMINI_API_KEY") or settings.GEMINI_API_KEY

    def reselect(self) -> None:
        logger.warning("reloading GEMINI_API_KEY from environment")
        load_dotenv(override=True)


class _ApiError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ImageStudio:
    def __init__(
        self,
        key_provider=None,
        client: Optional[httpx.Client] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.key_provider = key_provider or EnvKeyProvider()
        self.base_url = (base_url or settings.GEMINI_API_BASE).rstrip("/")
        self.client = client or httpx.Client(timeout=timeout or settings.GEMINI_TIMEOUT)

    # ---------- public ----------

    def generate(self, prompt: str, aspect_ratio: str = "1:1", image_size: str = "1K") -> GeneratedImage:
        if not (prompt or "").strip():
            raise ValidationError("Prompt is required")
        if aspect_ratio not in ASPECT_RATIOS:
            raise ValidationError(f"Unsupported aspect ratio {aspect_ratio!r}")
        if image_size not in IMAGE_SIZES:
            raise ValidationError(f"Unsupported image size {image_size!r}")

        if not self.key_provider.current():
            self.key_provider.reselect()

        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseModalities": ["IMAGE"],
                "imageConfig": {"aspectRatio": aspect_ratio, "imageSize": image_size},
            },
        }

        try:
            payload = self._call(GENERATE_MODEL, body)
        except _ApiError as e:
            if ENTITY_NOT_FOUND not in e.message:
                raise UpstreamError(e.message) from e
            logger.warning("image API rejected the selected key, reselecting and retrying once")
            self.key_provider.reselect()
            try:
                payload = self._call(GENERATE_MODEL, body)
            except _ApiError as retry_error:
                raise UpstreamError(retry_error.message) from retry_error

        image = _first_inline_image(payload)
        if image is None:
            raise UpstreamError("No image generated.")
        return image

    def edit(self, source: bytes, prompt: str, mime_type: str = "image/png") -> GeneratedImage:
        if not source:
            raise ValidationError("Source image is required")
        if not (prompt or "").strip():
            raise ValidationError("Prompt is required")

        body = {
            "contents": [
                {
                    "parts": [
                        {
                            "inlineData": {
                                "mimeType": mime_type,
                                "data": base64.b64encode(source).decode("ascii"),
                            }
                        },
                        {"text": prompt},
                    ]
                }
            ],
            "generationConfig": {"responseModalities": ["IMAGE"]},
        }
        try:
            payload = self._call(EDIT_MODEL, body)
        except _ApiError as e:
            raise UpstreamError(e.message) from e

        image = _first_inline_image(payload)
        if image is None:
            raise UpstreamError("No edited image returned.")
        return image

    def close(self) -> None:
        self.client.close()

    # ---------- transport ----------

    def _call(self, model: str, body: dict) -> dict:
        key = self.key_provider.current()
        if not key:
            raise UpstreamError("No API key selected for image generation")

        url = f"{self.base_url}/models/{model}:generateContent"
        try:
            resp = self.client.post(url, json=body, headers={"x-goog-api-key": key})
        except httpx.HTTPError as e:
            logger.error("image API request failed: %s", e)
            raise UpstreamError(f"Image API request failed: {e}") from e

        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.error("image API error %s: %s", resp.status_code, message)
            raise _ApiError(resp.status_code, message)

        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamError("Image API returned a non-JSON response") from e


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict) and err.get("message"):
        return str(err["message"])
    return f"Image API request failed: {resp.status_code}"


def _first_inline_image(payload: dict) -> Optional[GeneratedImage]:
    candidates = payload.get("candidates") or []
    if not candidates:
        return None
    parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []
    for part in parts:
        inline = part.get("inlineData") or part.get("inline_data")
        if inline and inline.get("data"):
            mime = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            return GeneratedImage(data=base64.b64decode(inline["data"]), mime_type=mime)
    return None
