import logging

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from google.genai.types import Modality

from errors import ConfigurationError, TransportError


logger = logging.getLogger(__name__)


def first_text(response):
    """Return the first text part of the first candidate, or None."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    content = getattr(candidates[0], "content", None)
    for part in getattr(content, "parts", None) or []:
        text = getattr(part, "text", None)
        if text:
            return text
    return None


class GeminiClient:
    """Thin wrapper over `genai.Client` for the two request shapes we send."""

    def __init__(self, api_key, text_model, image_model, timeout_ms=300_000):
        if not api_key:
            raise ConfigurationError(
                "Gemini API Key is missing. Please set GEMINI_API_KEY in your environment."
            )
        self.text_model = text_model
        self.image_model = image_model
        self._client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=timeout_ms or None),
        )

    @classmethod
    def from_settings(cls, settings):
        return cls(
            api_key=settings.api_key,
            text_model=settings.text_model,
            image_model=settings.image_model,
            timeout_ms=settings.timeout_ms,
        )

    def _generate(self, model, prompt, config):
        try:
            return self._client.models.generate_content(
                model=model, contents=prompt, config=config,
            )
        except genai_errors.APIError as e:
            logger.warning("Gemini %s returned %s: %s", model, e.code, e.message)
            raise TransportError(e.code, e.message or str(e)) from e
        except httpx.HTTPError as e:
            logger.warning("Gemini %s unreachable: %s", model, e)
            raise TransportError(None, str(e) or type(e).__name__) from e

    def call(self, prompt, json_mode=False):
        config = None
        if json_mode:
            config = types.GenerateContentConfig(response_mime_type="application/json")
        response = self._generate(self.text_model, prompt, config)
        return first_text(response)

    def generate_image(self, prompt):
        config = types.GenerateContentConfig(
            response_modalities=[Modality.TEXT, Modality.IMAGE],
        )
        return self._generate(self.image_model, prompt, config)
