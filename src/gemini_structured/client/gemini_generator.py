"""Gemini-backed `TextGenerator`.

The engine only needs ``prompt -> text``; this adapter provides that on top
of the `google-genai` SDK, asking for a JSON response MIME type so the model
is nudged toward bare documents before the extractor ever runs.
"""

import logging
from typing import Any

from google import genai
from google.genai import types

from gemini_structured.config import StructuredSettings, get_settings
from gemini_structured.exceptions import GeneratorError

log = logging.getLogger(__name__)


class GeminiGenerator:
    """Generate text with a Gemini model"""  # noqa: D415

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        *,
        client: Any | None = None,
        json_mode: bool = True,
        system_instruction: str | None = None,
        temperature: float | None = None,
        settings: StructuredSettings | None = None,
    ):
        """Create a generator.

        Args:
            model: Model identifier; defaults to the ambient settings.
            api_key: API key; defaults to `GEMINI_API_KEY` via settings.
            client: Pre-built `genai.Client` (or a test double). When given,
                `api_key` is not needed.
            json_mode: Request ``application/json`` output.
            system_instruction: Optional system instruction for every call.
            temperature: Optional sampling temperature.
            settings: Settings to resolve defaults from.
        """
        settings = settings or get_settings()
        self.model = model or settings.model
        self._api_key = api_key or settings.api_key
        self._client = client
        self.json_mode = json_mode
        self.system_instruction = system_instruction
        self.temperature = temperature

    @property
    def client(self) -> Any:
        """The SDK client, created on first use."""
        if self._client is None:
            if not self._api_key:
                raise GeneratorError(
                    "GEMINI_API_KEY is not set and no explicit api_key or client "
                    "was provided."
                )
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    def _build_config(self) -> types.GenerateContentConfig:
        config = types.GenerateContentConfig()
        if self.system_instruction:
            config.system_instruction = self.system_instruction
        if self.temperature is not None:
            config.temperature = self.temperature
        config.response_mime_type = (
            "application/json" if self.json_mode else "text/plain"
        )
        return config

    def generate(self, prompt: str) -> str | None:
        """Send `prompt` to the model and return the response text.

        Raises:
            GeneratorError: If the client cannot be created or the SDK call
                fails. The retry engine records this as a generator failure.
        """
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=self._build_config(),
            )
        except (GeneratorError, MemoryError):
            raise
        except Exception as e:
            log.error("Gemini generate_content failed for model %s", self.model)
            raise GeneratorError(f"Gemini call failed: {e}") from e

        text = getattr(response, "text", None)
        if text is None:
            log.debug("Gemini returned no text for model %s", self.model)
        return text

    def __repr__(self) -> str:
        return f"GeminiGenerator(model={self.model!r}, json_mode={self.json_mode})"
