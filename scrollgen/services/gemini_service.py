"""Gemini text generation service for scene evolution.

Uses the Google GenAI SDK to turn the current scene description into the
next one, so consecutive tiles tell a continuous visual story.
"""

import logging
import os
import time
from dataclasses import dataclass
from typing import Optional

from ..exceptions import PromptEvolutionError
from .prompt_service import build_evolution_instruction, clean_evolved_prompt

logger = logging.getLogger(__name__)


@dataclass
class EvolutionResult:
    """Result from prompt evolution."""

    original_prompt: str
    evolved_prompt: str
    model: str
    generation_time: float


class GeminiService:
    """Service for scene evolution using Google Gemini.

    The API key is optional at construction time; calls made without one
    fail with :class:`PromptEvolutionError` and the caller falls back to a
    templated continuation.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gemini-2.0-flash",
        timeout: float = 30.0,
        temperature: float = 0.9,
    ):
        """
        Initialize Gemini service.

        Args:
            api_key: Google API key (or set GEMINI_API_KEY / GOOGLE_API_KEY)
            model: Text model used for evolution
            timeout: Request timeout in seconds
            temperature: Sampling temperature for the evolved scene
        """
        self.api_key = api_key or os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self._client = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self):
        """Lazy initialization of GenAI client."""
        if self._client is None:
            from google import genai
            from google.genai import types

            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=int(self.timeout * 1000)),
            )
        return self._client

    def evolve_prompt(
        self,
        current_prompt: str,
        theme: Optional[str] = None,
    ) -> EvolutionResult:
        """
        Generate the next scene description.

        Args:
            current_prompt: Scene description of the latest tile
            theme: The session's original user theme, if any

        Returns:
            EvolutionResult with the evolved scene

        Raises:
            PromptEvolutionError: On any backend failure or empty response
        """
        if not self.api_key:
            raise PromptEvolutionError("Gemini API key not configured")

        instruction = build_evolution_instruction(current_prompt, theme)
        start_time = time.time()

        try:
            from google.genai import types

            response = self.client.models.generate_content(
                model=self.model,
                contents=instruction,
                config=types.GenerateContentConfig(
                    temperature=self.temperature,
                    max_output_tokens=200,
                ),
            )
            text = response.text
        except Exception as e:
            raise PromptEvolutionError(f"Gemini request failed: {e}") from e

        generation_time = time.time() - start_time

        evolved = clean_evolved_prompt(text) if isinstance(text, str) else ""
        if not evolved:
            raise PromptEvolutionError("Gemini returned an empty scene description")

        logger.info("Prompt evolved in %.2fs: %s", generation_time, evolved)
        return EvolutionResult(
            original_prompt=current_prompt,
            evolved_prompt=evolved,
            model=self.model,
            generation_time=generation_time,
        )
