import asyncio
import logging
from typing import Optional

import httpx
from google import genai
from google.genai import errors, types

from core.config import get_settings
from core.exceptions import ExternalServiceError

logger = logging.getLogger("LLMClient")

RETRYABLE_ERRORS = (errors.APIError, httpx.HTTPError, asyncio.TimeoutError)


class GeminiClient:
    """
    Thin async wrapper over the Gemini SDK.

    Every call is bounded by ``LLM_TIMEOUT_SECONDS`` and retried with exponential
    backoff up to ``LLM_MAX_ATTEMPTS``. Callers see either the completion text
    or a single ExternalServiceError.
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        settings = get_settings()
        self.client = genai.Client(api_key=api_key or settings.gemini_api_key)
        self.model = model or settings.gemini_model

    def _config(self, system_instruction: str) -> types.GenerateContentConfig:
        settings = get_settings()
        return types.GenerateContentConfig(
            max_output_tokens=settings.llm_max_output_tokens,
            temperature=settings.llm_temperature,
            thinking_config=types.ThinkingConfig(
                thinking_budget=0,
            ),
            system_instruction=[
                types.Part.from_text(text=system_instruction),
            ],
        )

    async def _generate_once(self, prompt: str, system_instruction: str) -> str:
        settings = get_settings()
        response = await asyncio.wait_for(
            self.client.aio.models.generate_content(
                model=self.model,
                contents=[
                    types.Content(
                        role="user",
                        parts=[
                            types.Part.from_text(text=prompt),
                        ],
                    ),
                ],
                config=self._config(system_instruction),
            ),
            timeout=settings.llm_timeout_seconds,
        )
        if not response.text:
            raise ExternalServiceError("gemini", "Empty completion")
        return response.text

    async def generate(self, prompt: str, system_instruction: str) -> str:
        settings = get_settings()
        attempts = max(1, settings.llm_max_attempts)

        for attempt in range(1, attempts + 1):
            try:
                return await self._generate_once(prompt, system_instruction)
            except (*RETRYABLE_ERRORS, ExternalServiceError) as e:
                if attempt == attempts:
                    logger.error(f"Gemini call failed after {attempt} attempts: {e}")
                    raise ExternalServiceError("gemini", str(e) or e.__class__.__name__)
                delay = settings.llm_retry_base_delay_seconds * (2 ** (attempt - 1))
                logger.warning(f"Gemini call failed (attempt {attempt}/{attempts}), retrying in {delay}s: {e}")
                await asyncio.sleep(delay)

        raise ExternalServiceError("gemini", "No attempts made")


_client: Optional[GeminiClient] = None


def get_llm_client() -> GeminiClient:
    global _client
    if _client is None:
        if not get_settings().gemini_api_key:
            raise ExternalServiceError("gemini", "Gemini not configured")
        _client = GeminiClient()
    return _client
