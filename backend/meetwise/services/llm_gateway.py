from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from google import genai
from google.genai import types

from meetwise.config import Settings

logger = logging.getLogger("meetwise.llm")


class LlmGatewayError(RuntimeError):
    """Transport, timeout, auth or empty-response failure of the text service."""


@dataclass
class GenerationOptions:
    temperature: float = 0.7
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    max_output_tokens: int = 8000


class LlmGateway(Protocol):
    def generate(self, instructions: str, transcript: str, options: GenerationOptions) -> str:
        ...


class GeminiGateway:
    def __init__(self, api_key: Optional[str], model: str, timeout_s: float = 60.0) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout_s = timeout_s
        self._client: Optional[genai.Client] = None

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise LlmGatewayError("MW_GEMINI_API_KEY is not configured")
            try:
                self._client = genai.Client(
                    api_key=self.api_key,
                    # HttpOptions.timeout is in milliseconds
                    http_options=types.HttpOptions(timeout=int(self.timeout_s * 1000)),
                )
            except Exception as exc:
                raise LlmGatewayError(f"could not create client: {type(exc).__name__}: {exc}") from exc
        return self._client

    def generate(self, instructions: str, transcript: str, options: GenerationOptions) -> str:
        client = self._get_client()
        config_kwargs: dict[str, Any] = {
            "temperature": options.temperature,
            "max_output_tokens": options.max_output_tokens,
        }
        if options.top_p is not None:
            config_kwargs["top_p"] = options.top_p
        if options.top_k is not None:
            config_kwargs["top_k"] = options.top_k
        try:
            response = client.models.generate_content(
                model=self.model,
                contents=[
                    types.Content(
                        role="user",
                        parts=[
                            types.Part(text=instructions),
                            types.Part(text=f"Transcript: {transcript}"),
                        ],
                    )
                ],
                config=types.GenerateContentConfig(**config_kwargs),
            )
            text = response.text
        except Exception as exc:
            raise LlmGatewayError(f"{type(exc).__name__}: {exc}") from exc

        if not text:
            raise LlmGatewayError("empty response from model (blocked or no candidates)")
        logger.debug("Model returned %d chars", len(text))
        return text


def build_gateway(settings: Settings) -> LlmGateway:
    return GeminiGateway(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        timeout_s=settings.llm_timeout_s,
    )
