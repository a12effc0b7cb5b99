# docchat/llm/client.py

import logging
import time
from typing import Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from openai import OpenAI

from docchat.config import (
    GEMINI_API_KEY,
    LLM_TEMPERATURE,
    PROVIDER_TIMEOUT_SECONDS,
)
from docchat.errors import ConfigError, ProviderError
from docchat.llm.model_registry import ChatModel, Provider
from docchat.llm.retry import call_openai, call_with_retry

logger = logging.getLogger(__name__)


TRANSIENT_GOOGLE_ERRORS = (
    google_exceptions.TooManyRequests,
    google_exceptions.ServiceUnavailable,
    google_exceptions.InternalServerError,
    google_exceptions.DeadlineExceeded,
)

CREDENTIAL_GOOGLE_ERRORS = (
    google_exceptions.Unauthenticated,
    google_exceptions.PermissionDenied,
)


def _translate_google_error(error: Exception, operation: str) -> Exception:

    if isinstance(error, CREDENTIAL_GOOGLE_ERRORS):
        return ConfigError(
            "Gemini API key is invalid",
            details={"operation": operation},
        )

    return ProviderError(
        f"Gemini {operation} failed: {type(error).__name__}",
        provider="gemini",
        transient=isinstance(error, TRANSIENT_GOOGLE_ERRORS),
    )


class CompletionClient:
    """
    Chat-completion gateway for one resolved ChatModel.

    complete() returns the model's text, or "" when the provider
    produced no content. Applying the refusal sentence is the
    workflow's job.
    """

    def __init__(self, model: ChatModel, credential: Optional[str] = None):

        self.model = model

        self._openai: Optional[OpenAI] = None
        self._gemini_key: Optional[str] = None

        if model.provider is Provider.OPENAI:

            if not credential:
                raise ConfigError("OpenAI API key not configured")

            self._openai = OpenAI(
                api_key=credential,
                timeout=PROVIDER_TIMEOUT_SECONDS,
                max_retries=0,
            )

        elif model.provider is Provider.GEMINI:

            if not GEMINI_API_KEY:
                raise ConfigError("Gemini API key not configured")

            self._gemini_key = GEMINI_API_KEY

    # ============================================================
    # PUBLIC API
    # ============================================================

    def complete(self, system_prompt: str, user_prompt: str) -> str:

        logger.info(
            "LLM request started",
            extra={
                "model": self.model.key,
                "prompt_length": len(user_prompt),
            },
        )

        start = time.time()

        if self.model.provider is Provider.OPENAI:
            text = self._complete_openai(system_prompt, user_prompt)
        else:
            text = self._complete_gemini(system_prompt, user_prompt)

        logger.info(
            "LLM provider success",
            extra={
                "provider": self.model.provider.value,
                "model": self.model.key,
                "latency_seconds": round(time.time() - start, 3),
                "empty": not text.strip(),
            },
        )

        return text

    # ============================================================
    # PROVIDERS
    # ============================================================

    def _complete_openai(self, system_prompt: str, user_prompt: str) -> str:

        params = {
            "model": self.model.name,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": self.model.max_output_tokens,
        }

        if self.model.supports_temperature:
            params["temperature"] = LLM_TEMPERATURE

        response = call_openai(
            lambda: self._openai.chat.completions.create(**params),
            operation="completion",
        )

        if not response.choices:
            return ""

        return response.choices[0].message.content or ""

    def _complete_gemini(self, system_prompt: str, user_prompt: str) -> str:

        genai.configure(api_key=self._gemini_key)

        gemini_model = genai.GenerativeModel(
            model_name=self.model.name,
            system_instruction=system_prompt,
        )

        generation_config = {"max_output_tokens": self.model.max_output_tokens}

        if self.model.supports_temperature:
            generation_config["temperature"] = LLM_TEMPERATURE

        response = call_with_retry(
            lambda: gemini_model.generate_content(
                user_prompt,
                generation_config=generation_config,
                request_options={"timeout": PROVIDER_TIMEOUT_SECONDS},
            ),
            operation="completion",
            is_transient=lambda e: isinstance(e, TRANSIENT_GOOGLE_ERRORS),
            translate=_translate_google_error,
        )

        # Blocked or candidate-less responses carry no text
        if not response.candidates or not response.candidates[0].content.parts:
            return ""

        return response.text or ""
