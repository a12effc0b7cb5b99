# docchat/llm/retry.py
"""
Provider call policy shared by the embedding and completion gateways.

Transient failures (rate limits, timeouts, connection drops, 5xx) are
retried with exponential backoff. Credential problems surface as
ConfigError and are never retried. Everything else is a ProviderError.
"""

import logging
import time
from typing import Callable, TypeVar

import openai

from docchat.config import (
    PROVIDER_MAX_RETRIES,
    PROVIDER_RETRY_DELAY,
)
from docchat.errors import ConfigError, ProviderError


logger = logging.getLogger(__name__)

T = TypeVar("T")


TRANSIENT_OPENAI_ERRORS = (
    openai.RateLimitError,
    openai.APIConnectionError,
    openai.InternalServerError,
)

CREDENTIAL_OPENAI_ERRORS = (
    openai.AuthenticationError,
    openai.PermissionDeniedError,
)


def translate_openai_error(error: Exception, operation: str) -> Exception:
    """Map an openai SDK exception onto the docchat taxonomy."""

    if isinstance(error, CREDENTIAL_OPENAI_ERRORS):
        return ConfigError(
            "OpenAI API key is invalid",
            details={"operation": operation},
        )

    return ProviderError(
        f"OpenAI {operation} failed: {type(error).__name__}",
        provider="openai",
        transient=isinstance(error, TRANSIENT_OPENAI_ERRORS),
    )


def call_with_retry(
    fn: Callable[[], T],
    operation: str,
    is_transient: Callable[[Exception], bool],
    translate: Callable[[Exception, str], Exception],
    max_retries: int = PROVIDER_MAX_RETRIES,
    retry_delay: float = PROVIDER_RETRY_DELAY,
) -> T:
    """
    Run `fn`, retrying transient failures.

    The last transient failure, and any non-transient failure, is
    re-raised through `translate`.
    """

    attempt = 0

    while True:

        attempt += 1

        try:
            return fn()

        except Exception as e:

            if not is_transient(e) or attempt >= max_retries:

                logger.error(
                    "Provider call failed",
                    extra={
                        "operation": operation,
                        "attempt": attempt,
                        "error_type": type(e).__name__,
                    },
                )

                raise translate(e, operation) from e

            delay = retry_delay * (2 ** (attempt - 1))

            logger.warning(
                "Provider call failed, retrying",
                extra={
                    "operation": operation,
                    "attempt": attempt,
                    "retry_in_seconds": delay,
                    "error_type": type(e).__name__,
                },
            )

            time.sleep(delay)


def call_openai(fn: Callable[[], T], operation: str, **kwargs) -> T:

    return call_with_retry(
        fn,
        operation=operation,
        is_transient=lambda e: isinstance(e, TRANSIENT_OPENAI_ERRORS),
        translate=translate_openai_error,
        **kwargs,
    )
