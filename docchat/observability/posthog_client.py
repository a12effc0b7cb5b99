# docchat/observability/posthog_client.py

"""
PostHog Observability Client

Architecture contract:
- Does NOT replace structured logging
- Events are keyed by owner id, or request id before authentication
- Never sends document text, questions or credentials
- Never blocks or breaks API execution
"""

import logging
from typing import Optional, Dict, Any

from posthog import Posthog

from docchat.config import POSTHOG_API_KEY, POSTHOG_HOST


logger = logging.getLogger(__name__)


class PostHogClient:
    """
    Safe PostHog wrapper.

    Guarantees:
    - Never crashes API
    - Disabled cleanly when POSTHOG_API_KEY is not set
    """

    def __init__(self, api_key: Optional[str] = POSTHOG_API_KEY, host: str = POSTHOG_HOST):

        self._enabled = False
        self._client: Optional[Posthog] = None

        if not api_key:
            logger.warning(
                "PostHog disabled: POSTHOG_API_KEY not set"
            )
            return

        try:

            self._client = Posthog(
                project_api_key=api_key,
                host=host,
                timeout=5,
                flush_interval=1,
            )

            self._enabled = True

            logger.info(
                "PostHog client initialized",
                extra={"host": host}
            )

        except Exception as e:

            logger.error(
                "PostHog initialization failed",
                extra={"error": str(e)}
            )

    @property
    def enabled(self) -> bool:
        return self._enabled

    # ==========================================================
    # INTERNAL SAFE TRACK
    # ==========================================================

    def _track(
        self,
        distinct_id: str,
        event: str,
        properties: Optional[Dict[str, Any]] = None,
    ):
        """
        Safe internal tracking method.
        Never throws exceptions.
        """

        if not self._enabled or not self._client:
            return

        try:

            self._client.capture(
                distinct_id=distinct_id,
                event=event,
                properties=properties or {},
            )

        except Exception as e:

            logger.warning(
                "PostHog tracking failed",
                extra={
                    "event": event,
                    "error": str(e),
                }
            )

    # ==========================================================
    # DOCUMENT EVENTS
    # ==========================================================

    def track_document_upload(
        self,
        distinct_id: str,
        document_id: str,
        mime_type: str,
        chunks: int,
        latency: float,
    ):

        self._track(
            distinct_id,
            "document_uploaded",
            {
                "document_id": document_id,
                "mime_type": mime_type,
                "chunks": chunks,
                "latency_seconds": latency,
            },
        )

    def track_documents_reset(self, distinct_id: str, documents: int):

        self._track(
            distinct_id,
            "documents_reset",
            {"documents": documents},
        )

    # ==========================================================
    # QUESTION / RETRIEVAL EVENTS
    # ==========================================================

    def track_question(
        self,
        distinct_id: str,
        model: str,
        question: str,
        latency: float,
        refused: bool,
        success: bool,
    ):

        self._track(
            distinct_id,
            "question_asked",
            {
                "model": model,
                "question_length": len(question),
                "latency_seconds": latency,
                "refused": refused,
                "success": success,
            },
        )

    def track_retrieval(
        self,
        distinct_id: str,
        chunks_retrieved: int,
        top_score: Optional[float],
    ):

        self._track(
            distinct_id,
            "retrieval_completed",
            {
                "chunks_retrieved": chunks_retrieved,
                "top_score": top_score,
            },
        )

    # ==========================================================
    # ERROR TRACKING
    # ==========================================================

    def track_error(
        self,
        distinct_id: str,
        error_type: str,
        error_message: str,
        endpoint: str,
    ):

        self._track(
            distinct_id,
            "system_error",
            {
                "error_type": error_type,
                "error_message": error_message,
                "endpoint": endpoint,
            },
        )

    def shutdown(self):

        if self._client:
            try:
                self._client.shutdown()
            except Exception as e:
                logger.warning(
                    "PostHog shutdown failed",
                    extra={"error": str(e)},
                )


# ==============================================================
# GLOBAL SINGLETON
# ==============================================================

posthog_client = PostHogClient()
