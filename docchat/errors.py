# docchat/errors.py
"""
Exception hierarchy for docchat.

Every error carries an HTTP status and a public message. The public
message is the only text that reaches API callers; `message` and
`details` are for logs.
"""

from typing import Any, Dict, Optional


INTERNAL_ERROR_MESSAGE = "Internal server error"


class DocChatError(Exception):
    """Base exception for all docchat errors."""

    status_code = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        public_message: Optional[str] = None,
    ):
        self.message = message
        self.details = details or {}
        self._public_message = public_message
        super().__init__(message)

    @property
    def public_message(self) -> str:
        if self._public_message is not None:
            return self._public_message
        return self.message

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationError(DocChatError):
    """Bad or missing input (empty question, max_size <= 0, ...)."""

    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)


class FileTooLargeError(ValidationError):
    """Upload exceeds the configured size limit."""

    status_code = 413


class AuthError(DocChatError):
    """No authenticated identity on the request."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, public_message="Unauthorized")


class ConfigError(DocChatError):
    """Missing or invalid provider credential / configuration."""

    status_code = 400


class NotFoundError(DocChatError):
    """Resource does not exist for this owner."""

    status_code = 404


class ProviderError(DocChatError):
    """Embedding or completion provider failure."""

    status_code = 500

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        transient: bool = False,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if provider:
            details["provider"] = provider
        details["transient"] = transient
        self.transient = transient
        super().__init__(
            message,
            details,
            public_message=INTERNAL_ERROR_MESSAGE,
        )


class StoreError(DocChatError):
    """Vector, object or registry store failure."""

    status_code = 500

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if operation:
            details["operation"] = operation
        super().__init__(
            message,
            details,
            public_message=INTERNAL_ERROR_MESSAGE,
        )
