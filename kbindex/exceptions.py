"""KBIndex exceptions."""
from typing import Any, Optional


class KBError(Exception):
    """Base class for all KBIndex errors."""

    def __init__(self, message: str, *args, payload: Optional[Any] = None):
        self.message = message
        self.payload = payload
        super().__init__(message, *args)

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"


class ConfigError(KBError):
    """Invalid or incomplete configuration."""


class LLMError(KBError):
    """The model-call boundary failed (network, provider or timeout)."""

    def __init__(
        self,
        message: str,
        *args,
        status: Optional[int] = None,
        payload: Optional[Any] = None,
    ):
        self.status = status
        super().__init__(message, *args, payload=payload)


class ParserError(KBError):
    """Model output could not be turned into the requested structure."""
