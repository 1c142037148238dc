"""
Exceptions raised while calling AI providers.

The orchestrator maps these to outcome kinds; only ProvidersExhaustedError
escapes to the caller, and it is terminal for the logical request.
"""
from typing import List, Optional


class ProviderCallError(Exception):
    """A single provider attempt failed."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class ProviderTimeoutError(ProviderCallError):
    """A provider attempt exceeded its timeout."""


class ProviderResponseError(ProviderCallError):
    """A provider answered with an error status."""

    def __init__(self, message: str, status_code: int, provider: Optional[str] = None):
        super().__init__(message, provider=provider)
        self.status_code = status_code


class SchemaValidationError(ProviderCallError):
    """Raised when provider output fails JSON parsing or schema validation."""

    def __init__(self, message: str, provider: Optional[str] = None, raw_output: Optional[str] = None):
        super().__init__(message, provider=provider)
        self.raw_output = raw_output


class ProvidersExhaustedError(ProviderCallError):
    """Every configured provider was attempted once and none succeeded."""

    def __init__(self, attempts: List["AttemptRecord"]):
        tried = ", ".join(f"{a.provider}:{a.kind.value}" for a in attempts)
        super().__init__(f"All providers failed ({tried})")
        self.attempts = attempts
