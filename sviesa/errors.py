"""
Error taxonomy
==============

Only ProviderError raised by generation, and StoreUnavailable from an
explicit corpus reset, reach the caller.
Every other error is caught at the component boundary and degraded:

    ProviderError      embedding/generation call failed
    CacheCorruption    malformed persisted cache payload, treated as a miss
    StoreUnavailable   local chunk store could not be opened (seed data only)
                       or reset (surfaced to the caller)
    RemoteUnavailable  shared memory unreachable or unconfigured
"""

from typing import Optional


class SviesaError(Exception):
    """Base exception for the answer pipeline."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ProviderError(SviesaError):
    """Generative or embedding provider call failed."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ):
        self.provider = provider
        self.model = model
        if provider:
            message = f"[{provider}{'/' + model if model else ''}] {message}"
        super().__init__(message)


class CacheCorruption(SviesaError):
    """Persisted cache payload could not be parsed."""

    def __init__(self, message: str, key: Optional[str] = None):
        self.key = key
        super().__init__(message)


class StoreUnavailable(SviesaError):
    """Local persistent chunk store failed to open or reset."""
    pass


class RemoteUnavailable(SviesaError):
    """Shared remote memory is unreachable or not configured."""
    pass
