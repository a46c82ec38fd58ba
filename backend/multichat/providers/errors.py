from __future__ import annotations


class ProviderError(Exception):
    """Base class for provider-layer failures."""


class ProviderConfigError(ProviderError):
    """Provider cannot be used as configured (e.g. missing API key)."""


class ProviderNotFoundError(ProviderError):
    """No adapter registered under the requested provider name."""


class UpstreamError(ProviderError):
    """Upstream answered, but with an error payload or an unusable body."""

    def __init__(self, provider: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code
