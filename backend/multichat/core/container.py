from __future__ import annotations

from dataclasses import dataclass

from multichat.providers.http import HTTPClientProvider
from multichat.providers.registry import ProviderRegistry


@dataclass
class AppContainer:
    """App-scoped runtime container."""

    registry: ProviderRegistry
    http: HTTPClientProvider


_container: AppContainer | None = None


def set_container(container: AppContainer | None) -> None:
    global _container
    _container = container


def get_container() -> AppContainer | None:
    return _container
