"""Model-id routing and delegation to the provider adapters.

Routing is an ordered list of rules; the first rule whose predicate matches
the model id decides the provider and the upstream id. First-party
namespaces (``meta/``, ``microsoft/``, ``stabilityai/``) are excluded from
the hub rule so they reach NVIDIA NIM instead of the Hugging Face router.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from multichat.config.settings import AppSettings
from multichat.providers.base import (
    ModelCapabilities,
    ModelProvider,
    ProviderName,
    SendResult,
    TitleGenerator,
)
from multichat.providers.errors import ProviderNotFoundError
from multichat.providers.google import GeminiClient, GoogleProvider
from multichat.providers.http import HTTPClientProvider
from multichat.providers.huggingface import HuggingFaceProvider
from multichat.providers.nvidia import NvidiaProvider
from multichat.providers.openai_compat import OpenAICompatClient
from multichat.schemas.chat import Chat, Message, User

logger = logging.getLogger(__name__)

FIRST_PARTY_NAMESPACES: frozenset[str] = frozenset({"meta", "microsoft", "stabilityai"})
ALIAS_PREFIXES: dict[str, ProviderName] = {
    "hf-": ProviderName.HUGGINGFACE,
    "nv-": ProviderName.NVIDIA,
}
DEFAULT_PROVIDER = ProviderName.GOOGLE


@dataclass(frozen=True)
class Route:
    provider: ProviderName
    actual_model_id: str


@dataclass(frozen=True)
class RoutingRule:
    name: str
    predicate: Callable[[str], bool]
    provider: ProviderName
    transform: Callable[[str], str] = lambda model_id: model_id


def _namespace(model_id: str) -> str | None:
    if "/" not in model_id:
        return None
    return model_id.split("/", 1)[0]


def _strip_prefix(prefix: str) -> Callable[[str], str]:
    return lambda model_id: model_id[len(prefix):]


def _alias_rules() -> list[RoutingRule]:
    return [
        RoutingRule(
            name=f"alias:{prefix}",
            predicate=lambda model_id, prefix=prefix: model_id.startswith(prefix),
            provider=provider,
            transform=_strip_prefix(prefix),
        )
        for prefix, provider in ALIAS_PREFIXES.items()
    ]


ROUTING_RULES: tuple[RoutingRule, ...] = (
    RoutingRule(
        name="google-prefix",
        predicate=lambda model_id: model_id.startswith("gemini"),
        provider=ProviderName.GOOGLE,
    ),
    *_alias_rules(),
    RoutingRule(
        name="hub-namespace",
        predicate=lambda model_id: (
            _namespace(model_id) is not None
            and _namespace(model_id) not in FIRST_PARTY_NAMESPACES
        ),
        provider=ProviderName.HUGGINGFACE,
    ),
    RoutingRule(
        name="first-party-namespace",
        predicate=lambda model_id: _namespace(model_id) in FIRST_PARTY_NAMESPACES,
        provider=ProviderName.NVIDIA,
    ),
    RoutingRule(
        name="nim-marker",
        predicate=lambda model_id: "nvidia" in model_id or "nim-" in model_id,
        provider=ProviderName.NVIDIA,
    ),
)


def resolve_model(model_id: str, rules: tuple[RoutingRule, ...] = ROUTING_RULES) -> Route:
    for rule in rules:
        if rule.predicate(model_id):
            return Route(provider=rule.provider, actual_model_id=rule.transform(model_id))
    return Route(provider=DEFAULT_PROVIDER, actual_model_id=model_id)


class ProviderRegistry:
    """One adapter per provider; every call is a thin delegation."""

    def __init__(
        self,
        providers: dict[ProviderName, ModelProvider],
        *,
        rules: tuple[RoutingRule, ...] = ROUTING_RULES,
    ) -> None:
        self._providers = dict(providers)
        self._rules = rules

    @property
    def provider_names(self) -> list[ProviderName]:
        return list(self._providers)

    def resolve(self, model_id: str) -> Route:
        return resolve_model(model_id, self._rules)

    def get_provider(self, provider: ProviderName | str) -> ModelProvider:
        try:
            key = ProviderName(provider)
        except ValueError:
            raise ProviderNotFoundError(f"Unknown provider: {provider}") from None
        adapter = self._providers.get(key)
        if adapter is None:
            raise ProviderNotFoundError(f"No adapter registered for provider: {key.value}")
        return adapter

    async def send_message(
        self, provider: ProviderName | str, model_id: str, chat: Chat
    ) -> SendResult:
        return await self.get_provider(provider).send_message(model_id, chat)

    async def generate_title(
        self, provider: ProviderName | str, model_id: str, message: Message
    ) -> str:
        adapter = self.get_provider(provider)
        if not isinstance(adapter, TitleGenerator):
            logger.info(
                "Provider %s has no title generation, using %s",
                getattr(adapter, "name", provider),
                DEFAULT_PROVIDER.value,
            )
            adapter = self.get_provider(DEFAULT_PROVIDER)
        return await adapter.generate_title(model_id, message)  # type: ignore[union-attr]

    def supports_image_generation(self, provider: ProviderName | str, model_id: str) -> bool:
        check = getattr(self.get_provider(provider), "supports_image_generation", None)
        return bool(check(model_id)) if check else False

    def supports_streaming(self, provider: ProviderName | str, model_id: str) -> bool:
        check = getattr(self.get_provider(provider), "supports_streaming", None)
        return bool(check(model_id)) if check else False

    def supports_vision(self, provider: ProviderName | str, model_id: str) -> bool:
        check = getattr(self.get_provider(provider), "supports_vision", None)
        return bool(check(model_id)) if check else False

    def capabilities(self, model_id: str) -> ModelCapabilities:
        route = self.resolve(model_id)
        return ModelCapabilities(
            streaming=self.supports_streaming(route.provider, route.actual_model_id),
            image_generation=self.supports_image_generation(
                route.provider, route.actual_model_id
            ),
            vision=self.supports_vision(route.provider, route.actual_model_id),
        )

    async def send_for_model(
        self, model_id: str, chat: Chat, user: User | None = None
    ) -> SendResult:
        route = self.resolve(model_id)
        logger.info(
            "Routing %s to %s as %s (user=%s)",
            model_id,
            route.provider.value,
            route.actual_model_id,
            user.email if user else None,
        )
        return await self.send_message(route.provider, route.actual_model_id, chat)

    async def generate_title_for_model(self, model_id: str, message: Message) -> str:
        route = self.resolve(model_id)
        return await self.generate_title(route.provider, route.actual_model_id, message)


def build_registry(settings: AppSettings, http: HTTPClientProvider) -> ProviderRegistry:
    """Build one adapter per provider around the shared HTTP client."""
    google = GoogleProvider(
        GeminiClient(
            api_key=settings.google_api_key,
            base_url=settings.google_base_url,
            http=http,
        ),
        title_model=settings.google_title_model,
    )
    huggingface = HuggingFaceProvider(
        OpenAICompatClient(
            provider=ProviderName.HUGGINGFACE.value,
            api_key=settings.huggingface_api_token,
            base_url=settings.huggingface_base_url,
            http=http,
        ),
        http=http,
        inference_url=settings.huggingface_inference_url,
        title_model=settings.huggingface_title_model,
        max_tokens=settings.huggingface_max_tokens,
        temperature=settings.default_temperature,
    )
    nvidia = NvidiaProvider(
        OpenAICompatClient(
            provider=ProviderName.NVIDIA.value,
            api_key=settings.nvidia_api_key,
            base_url=settings.nvidia_base_url,
            http=http,
        ),
        http=http,
        genai_url=settings.nvidia_genai_url,
        title_model=settings.nvidia_title_model,
        max_tokens=settings.nvidia_max_tokens,
        temperature=settings.default_temperature,
    )
    return ProviderRegistry(
        {
            ProviderName.GOOGLE: google,
            ProviderName.HUGGINGFACE: huggingface,
            ProviderName.NVIDIA: nvidia,
        }
    )
