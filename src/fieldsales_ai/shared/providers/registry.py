"""Provider registry — static description of every backend.

Holds pricing, quota caps and free-tier flags per provider, plus the routing
roles (free-tier, fast path, economy, balanced) and the static fallback order.
Pure data: nothing here changes after construction.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

from fieldsales_ai.domain.enums import Provider
from fieldsales_ai.domain.exceptions import UnknownProviderError
from fieldsales_ai.shared.providers.types import ProviderPricing, ProviderSpec


DEFAULT_PROVIDER_SPECS: tuple[ProviderSpec, ...] = (
    ProviderSpec(
        provider=Provider.GEMINI,
        display_name="Gemini",
        pricing=ProviderPricing(input_cost_per_1m=0.0, output_cost_per_1m=0.0, cost_per_1k_tokens=0.0),
        free_tier=True,
        requests_per_day=1500,
        requests_per_minute=15,
        default_model="gemini-2.0-flash-exp",
    ),
    ProviderSpec(
        provider=Provider.GROQ,
        display_name="Groq",
        pricing=ProviderPricing(input_cost_per_1m=0.05, output_cost_per_1m=0.08, cost_per_1k_tokens=0.27),
        free_tier=True,
        requests_per_minute=30,
        tokens_per_minute=14_400,
        default_model="llama-3.3-70b-versatile",
    ),
    ProviderSpec(
        provider=Provider.TOGETHER,
        display_name="Together AI",
        pricing=ProviderPricing(input_cost_per_1m=0.18, output_cost_per_1m=0.18, cost_per_1k_tokens=0.8),
        free_tier=False,
        requests_per_minute=60,
        default_model="meta-llama/Meta-Llama-3.1-70B-Instruct-Turbo",
    ),
    ProviderSpec(
        provider=Provider.HUGGINGFACE,
        display_name="HuggingFace",
        pricing=ProviderPricing(input_cost_per_1m=0.05, output_cost_per_1m=0.05, cost_per_1k_tokens=0.2),
        free_tier=True,
        requests_per_minute=10,
        default_model="meta-llama/Llama-3.2-3B-Instruct",
    ),
)


@dataclass(frozen=True)
class RoutingRoles:
    """Which provider plays which part in the routing rules."""

    free_tier: Provider = Provider.GEMINI
    fast_path: Provider = Provider.GROQ
    economy: Provider = Provider.HUGGINGFACE
    balanced: Provider = Provider.TOGETHER
    fallback_order: tuple[Provider, ...] = (
        Provider.GROQ,
        Provider.GEMINI,
        Provider.TOGETHER,
        Provider.HUGGINGFACE,
    )


class ProviderRegistry:
    """Immutable lookup of provider specs, routing roles and configured credentials."""

    def __init__(
        self,
        specs: Sequence[ProviderSpec] = DEFAULT_PROVIDER_SPECS,
        *,
        roles: RoutingRoles | None = None,
        configured: Iterable[Provider] | None = None,
    ) -> None:
        self._specs: dict[Provider, ProviderSpec] = {s.provider: s for s in specs}
        self._roles = roles or RoutingRoles()
        # None means "every registered provider has a credential"
        self._configured = frozenset(self._specs if configured is None else configured)

    @property
    def providers(self) -> tuple[Provider, ...]:
        return tuple(self._specs)

    @property
    def roles(self) -> RoutingRoles:
        return self._roles

    @property
    def configured_providers(self) -> tuple[Provider, ...]:
        return tuple(p for p in self._specs if p in self._configured)

    def get(self, provider: Provider) -> ProviderSpec:
        try:
            return self._specs[provider]
        except KeyError:
            raise UnknownProviderError(str(provider)) from None

    def has_credential(self, provider: Provider) -> bool:
        return provider in self._configured

    def __contains__(self, provider: object) -> bool:
        return provider in self._specs

    def __iter__(self) -> Iterator[ProviderSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)
