"""Outbound ports — interfaces that infrastructure adapters must implement.

These are the *driven* ports in hexagonal architecture.  The provider core
depends only on these abstractions, never on concrete HTTP clients or
storage drivers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from fieldsales_ai.domain.enums import Provider
from fieldsales_ai.shared.providers.types import GenerateOptions, GenerationResult


# ═══════════════════════════════════════════════════════════════
#  Vendor port
# ═══════════════════════════════════════════════════════════════
class VendorAdapterPort(ABC):
    """One upstream LLM vendor: generate text, return usage.

    Implementations raise ``VendorError`` subclasses on failure and never
    retry on their own; failover belongs to the router and orchestrator.
    """

    provider: Provider

    @abstractmethod
    async def generate(
        self, prompt: str, options: GenerateOptions | None = None
    ) -> GenerationResult: ...

    async def close(self) -> None:
        """Release transport resources.  Default: nothing to release."""
        return None


# ═══════════════════════════════════════════════════════════════
#  Storage port
# ═══════════════════════════════════════════════════════════════
class KeyValueStorePort(ABC):
    """JSON-document key-value store for persisted snapshots."""

    @abstractmethod
    async def get(self, key: str) -> Any | None: ...

    @abstractmethod
    async def set(self, key: str, value: Any) -> None: ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...

    @abstractmethod
    async def health_check(self) -> bool: ...

    async def close(self) -> None:
        return None
