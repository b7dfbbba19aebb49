"""Registry of metadata providers keyed by source."""

from __future__ import annotations

import structlog

from helixio.core.exceptions import ProviderNotFoundError

from .base import MetadataProvider
from .models import MetadataSource

logger = structlog.get_logger("helixio.providers.registry")


class ProviderRegistry:
    """Typed map of MetadataSource to MetadataProvider."""

    def __init__(self) -> None:
        self._providers: dict[MetadataSource, MetadataProvider] = {}

    def register(self, provider: MetadataProvider) -> None:
        if provider.name in self._providers:
            logger.info("Replacing metadata provider", source=provider.name)
        self._providers[provider.name] = provider
        logger.debug("Registered metadata provider", source=provider.name)

    def unregister(self, source: MetadataSource) -> None:
        self._providers.pop(source, None)

    def get(self, source: MetadataSource) -> MetadataProvider | None:
        return self._providers.get(source)

    def require(self, source: MetadataSource) -> MetadataProvider:
        """Get a provider, raising ProviderNotFoundError if none is registered."""
        provider = self._providers.get(source)
        if provider is None:
            raise ProviderNotFoundError(source)
        return provider

    def sources(self) -> list[MetadataSource]:
        return list(self._providers)

    def clear(self) -> None:
        self._providers.clear()

    def __contains__(self, source: object) -> bool:
        return source in self._providers

    def __len__(self) -> int:
        return len(self._providers)


# Global registry instance used when callers don't pass one
_registry = ProviderRegistry()


def get_provider_registry() -> ProviderRegistry:
    """Get the process-wide provider registry."""
    return _registry
