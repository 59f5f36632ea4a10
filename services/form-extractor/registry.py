"""Registry of AI vision providers and the active-provider selection."""

import logging

from claude_client import ClaudeProvider
from errors import ProviderNotConfiguredError, UnknownProviderError
from gemini_client import GeminiProvider
from models import ProviderInfo, RawExtraction
from openai_client import OpenAIProvider
from provider_base import VisionProvider
from rasterizer import PageImage

logger = logging.getLogger(__name__)

# Gemini first: it has a free tier.
PRIORITY_ORDER: tuple[str, ...] = ("gemini", "gpt-4o", "claude")


def default_providers() -> list[VisionProvider]:
    return [OpenAIProvider(), GeminiProvider(), ClaudeProvider()]


class ProviderRegistry:
    """Routes extraction requests to the active provider.

    Registration order is the listing order; the first registered provider is
    the fallback when none has credentials, so callers get an explicit
    "not configured" error instead of a silent no-op.
    """

    def __init__(
        self,
        providers: list[VisionProvider] | None = None,
        priority: tuple[str, ...] = PRIORITY_ORDER,
    ):
        providers = providers if providers is not None else default_providers()
        if not providers:
            raise ValueError("ProviderRegistry needs at least one provider")
        self._providers: dict[str, VisionProvider] = {p.key: p for p in providers}
        self._priority = priority
        self._active = self._default_provider()
        logger.info("Active provider: %s", self._active)

    def _default_provider(self) -> str:
        for key in self._priority:
            provider = self._providers.get(key)
            if provider is not None and provider.is_configured():
                return key
        return next(iter(self._providers))

    def _info(self, provider: VisionProvider) -> ProviderInfo:
        return ProviderInfo(
            key=provider.key,
            name=provider.name,
            description=provider.description,
            cost=provider.cost,
            configured=provider.is_configured(),
        )

    def list_providers(self) -> list[ProviderInfo]:
        return [self._info(p) for p in self._providers.values()]

    def get_provider_info(self, key: str) -> ProviderInfo | None:
        provider = self._providers.get(key)
        return self._info(provider) if provider is not None else None

    def get_active_provider(self) -> str:
        return self._active

    def set_active_provider(self, key: str) -> None:
        if key not in self._providers:
            raise UnknownProviderError(f"Unknown provider: {key}")
        self._active = key
        logger.info("Switched provider to %s", key)

    @property
    def active(self) -> VisionProvider:
        return self._providers[self._active]

    def is_active_configured(self) -> bool:
        return self.active.is_configured()

    def ensure_configured(self) -> None:
        provider = self.active
        if not provider.is_configured():
            raise ProviderNotConfiguredError(provider.name, provider.api_key_env)

    async def extract(self, image: PageImage) -> RawExtraction:
        """Extract fields from one page image with the active provider."""
        self.ensure_configured()
        provider = self.active
        try:
            return await provider.extract(image)
        except Exception:
            logger.error("%s extraction failed for page %d", provider.key, image.page)
            raise

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()
