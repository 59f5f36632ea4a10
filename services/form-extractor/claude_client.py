"""Anthropic Claude vision backend.

Get an API key: https://console.anthropic.com/
"""

import logging

from config import settings
from errors import ExtractionParseError, ProviderNotConfiguredError, ResponseTruncatedError
from models import RawExtraction
from parsing import parse_extraction
from prompts import FIELDS_EXTRACTION_PROMPT
from provider_base import build_http_client, resolve_api_key, send_request, to_base64
from rasterizer import PageImage

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class ClaudeProvider:
    key = "claude"
    name = "Claude 3.5"
    description = "Anthropic Claude Sonnet"
    cost = "Paid (~$0.02/image)"
    api_key_env = "CLAUDE_API_KEY"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
    ):
        self._api_key = api_key
        self.model = model or settings.CLAUDE_MODEL
        self.max_tokens = max_tokens or settings.CLAUDE_MAX_TOKENS
        self._client = build_http_client(base_url or settings.CLAUDE_BASE_URL)

    @property
    def api_key(self) -> str:
        return resolve_api_key(self._api_key, self.api_key_env)

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def build_payload(self, image: PageImage) -> dict:
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": settings.TEMPERATURE,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": image.media_type,
                                "data": to_base64(image.data),
                            },
                        },
                        {"type": "text", "text": FIELDS_EXTRACTION_PROMPT},
                    ],
                }
            ],
        }

    async def extract(self, image: PageImage) -> RawExtraction:
        api_key = self.api_key
        if not api_key:
            raise ProviderNotConfiguredError(self.name, self.api_key_env)

        data = await send_request(
            self._client,
            self.name,
            "/messages",
            self.build_payload(image),
            headers={"x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION},
        )

        stop_reason = data.get("stop_reason")
        if stop_reason == "max_tokens":
            raise ResponseTruncatedError(self.name, stop_reason)

        try:
            blocks = data.get("content") or []
            content = "".join(b.get("text", "") for b in blocks if b.get("type") == "text")
        except (AttributeError, TypeError) as e:
            raise ExtractionParseError(f"Unexpected response format from {self.name}") from e
        if not content.strip():
            raise ExtractionParseError(f"No response from {self.name}")

        logger.info("%s responded with %d chars (stop_reason=%s)", self.name, len(content), stop_reason)
        return parse_extraction(content)

    async def aclose(self) -> None:
        await self._client.aclose()
