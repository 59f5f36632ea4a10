"""OpenAI GPT-4o vision backend.

Get an API key: https://platform.openai.com/api-keys
"""

import logging

from config import settings
from errors import ExtractionParseError, ProviderNotConfiguredError, ResponseTruncatedError
from models import RawExtraction
from parsing import parse_extraction
from prompts import FIELDS_EXTRACTION_PROMPT
from provider_base import build_http_client, resolve_api_key, send_request, to_data_url
from rasterizer import PageImage

logger = logging.getLogger(__name__)


class OpenAIProvider:
    key = "gpt-4o"
    name = "GPT-4o"
    description = "OpenAI GPT-4 with Vision"
    cost = "Paid ($0.01-0.03/image)"
    api_key_env = "OPENAI_API_KEY"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
    ):
        self._api_key = api_key
        self.model = model or settings.OPENAI_MODEL
        self.max_tokens = max_tokens or settings.OPENAI_MAX_TOKENS
        self._client = build_http_client(base_url or settings.OPENAI_BASE_URL)

    @property
    def api_key(self) -> str:
        return resolve_api_key(self._api_key, self.api_key_env)

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def build_payload(self, image: PageImage) -> dict:
        return {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": FIELDS_EXTRACTION_PROMPT},
                        {"type": "image_url", "image_url": {"url": to_data_url(image)}},
                    ],
                }
            ],
            "max_tokens": self.max_tokens,
            "temperature": settings.TEMPERATURE,
        }

    async def extract(self, image: PageImage) -> RawExtraction:
        api_key = self.api_key
        if not api_key:
            raise ProviderNotConfiguredError(self.name, self.api_key_env)

        data = await send_request(
            self._client,
            self.name,
            "/chat/completions",
            self.build_payload(image),
            headers={"Authorization": f"Bearer {api_key}"},
        )

        try:
            choice = (data.get("choices") or [{}])[0]
            finish_reason = choice.get("finish_reason")
            content = (choice.get("message") or {}).get("content") or ""
        except (AttributeError, TypeError, KeyError, IndexError) as e:
            raise ExtractionParseError(f"Unexpected response format from {self.name}") from e
        if not isinstance(content, str):
            raise ExtractionParseError(f"Unexpected response format from {self.name}")

        if finish_reason == "length":
            raise ResponseTruncatedError(self.name, finish_reason)
        if not content.strip():
            raise ExtractionParseError(f"No response from {self.name}")

        logger.info("%s responded with %d chars (finish_reason=%s)", self.name, len(content), finish_reason)
        return parse_extraction(content)

    async def aclose(self) -> None:
        await self._client.aclose()
