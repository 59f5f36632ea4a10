"""Google Gemini vision backend.

Free tier is limited to 60 requests per minute; pages are extracted one at a
time so a typical document stays well below it.

Get an API key: https://aistudio.google.com/app/apikey
"""

import logging

from config import settings
from errors import (
    ExtractionParseError,
    ProviderNotConfiguredError,
    ProviderRequestError,
    ResponseTruncatedError,
)
from models import RawExtraction
from parsing import parse_extraction
from prompts import FIELDS_EXTRACTION_PROMPT
from provider_base import build_http_client, resolve_api_key, send_request, to_base64
from rasterizer import PageImage

logger = logging.getLogger(__name__)

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


class GeminiProvider:
    key = "gemini"
    name = "Gemini 2.5"
    description = "Google Gemini Pro Vision"
    cost = "Free (60 req/min)"
    api_key_env = "GEMINI_API_KEY"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        max_output_tokens: int | None = None,
    ):
        self._api_key = api_key
        self.model = model or settings.GEMINI_MODEL
        self.max_output_tokens = max_output_tokens or settings.GEMINI_MAX_OUTPUT_TOKENS
        self._client = build_http_client(base_url or settings.GEMINI_BASE_URL)

    @property
    def api_key(self) -> str:
        return resolve_api_key(self._api_key, self.api_key_env)

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def build_payload(self, image: PageImage) -> dict:
        return {
            "contents": [
                {
                    "parts": [
                        {"text": FIELDS_EXTRACTION_PROMPT},
                        {"inline_data": {"mime_type": image.media_type, "data": to_base64(image.data)}},
                    ]
                }
            ],
            "generationConfig": {
                "temperature": settings.TEMPERATURE,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": self.max_output_tokens,
            },
            "safetySettings": [
                {"category": category, "threshold": "BLOCK_NONE"} for category in SAFETY_CATEGORIES
            ],
        }

    async def extract(self, image: PageImage) -> RawExtraction:
        api_key = self.api_key
        if not api_key:
            raise ProviderNotConfiguredError(self.name, self.api_key_env)

        data = await send_request(
            self._client,
            self.name,
            f"/models/{self.model}:generateContent",
            self.build_payload(image),
            headers={"x-goog-api-key": api_key},
        )

        try:
            candidates = data.get("candidates") or []
            if not candidates:
                block_reason = (data.get("promptFeedback") or {}).get("blockReason", "no candidates")
                raise ProviderRequestError(
                    f"{self.name} returned no result ({block_reason})", provider=self.name
                )

            candidate = candidates[0]
            finish_reason = candidate.get("finishReason", "STOP")
            if finish_reason == "MAX_TOKENS":
                raise ResponseTruncatedError(self.name, finish_reason)
            if finish_reason != "STOP":
                raise ProviderRequestError(
                    f"{self.name} request finished with {finish_reason}", provider=self.name
                )

            parts = (candidate.get("content") or {}).get("parts") or []
            content = "".join(part.get("text", "") for part in parts).strip()
        except (AttributeError, TypeError, KeyError, IndexError) as e:
            raise ExtractionParseError(f"Unexpected response format from {self.name}") from e
        if not content:
            raise ExtractionParseError(f"Empty response from {self.name}")

        logger.info("%s responded with %d chars", self.name, len(content))
        return parse_extraction(content)

    async def aclose(self) -> None:
        await self._client.aclose()
