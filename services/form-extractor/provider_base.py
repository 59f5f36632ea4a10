"""Capability interface and shared helpers for AI vision providers.

Backends do not inherit from a common base; each implements the
VisionProvider protocol and composes the helpers below.
"""

import base64
import logging
import os
from typing import Any, Protocol, runtime_checkable

import httpx

from config import settings
from errors import ProviderRequestError
from models import RawExtraction
from rasterizer import PageImage

logger = logging.getLogger(__name__)


@runtime_checkable
class VisionProvider(Protocol):
    key: str
    name: str
    description: str
    cost: str
    api_key_env: str

    def is_configured(self) -> bool: ...

    async def extract(self, image: PageImage) -> RawExtraction: ...

    async def aclose(self) -> None: ...


def get_env_var(name: str) -> str:
    """Read an environment variable at call time; empty string when unset."""
    return os.environ.get(name, "").strip()


def resolve_api_key(explicit: str | None, env_var: str) -> str:
    return explicit or get_env_var(env_var)


def to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def to_data_url(image: PageImage) -> str:
    return f"data:{image.media_type};base64,{to_base64(image.data)}"


def build_http_client(
    base_url: str,
    timeout: int | None = None,
    connect_timeout: int | None = None,
) -> httpx.AsyncClient:
    read_timeout = timeout if timeout is not None else settings.PROVIDER_TIMEOUT_SECONDS
    conn_timeout = connect_timeout if connect_timeout is not None else settings.PROVIDER_CONNECT_TIMEOUT
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        timeout=httpx.Timeout(
            connect=float(conn_timeout),
            read=float(read_timeout),
            write=30.0,
            pool=30.0,
        ),
    )


def error_detail(resp: httpx.Response, fallback: str) -> str:
    """Pull the vendor's error message out of a failed response."""
    try:
        body = resp.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return fallback


async def send_request(
    client: httpx.AsyncClient,
    provider: str,
    path: str,
    payload: dict[str, Any],
    **kwargs: Any,
) -> dict[str, Any]:
    """POST a request and return the decoded JSON body.

    Raises ProviderRequestError for transport failures and non-200 responses.
    """
    try:
        resp = await client.post(path, json=payload, **kwargs)
    except httpx.TimeoutException as e:
        logger.warning("%s request timed out: %s", provider, e)
        raise ProviderRequestError(f"{provider} request timed out: {e}", provider=provider) from e
    except httpx.HTTPError as e:
        logger.error("%s request failed: %s", provider, e)
        raise ProviderRequestError(f"{provider} request failed: {e}", provider=provider) from e

    if resp.status_code != 200:
        detail = error_detail(resp, f"{provider} API request failed (HTTP {resp.status_code})")
        logger.error("%s returned %d: %s", provider, resp.status_code, detail)
        raise ProviderRequestError(detail, provider=provider, status_code=resp.status_code)

    try:
        data = resp.json()
    except ValueError as e:
        raise ProviderRequestError(f"{provider} returned a non-JSON body", provider=provider) from e
    if not isinstance(data, dict):
        raise ProviderRequestError(f"{provider} returned an unexpected body", provider=provider)
    return data
