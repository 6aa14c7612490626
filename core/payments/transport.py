from __future__ import annotations

import logging
from typing import Any

import httpx

from core.payments.errors import ProviderTransportError

logger = logging.getLogger(__name__)

_ERROR_BODY_LIMIT = 500


def build_client(
    *,
    base_url: str,
    timeout_seconds: float,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=base_url, timeout=timeout_seconds, transport=transport)


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    provider: str,
    transaction_id: str,
    **kwargs: Any,
) -> httpx.Response:
    try:
        response = await client.request(method, url, **kwargs)
        response.raise_for_status()
    except httpx.HTTPStatusError as err:
        status_code = err.response.status_code
        logger.warning("%s %s %s returned HTTP %s", provider, method, url, status_code)
        raise ProviderTransportError(
            provider=provider,
            transaction_id=transaction_id,
            message=f"{provider} returned HTTP {status_code}",
            status_code=status_code,
            details=err.response.text[:_ERROR_BODY_LIMIT],
        ) from err
    except httpx.HTTPError as err:
        logger.warning("%s %s %s failed: %s", provider, method, url, err)
        raise ProviderTransportError(
            provider=provider,
            transaction_id=transaction_id,
            message=f"{provider} request failed",
            details=str(err),
        ) from err
    return response


def json_body(response: httpx.Response, *, provider: str, transaction_id: str) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError as err:
        raise ProviderTransportError(
            provider=provider,
            transaction_id=transaction_id,
            message=f"{provider} returned invalid JSON",
            status_code=response.status_code,
            details=response.text[:_ERROR_BODY_LIMIT],
        ) from err

    if not isinstance(data, dict):
        raise ProviderTransportError(
            provider=provider,
            transaction_id=transaction_id,
            message=f"{provider} returned an unexpected payload",
            status_code=response.status_code,
            details=data,
        )
    return data
