from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Union

import httpx

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Union[str, None, Awaitable[Union[str, None]]]]

ISA_PAY = "isa-pay"
MYPLUG_PAY = "myplug-pay"


class PaymentClientError(Exception):
    def __init__(self, status_code: int, message: str, body: Any | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.body = body


class PaymentGatewayClient:
    """Thin async wrapper over the ``/v1/gateways/{gateway}`` endpoints.

    The bearer token is fetched from ``token_provider`` on every call so a refreshed
    session is picked up without rebuilding the client.
    """

    def __init__(
        self,
        base_url: str,
        gateway: str,
        token_provider: TokenProvider,
        *,
        method_override: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 15.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.gateway = gateway
        self._token_provider = token_provider
        self._method_override = method_override
        self._transport = transport
        self._timeout = timeout

    async def _token(self) -> str | None:
        token = self._token_provider()
        if inspect.isawaitable(token):
            token = await token
        return token or None

    async def _request(self, method: str, path: str, *, label: str, json: dict[str, Any] | None = None) -> Any:
        headers = {"Accept": "application/json"}
        token = await self._token()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        async with httpx.AsyncClient(
            base_url=f"{self.base_url}/v1/gateways/{self.gateway}",
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            response = await client.request(method, path, json=json, headers=headers)

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error:
            message = None
            if isinstance(body, dict):
                message = body.get("error") or body.get("message")
            message = message or f"{label} failed: {response.status_code}"
            logger.warning("%s on %s returned %s", label, self.gateway, response.status_code)
            raise PaymentClientError(response.status_code, message, body)

        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    async def initiate(self, **params: Any) -> dict[str, Any]:
        payload = {key: value for key, value in params.items() if value is not None}
        if self._method_override:
            payload["method"] = self._method_override
        return await self._request("POST", "/initiate", label="Payment initiation", json=payload)

    async def get_status(self, transaction_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/status/{transaction_id}", label="Payment status")

    async def retry(self, transaction_id: str) -> dict[str, Any]:
        return await self._request("POST", f"/retry/{transaction_id}", label="Payment retry")


def isa_pay_client(base_url: str, token_provider: TokenProvider, **kwargs: Any) -> PaymentGatewayClient:
    return PaymentGatewayClient(base_url, ISA_PAY, token_provider, **kwargs)


def pesapal_pay_client(base_url: str, token_provider: TokenProvider, **kwargs: Any) -> PaymentGatewayClient:
    kwargs["method_override"] = "card_bank"
    return PaymentGatewayClient(base_url, MYPLUG_PAY, token_provider, **kwargs)
