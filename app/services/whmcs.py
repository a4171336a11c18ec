"""WHMCS API client.

Every call is a form POST to ``includes/api.php`` carrying the API
credentials, the action name and ``responsetype=json``. Responses with
``result == "error"`` are raised as :class:`WhmcsError`.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Protocol

import httpx

from app.config import Settings
from app.metrics import observe_billing_call

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 30.0


class WhmcsError(Exception):
    """Raised when WHMCS reports an error or cannot be reached."""

    def __init__(self, message: str, action: str | None = None) -> None:
        self.message = message
        self.action = action
        super().__init__(message)


class BillingBackend(Protocol):
    async def call(self, action: str, **params: Any) -> dict: ...


class WhmcsClient:
    """HTTP client for the WHMCS external API."""

    def __init__(
        self,
        api_url: str,
        identifier: str,
        secret: str,
        access_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = api_url
        self.identifier = identifier
        self.secret = secret
        self.access_key = access_key
        self.timeout = timeout or _DEFAULT_TIMEOUT
        self._transport = transport

    def _payload(self, action: str, params: dict[str, Any]) -> dict[str, str]:
        data: dict[str, str] = {
            "identifier": self.identifier,
            "secret": self.secret,
            "action": action,
            "responsetype": "json",
        }
        if self.access_key:
            data["accesskey"] = self.access_key
        for key, value in params.items():
            if value is None:
                continue
            if isinstance(value, bool):
                data[key] = "1" if value else "0"
            else:
                data[key] = str(value)
        return data

    def _parse(self, action: str, response: httpx.Response) -> dict:
        try:
            payload = response.json()
        except ValueError as exc:
            raise WhmcsError("Invalid JSON response from WHMCS", action) from exc
        if not isinstance(payload, dict):
            raise WhmcsError("Invalid WHMCS response structure", action)
        if payload.get("result") == "error":
            message = payload.get("message") or "Unknown error"
            raise WhmcsError(str(message), action)
        return payload

    async def call(self, action: str, **params: Any) -> dict:
        start = time.monotonic()
        status = "error"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(self.api_url, data=self._payload(action, params))
                response.raise_for_status()
            payload = self._parse(action, response)
            status = "success"
            return payload
        except httpx.HTTPStatusError as exc:
            logger.error(
                "WHMCS HTTP error on %s: %s - %s",
                action,
                exc.response.status_code,
                exc.response.text[:500],
            )
            raise WhmcsError(f"HTTP error: {exc.response.status_code}", action) from exc
        except httpx.RequestError as exc:
            logger.error("WHMCS request error on %s: %s", action, exc)
            raise WhmcsError(f"Request error: {exc}", action) from exc
        finally:
            duration = time.monotonic() - start
            observe_billing_call(action, status, duration)
            logger.debug("WHMCS %s finished status=%s in %.3fs", action, status, duration)


def build_backend(config: Settings) -> BillingBackend:
    """Return the billing backend selected by ``BILLING_BACKEND``."""
    if config.billing_backend == "whmcs":
        config.validate_whmcs_config()
        return WhmcsClient(
            api_url=config.whmcs_api_url,
            identifier=config.whmcs_api_identifier or "",
            secret=config.whmcs_api_secret or "",
            access_key=config.whmcs_access_key,
            timeout=config.whmcs_timeout_seconds,
        )
    from app.services.whmcs_memory import InMemoryWhmcs

    logger.warning("Using the in-memory billing backend; data is not persisted")
    return InMemoryWhmcs()
