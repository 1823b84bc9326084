from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from rbasync.errors import RemoteServiceError
from rbasync.runbooks.schema import Runbook
from rbasync.settings import SyncSettings

logger = logging.getLogger(__name__)

RUNBOOKS_PATH = "/api/v1/rba/runbooks"


def _flag(value: bool) -> str:
    return "true" if value else "false"


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code >= 500


class RbaClient:
    """
    Async client for the RBA runbook API.

    Fetches come in two representation modes: export mode (`exportFormat=keepId`)
    returns stable synthetic automation ids, standard mode returns the live ones.
    """

    def __init__(self, settings: SyncSettings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.base_url,
            auth=httpx.BasicAuth(settings.user, settings.password),
            timeout=settings.timeout_s,
            verify=settings.verify_tls,
            transport=transport,
        )

    async def __aenter__(self) -> "RbaClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.settings.retries),
            wait=wait_exponential(min=1, max=10),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        ):
            with attempt:
                r = await self._client.request(method, url, **kwargs)
                r.raise_for_status()
                return r
        raise AssertionError("unreachable")

    async def _request(self, what: str, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._send(method, url, **kwargs)
        except httpx.HTTPStatusError as e:
            raise RemoteServiceError(f"{what} failed", e.response.status_code, e.response.text) from e
        except httpx.HTTPError as e:
            raise RemoteServiceError(f"{what} failed", None, str(e)) from e

    async def list_runbooks(self, export_format: bool) -> List[Runbook]:
        params = {"version": "latest", "exportFormat": "keepId" if export_format else "false"}
        r = await self._request("list runbooks", "GET", RUNBOOKS_PATH, params=params)
        try:
            return [Runbook.model_validate(item) for item in r.json()]
        except (ValueError, ValidationError) as e:
            raise RemoteServiceError("list runbooks returned an unexpected payload", r.status_code, str(e)) from e

    async def get_runbook(self, runbook_id: str) -> Runbook:
        """Standard-mode fetch of one runbook; the API answers with a one-element array."""
        r = await self._request(f"get runbook {runbook_id}", "GET", f"{RUNBOOKS_PATH}/{runbook_id}")
        try:
            body = r.json()
        except ValueError as e:
            raise RemoteServiceError(f"get runbook {runbook_id} returned an unexpected payload", r.status_code, str(e)) from e
        if isinstance(body, list):
            if not body:
                raise RemoteServiceError(f"get runbook {runbook_id} failed", r.status_code, "empty response")
            body = body[0]
        try:
            return Runbook.model_validate(body)
        except ValidationError as e:
            raise RemoteServiceError(f"get runbook {runbook_id} returned an unexpected payload", r.status_code, str(e)) from e

    async def create_runbooks(self, runbooks: List[Runbook], publish: bool, verbose: bool = True) -> Any:
        params = {"publish": _flag(publish), "verbose": _flag(verbose)}
        payload = [rb.to_payload() for rb in runbooks]
        r = await self._request("create runbooks", "POST", f"{RUNBOOKS_PATH}/import", params=params, json=payload)
        try:
            return r.json()
        except ValueError:
            return r.text

    async def patch_runbook(self, runbook: Runbook, publish: bool) -> Dict[str, Any]:
        """Full replace of one runbook. Raises RemoteServiceError; callers settle each patch on its own."""
        r = await self._request(
            f"patch runbook {runbook.runbook_id}",
            "PATCH",
            f"{RUNBOOKS_PATH}/{runbook.runbook_id}",
            params={"publish": _flag(publish)},
            json=runbook.to_payload(),
        )
        logger.debug(f"Patched runbook {runbook.runbook_id} ({r.status_code})")
        return {"ok": True, "status_code": r.status_code}
