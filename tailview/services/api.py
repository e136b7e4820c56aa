from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..models import ChartAggregate, FetchSnapshot, LogInfo
from ..query import QueryDescriptor

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class LogStoreError(Exception):
    """Raised when the log store cannot be reached or answers with an error."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class LogStoreNotFound(LogStoreError):
    pass


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("details", "error"):
            if body.get(key):
                return str(body[key])
    return f"{response.status_code} {response.reason_phrase}".strip()


class LogStoreClient:
    """Async HTTP adapter for the log store endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, connect=min(timeout, 5.0)),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise LogStoreError(f"Request to {path} failed: {exc}") from exc

        if response.status_code == 404:
            raise LogStoreNotFound(_error_text(response), status=404)
        if response.is_error:
            raise LogStoreError(_error_text(response), status=response.status_code)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise LogStoreError(f"Invalid JSON from {path}", status=response.status_code) from exc

    async def get_logs(self, query: QueryDescriptor) -> FetchSnapshot:
        payload = await self._request("GET", "/logs", params=query.to_params())
        if not isinstance(payload, dict) or not isinstance(payload.get("logs") or [], list):
            raise LogStoreError("Unexpected response shape from /logs")
        return FetchSnapshot.from_payload(payload)

    async def get_log_info(self) -> LogInfo:
        payload = await self._request("GET", "/logs/info")
        if not isinstance(payload, dict):
            raise LogStoreError("Unexpected response shape from /logs/info")
        return LogInfo.from_dict(payload)

    async def get_chart_data(self, period: str, levels: tuple[str, ...] = ()) -> ChartAggregate:
        params = {"period": period}
        if levels:
            params["levels"] = ",".join(levels)
        try:
            payload = await self._request("GET", "/logs/chart-data", params=params)
        except LogStoreNotFound:
            logger.info("Chart endpoint not available; showing empty chart")
            return ChartAggregate.empty(period)
        if not isinstance(payload, dict):
            return ChartAggregate.empty(period)
        return ChartAggregate.from_payload(payload, period=period)

    async def _names(self, path: str) -> list[str]:
        try:
            payload = await self._request("GET", path)
        except LogStoreError as exc:
            logger.warning("Could not load %s: %s", path, exc.message)
            return []
        if not isinstance(payload, list):
            return []
        return [str(item) for item in payload if item and str(item).strip()]

    async def get_categories(self) -> list[str]:
        return await self._names("/logs/categories")

    async def get_functions(self) -> list[str]:
        return await self._names("/logs/functions")

    async def clear_logs(self) -> None:
        """Delete every entry in the store. Callers must confirm first."""

        await self._request("DELETE", "/logs", params={"deleteAll": "true"})
