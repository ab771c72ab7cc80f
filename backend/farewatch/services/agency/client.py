"""Agency API client: lowest level, sends request only. No validation.

Every call returns the decoded JSON body, or {"error": ..., "status_code": ...} on transport
or HTTP failure. Adapters translate that into typed errors.
"""
from typing import Any

import httpx

from farewatch.services.agency.config import AgencyConfig


class AgencyClient:
    """Async client for the agency price / booking / reservation-lookup endpoints."""

    def __init__(
        self,
        config: AgencyConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or AgencyConfig()
        self._transport = transport

    async def _request(
        self,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._config.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._config.timeout, transport=self._transport) as c:
                r = await c.post(url, json=json_body, params=params, headers=self._config.headers())
        except httpx.HTTPError as e:
            return {"error": str(e) or type(e).__name__}
        if not r.is_success:
            return {
                "error": f"Agency API error: {r.status_code}",
                "status_code": r.status_code,
                "detail": (r.text[:500] if r.text else None),
            }
        try:
            data = r.json() if r.content else {}
        except ValueError:
            return {"error": "Agency API returned a non-JSON body", "detail": (r.text[:500] if r.text else None)}
        if not isinstance(data, dict):
            return {"error": "Agency API returned an unexpected body"}
        return data

    async def post_json(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._request(path, json_body=body)

    async def post_query(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        """POST with query params and no body (e.g. reservation lookup ?pnr=)."""
        return await self._request(path, params=params)
