import asyncio
from typing import Any, Dict, Optional, Protocol

import httpx

from ..models import Source, SourceResult

HTTP_HEADERS = {"User-Agent": "nextbus/0.1.0"}


class Provider(Protocol):
    source: Source

    async def fetch(self, stop_id: str, line_id: str) -> SourceResult:
        """Resolve to this source's estimates. Must never raise."""
        ...


async def fetch_json(
    url: str,
    params: Optional[Dict[str, Any]] = None,
    timeout: float = 6.0,
    client: Optional[httpx.AsyncClient] = None,
) -> Any:
    """GET ``url`` and decode its JSON body, bounded by ``timeout`` seconds overall.

    Raises on transport errors, non-2xx status, bad JSON and ``asyncio.TimeoutError``.
    """

    async def _get(c: httpx.AsyncClient) -> Any:
        r = await c.get(url, params=params, headers=HTTP_HEADERS)
        r.raise_for_status()
        return r.json()

    async def _run() -> Any:
        if client is not None:
            return await _get(client)
        async with httpx.AsyncClient(timeout=httpx.Timeout(timeout)) as c:
            return await _get(c)

    return await asyncio.wait_for(_run(), timeout=timeout)
