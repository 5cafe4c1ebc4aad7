# src/nextbus/providers/xor.py
import logging
from typing import Optional
from urllib.parse import quote

import httpx

from ..models import Source, SourceResult
from ..normalize import normalize_payload
from .base import fetch_json

logger = logging.getLogger(__name__)

XOR_BASE = "https://api.xor.cl"


class XorProvider:
    """Real-time Red bus-stop feed. Fast, but often reports nothing."""

    source = Source.PRIMARY

    def __init__(
        self,
        base_url: str = XOR_BASE,
        timeout: float = 6.0,
        client: Optional[httpx.AsyncClient] = None,
        **_,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = client

    async def fetch(self, stop_id: str, line_id: str) -> SourceResult:
        url = f"{self.base_url}/red/bus-stop/{quote(stop_id, safe='')}"
        try:
            data = await fetch_json(url, timeout=self.timeout, client=self.client)
        except httpx.HTTPStatusError as e:
            logger.warning("xor stop %s: HTTP %s", stop_id, e.response.status_code)
            return SourceResult.empty(self.source)
        except Exception as e:
            logger.warning("xor stop %s: request failed: %r", stop_id, e)
            return SourceResult.empty(self.source)

        estimates = normalize_payload(data, line_id)
        logger.debug("xor stop %s line %s: %d estimates", stop_id, line_id, len(estimates))
        return SourceResult(source=self.source, estimates=estimates)
