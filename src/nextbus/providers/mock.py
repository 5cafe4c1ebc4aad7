import asyncio
from typing import Any, Optional

from ..models import Source, SourceResult
from ..normalize import normalize_payload


def demo_payload(stop_id: str, line_id: str) -> dict:
    # one bus window plus a later bus
    return {
        "id": stop_id,
        "services": [
            {
                "id": line_id,
                "buses": [{"min_arrival_time": 3, "max_arrival_time": 7}],
                "arrivals": [{"minutes": 18}],
            }
        ],
    }


class MockProvider:
    """Offline stand-in for the stop feed.

    ``payload`` scripts the raw feed document (any shape the normalizer
    accepts) and ``delay`` simulates upstream latency in seconds, so the
    arbitration race can be exercised locally via ``PROVIDER_OPTS``.
    """

    source = Source.PRIMARY

    def __init__(self, payload: Optional[Any] = None, delay: float = 0.0, **_):
        self.payload = payload
        self.delay = delay

    async def fetch(self, stop_id: str, line_id: str) -> SourceResult:
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        payload = demo_payload(stop_id, line_id) if self.payload is None else self.payload
        return SourceResult(source=self.source, estimates=normalize_payload(payload, line_id))
