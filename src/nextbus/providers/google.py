# src/nextbus/providers/google.py
import logging
import math
import time
from typing import Any, Callable, Iterable, Optional

import httpx

from ..config import SecondaryConfig
from ..models import PointEstimate, Source, SourceResult
from ..normalize import coerce_number, normalize_line_id
from .base import fetch_json

logger = logging.getLogger(__name__)

DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _transit_steps(payload: Any) -> Iterable[dict]:
    for route in _as_list(_as_dict(payload).get("routes")):
        for leg in _as_list(_as_dict(route).get("legs")):
            for step in _as_list(_as_dict(leg).get("steps")):
                if isinstance(step, dict) and step.get("travel_mode") == "TRANSIT":
                    yield step


def _departure_seconds(details: dict) -> Optional[float]:
    dep = details.get("departure_time")
    if isinstance(dep, dict):
        dep = dep.get("value")
    return coerce_number(dep)


def earliest_departure(payload: Any, target: str, now: float) -> Optional[int]:
    """Minutes until the soonest transit departure on ``target``, or None.

    Departures already in the past count as 0.
    """
    target = normalize_line_id(target)
    best: Optional[int] = None
    for step in _transit_steps(payload):
        details = _as_dict(step.get("transit_details"))
        line = _as_dict(details.get("line"))
        short_name = normalize_line_id(line.get("short_name") or line.get("name_short") or line.get("name"))
        if not short_name or target not in short_name:
            continue
        dep = _departure_seconds(details)
        if dep is None:
            continue
        minutes = max(0, int(math.floor((dep - now) / 60 + 0.5)))
        if best is None or minutes < best:
            best = minutes
    return best


class GoogleDirectionsProvider:
    """Schedule-inferred next departure from the Directions API.

    Slower than the stop feed, and only ever yields the single next bus.
    """

    source = Source.SECONDARY

    def __init__(
        self,
        config: SecondaryConfig,
        timeout: float = 6.5,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.timeout = timeout
        self.client = client
        self.clock = clock

    def params(self) -> dict:
        c = self.config
        return {
            "origin": f"{c.lat},{c.lng}",
            "destination": f"place_id:{c.dest_place_id}",
            "mode": "transit",
            "transit_mode": "bus",
            "departure_time": "now",
            "alternatives": "true",
            "language": c.language,
            "region": c.region,
            "key": c.api_key,
        }

    async def fetch(self, stop_id: str, line_id: str) -> SourceResult:
        if not self.config.applies_to(stop_id, line_id):
            return SourceResult.empty(self.source)

        try:
            data = await fetch_json(DIRECTIONS_URL, params=self.params(), timeout=self.timeout, client=self.client)
        except httpx.HTTPStatusError as e:
            logger.warning("directions %s/%s: HTTP %s", stop_id, line_id, e.response.status_code)
            return SourceResult.empty(self.source)
        except Exception as e:
            logger.warning("directions %s/%s: request failed: %r", stop_id, line_id, e)
            return SourceResult.empty(self.source)

        minutes = earliest_departure(data, line_id, self.clock())
        if minutes is None:
            return SourceResult.empty(self.source)
        return SourceResult(source=self.source, estimates=[PointEstimate(minutes=minutes)])
