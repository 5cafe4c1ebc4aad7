"""
Normalize primary-feed payloads into ordered arrival estimates.

The feed has shipped several shapes over time. Services carry either a
``buses`` list with min/max predictions, an ``arrivals`` list with a single
value under one of a few aliases, or both. Older payloads only have a
root-level ``buses`` list. Everything here is total: any JSON-like input
yields a (possibly empty) list and never raises.
"""
import math
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .models import ArrivalEstimate, PointEstimate, RangeEstimate

# Two sorted values at most this far apart are read as one bus's [min, max].
RANGE_PAIR_MAX_GAP = 6

_ID_STRIP = re.compile(r"[\s-]+")


def normalize_line_id(value: Any) -> str:
    if value is None:
        return ""
    return _ID_STRIP.sub("", str(value)).upper()


@dataclass(frozen=True)
class ExtractionRule:
    """Read numeric ``fields`` from every entry of the ``container`` list of a node."""

    container: str
    fields: Tuple[str, ...]

    def extract(self, node: Any) -> List[int]:
        if not isinstance(node, dict):
            return []
        entries = node.get(self.container)
        if not isinstance(entries, list):
            return []
        values: List[int] = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            for name in self.fields:
                minutes = coerce_minutes(entry.get(name))
                if minutes is not None:
                    values.append(minutes)
        return values


BUSES_RULE = ExtractionRule("buses", ("min_arrival_time", "max_arrival_time"))
ARRIVALS_RULE = ExtractionRule("arrivals", ("minutes", "min", "eta"))

SERVICE_RULES: Tuple[ExtractionRule, ...] = (BUSES_RULE, ARRIVALS_RULE)
ROOT_FALLBACK_RULE = BUSES_RULE


def coerce_number(value: Any) -> Optional[float]:
    """Finite float for numbers and numeric strings, else None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        # ints beyond float range overflow
        return None
    return number if math.isfinite(number) else None


def coerce_minutes(value: Any) -> Optional[int]:
    number = coerce_number(value)
    if number is None or number < 0:
        return None
    # half-up, so 2.5 reads as 3 rather than banker's 2
    return int(math.floor(number + 0.5))


def _matching_services(payload: Any, target: str) -> Iterable[dict]:
    services = payload.get("services") if isinstance(payload, dict) else None
    if not isinstance(services, list):
        return
    for service in services:
        if not isinstance(service, dict):
            continue
        service_id = normalize_line_id(service.get("id") or service.get("name"))
        if target in service_id:
            yield service


def extract_minutes(payload: Any, target: str) -> List[int]:
    """Raw minute values for ``target``, deduplicated and sorted ascending."""
    values: List[int] = []
    for service in _matching_services(payload, target):
        for rule in SERVICE_RULES:
            values.extend(rule.extract(service))
    if not values:
        values = ROOT_FALLBACK_RULE.extract(payload)
    return sorted(set(values))


def pair_estimates(values: Sequence[int]) -> List[ArrivalEstimate]:
    """
    Group sorted, deduplicated minutes into estimates.

    Adjacent values within ``RANGE_PAIR_MAX_GAP`` of each other become a
    single range; otherwise the head stands alone as a point and the next
    value starts a new pair. There is no ground truth telling a [min, max]
    window from two buses a few minutes apart, so this can misclassify.
    """
    out: List[ArrivalEstimate] = []
    i = 0
    while i < len(values):
        a = values[i]
        b = values[i + 1] if i + 1 < len(values) else None
        if b is not None and b >= a and b - a <= RANGE_PAIR_MAX_GAP:
            out.append(RangeEstimate(min=a, max=b))
            i += 2
        else:
            out.append(PointEstimate(minutes=a))
            i += 1
    out.sort(key=lambda e: e.lower)
    return out


def normalize_payload(payload: Any, target: str) -> List[ArrivalEstimate]:
    return pair_estimates(extract_minutes(payload, normalize_line_id(target)))
