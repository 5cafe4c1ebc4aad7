from typing import Dict

from .models import Source

# (s-maxage, stale-while-revalidate) in seconds
DEFAULT_CACHE = (5, 10)
SECONDARY_CACHE = (3, 6)

_CACHE_HEADERS = ("Cache-Control", "CDN-Cache-Control", "Vercel-CDN-Cache-Control")


def cache_headers(s_maxage: int, stale_while_revalidate: int) -> Dict[str, str]:
    value = f"s-maxage={s_maxage}, stale-while-revalidate={stale_while_revalidate}"
    return {name: value for name in _CACHE_HEADERS}


def cache_headers_for(source: Source) -> Dict[str, str]:
    # schedule-inferred answers go stale faster than the real-time feed
    if source is Source.SECONDARY:
        return cache_headers(*SECONDARY_CACHE)
    return cache_headers(*DEFAULT_CACHE)
