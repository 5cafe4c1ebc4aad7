import logging
from typing import Optional

from .arbiter import DEFAULT_GRACE_SECONDS, DEFAULT_TIMEOUT_SECONDS, Arbitrator
from .models import ArbitrationDecision, Source, SourceResult
from .normalize import normalize_line_id
from .providers.base import Provider

logger = logging.getLogger(__name__)


async def _skipped(source: Source) -> SourceResult:
    return SourceResult.empty(source)


class ArrivalsService:
    """Launches both fetches for a request and arbitrates between them."""

    def __init__(
        self,
        primary: Provider,
        secondary: Provider,
        grace: float = DEFAULT_GRACE_SECONDS,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.primary = primary
        self.secondary = secondary
        self.grace = grace
        self.timeout = timeout

    async def get_arrivals(
        self,
        stop_id: str,
        line_id: str,
        force_secondary: bool = False,
        arbitrator: Optional[Arbitrator] = None,
    ) -> ArbitrationDecision:
        stop = normalize_line_id(stop_id)
        line = normalize_line_id(line_id)

        if force_secondary:
            primary = _skipped(Source.PRIMARY)
        else:
            primary = self.primary.fetch(stop, line)
        secondary = self.secondary.fetch(stop, line)

        arbitrator = arbitrator or Arbitrator(grace=self.grace, timeout=self.timeout)
        decision = await arbitrator.run(primary, secondary)
        logger.info(
            "stop=%s line=%s source=%s estimates=%d",
            stop, line, decision.source.value, len(decision.estimates),
        )
        return decision
