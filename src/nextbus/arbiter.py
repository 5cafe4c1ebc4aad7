"""
Arbitration between the primary and secondary sources.

The primary source is preferred. It wins outright whenever it answers with
data before the overall timeout. When the secondary answers first, a grace
window opens so the primary still gets a short chance before the fallback is
accepted. The overall timeout bounds the wait no matter what either source does.

States::

    PENDING --secondary done--> AWAITING_GRACE --grace expiry--> DECIDED
       |                              |
       +--primary with data-----------+--primary with data-----> DECIDED
       +--overall timeout-------------+--overall timeout-------> DECIDED

A decision is made once; every later event is ignored.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Dict, Optional, Set

from .models import ArbitrationDecision, Source, SourceResult

logger = logging.getLogger(__name__)

DEFAULT_GRACE_SECONDS = 1.2
DEFAULT_TIMEOUT_SECONDS = 6.5

# completions landing in the same loop step are handled in this order
_PRIORITY = {Source.PRIMARY: 0, Source.SECONDARY: 1}

# fetches still running after a decision; referenced here until they finish
_detached: Set["asyncio.Future[Any]"] = set()


class ArbitrationError(RuntimeError):
    """The arbitrator failed to produce exactly one decision."""


class ArbitrationState(str, Enum):
    PENDING = "pending"
    AWAITING_GRACE = "awaiting_grace"
    DECIDED = "decided"


def _discard_late(task: "asyncio.Future[Any]") -> None:
    _detached.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("late fetch failed after decision: %r", exc)
    else:
        logger.debug("late %s result discarded", getattr(task.result(), "source", "unknown"))


class Arbitrator:
    """Decides a single request. Create a fresh one per request."""

    def __init__(self, grace: float = DEFAULT_GRACE_SECONDS, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        if grace < 0:
            raise ValueError("grace must be >= 0")
        if timeout <= 0:
            raise ValueError("timeout must be > 0")
        self.grace = grace
        self.timeout = timeout
        self.state = ArbitrationState.PENDING
        self.primary: Optional[SourceResult] = None
        self.secondary: Optional[SourceResult] = None
        self.grace_lapsed = False
        self._grace_deadline: Optional[float] = None
        self._decision: Optional[ArbitrationDecision] = None
        self._started = False

    @property
    def decision(self) -> ArbitrationDecision:
        if self._decision is None:
            raise ArbitrationError("no decision has been made")
        return self._decision

    def _decide(self, result: SourceResult) -> None:
        if self.state is ArbitrationState.DECIDED:
            return
        self._decision = result
        self._grace_deadline = None
        self.state = ArbitrationState.DECIDED

    # ---- events -------------------------------------------------------

    def on_primary(self, result: SourceResult) -> None:
        if self.state is ArbitrationState.DECIDED:
            return
        self.primary = result
        # Once the grace window has lapsed the secondary had nothing to offer,
        # so whatever the primary brings settles it.
        if result.has_data or self.grace_lapsed:
            self._decide(result)

    def on_secondary(self, result: SourceResult, now: float) -> None:
        if self.state is ArbitrationState.DECIDED:
            return
        self.secondary = result
        if self.state is ArbitrationState.PENDING and not self.grace_lapsed:
            self.state = ArbitrationState.AWAITING_GRACE
            self._grace_deadline = now + self.grace

    def on_grace_expired(self) -> None:
        if self.state is not ArbitrationState.AWAITING_GRACE:
            return
        self._grace_deadline = None
        if self.primary is not None and self.primary.has_data:
            self._decide(self.primary)
        elif self.secondary is not None and self.secondary.has_data:
            self._decide(self.secondary)
        elif self.primary is not None:
            self._decide(self.primary)
        else:
            # primary still out and the secondary has nothing: keep waiting on primary
            self.state = ArbitrationState.PENDING
            self.grace_lapsed = True

    def on_timeout(self) -> None:
        if self.state is ArbitrationState.DECIDED:
            return
        if self.primary is not None and self.primary.has_data:
            self._decide(self.primary)
        elif self.secondary is not None and self.secondary.has_data:
            self._decide(self.secondary)
        elif self.primary is not None:
            self._decide(self.primary)
        elif self.secondary is not None:
            self._decide(self.secondary)
        else:
            self._decide(SourceResult.empty(Source.NONE))

    # ---- driver -------------------------------------------------------

    def _complete(self, source: Source, task: "asyncio.Future[Any]", now: float) -> None:
        if task.cancelled():
            logger.warning("%s fetch was cancelled", source.value)
            result = SourceResult.empty(source)
        elif task.exception() is not None:
            logger.warning("%s fetch raised: %r", source.value, task.exception())
            result = SourceResult.empty(source)
        else:
            result = task.result()
            if not isinstance(result, SourceResult):
                logger.warning("%s fetch returned %r, expected SourceResult", source.value, type(result).__name__)
                result = SourceResult.empty(source)

        if source is Source.PRIMARY:
            self.on_primary(result)
        else:
            self.on_secondary(result, now)

    async def run(
        self,
        primary: Awaitable[SourceResult],
        secondary: Awaitable[SourceResult],
    ) -> ArbitrationDecision:
        if self._started:
            raise ArbitrationError("an Arbitrator decides a single request")
        self._started = True

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        tasks: Dict["asyncio.Future[Any]", Source] = {
            asyncio.ensure_future(primary): Source.PRIMARY,
            asyncio.ensure_future(secondary): Source.SECONDARY,
        }
        pending = set(tasks)
        try:
            while self.state is not ArbitrationState.DECIDED:
                wake = deadline if self._grace_deadline is None else min(deadline, self._grace_deadline)
                remaining = wake - loop.time()
                if remaining > 0:
                    if pending:
                        done, pending = await asyncio.wait(
                            pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
                        )
                        for task in sorted(done, key=lambda t: _PRIORITY[tasks[t]]):
                            self._complete(tasks[task], task, loop.time())
                    else:
                        await asyncio.sleep(remaining)

                now = loop.time()
                if self._grace_deadline is not None and now >= self._grace_deadline:
                    self.on_grace_expired()
                if now >= deadline:
                    self.on_timeout()
        finally:
            for task in pending:
                _detached.add(task)
                task.add_done_callback(_discard_late)

        return self.decision
