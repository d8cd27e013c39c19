'''Per-call transient-fault retry with exponential backoff.

This is independent of the selection loop's offset attempts: a policy retries
one external call on one candidate, and only reports the final outcome.
'''
from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from . import config
from .errors import DailyVerseError
from .model import Outcome

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = config.RETRY_ATTEMPTS
    base_delay: float = config.RETRY_BASE_DELAY
    backoff: float = config.RETRY_BACKOFF
    timeout: Optional[float] = config.HTTP_TIMEOUT

    def delay(self, attempt: int) -> float:
        '''Seconds to wait after failed attempt number `attempt` (1-based).'''
        return self.base_delay * (self.backoff ** (attempt - 1))

    async def run(
        self,
        call: Callable[[], Awaitable[T]],
        error_kind: type[DailyVerseError],
        what: str = "call",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> Outcome[T]:
        '''Await `call()` up to `max_attempts` times.

        A timeout counts as an `error_kind` failure.  Errors that are not
        DailyVerseErrors propagate unchanged (they are bugs, not transient
        faults).
        '''
        error: Optional[DailyVerseError] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                if self.timeout is None:
                    return Outcome(value=await call())
                return Outcome(value=await asyncio.wait_for(call(), self.timeout))
            except asyncio.TimeoutError:
                error = error_kind(f"{what} timed out after {self.timeout}s")
            except DailyVerseError as err:
                error = err
            if attempt < self.max_attempts:
                wait = self.delay(attempt)
                logger.warning("%s failed (attempt %d/%d): %s; retrying in %.2fs",
                    what, attempt, self.max_attempts, error, wait)
                await sleep(wait)
        logger.warning("%s failed after %d attempts: %s", what, self.max_attempts, error)
        return Outcome(error=error)


NO_RETRY = RetryPolicy(max_attempts=1, base_delay=0.0, timeout=None)
