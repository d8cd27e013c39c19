'''Candidate selection: picker -> fetcher -> classifier, over bounded offsets.

The selector walks offsets 0..max_tries-1 strictly in order, giving each
candidate exactly one fetch and at most one classification (each of those
under its own RetryPolicy).  The first candidate rated safe is ACCEPTED; if
none is, a whitelist reference is chosen as FALLBACK.  Either way `select`
returns a terminal Selection.

An administrative forced reference skips the loop entirely and is trusted
without classification.
'''
from __future__ import annotations
import enum
import logging
from dataclasses import dataclass
from typing import Optional, Union

from . import config
from .bible import BibleMap, Reference
from .errors import ClassifyError, FetchError
from .fetcher import TextFetcher
from .model import Candidate, Rating
from .oracle import SuitabilityClassifier
from .picker import FALLBACK_OFFSET, is_blocked, pick_candidate, pick_whitelist
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


ADMIN_RATING = Rating(True, "edifying", "admin_override")
FALLBACK_RATING = Rating(True, "edifying", "fallback_whitelist")


class State(enum.Enum):
    TRYING = "trying"
    ACCEPTED = "accepted"
    FALLBACK = "fallback"


class Abandoned(enum.Enum):
    BLOCKLISTED = "blocklisted"
    FETCH_FAILED = "fetch_failed"
    CLASSIFY_FAILED = "classify_failed"
    UNSAFE = "unsafe"


@dataclass(frozen=True)
class Attempt:
    candidate: Candidate
    result: Optional[Abandoned]     # None when this candidate was accepted


@dataclass(frozen=True)
class Selection:
    state: State
    reference: Reference
    text: str
    rating: Rating
    attempts: tuple[Attempt, ...] = ()


class Selector:
    def __init__(self,
            fetcher: TextFetcher,
            classifier: SuitabilityClassifier,
            catalog: Optional[BibleMap],
            policy: Optional[RetryPolicy] = None,
            max_tries: int = config.MAX_TRIES):
        if max_tries < 1:
            raise ValueError("max_tries must be at least 1")
        self.fetcher = fetcher
        self.classifier = classifier
        self.catalog = catalog
        self.policy = policy or RetryPolicy()
        self.max_tries = max_tries
        self.state = State.TRYING

    async def select(self, date_key: str, forced: Optional[Reference] = None) -> Selection:
        self.state = State.TRYING
        if forced is not None:
            return await self._forced(forced)

        attempts = []
        for offset in range(self.max_tries):
            candidate = Candidate(pick_candidate(date_key, offset, self.catalog), offset, date_key)
            result = await self._attempt(candidate)
            if not isinstance(result, Abandoned):
                attempts.append(Attempt(candidate, None))
                self.state = State.ACCEPTED
                logger.info("%s: accepted %s at offset %d", date_key, candidate.reference, offset)
                text, rating = result
                return Selection(State.ACCEPTED, candidate.reference, text, rating, tuple(attempts))
            attempts.append(Attempt(candidate, result))
            logger.info("%s: offset %d (%s) abandoned: %s",
                date_key, offset, candidate.reference, result.value)

        return await self._fallback(date_key, tuple(attempts))

    async def _attempt(self, candidate: Candidate) -> Union[Abandoned, tuple[str, Rating]]:
        ref = candidate.reference
        if is_blocked(ref):
            return Abandoned.BLOCKLISTED

        fetched = await self.policy.run(lambda: self.fetcher.fetch_text(ref), FetchError, f"fetch '{ref}'")
        if not fetched.ok:
            return Abandoned.FETCH_FAILED
        text = fetched.value

        rated = await self.policy.run(lambda: self.classifier.classify(ref, text), ClassifyError, f"classify '{ref}'")
        if not rated.ok:
            return Abandoned.CLASSIFY_FAILED
        if not rated.value.safe:
            return Abandoned.UNSAFE

        return text, rated.value

    async def _forced(self, ref: Reference) -> Selection:
        fetched = await self.policy.run(lambda: self.fetcher.fetch_text(ref), FetchError, f"fetch '{ref}'")
        if not fetched.ok:
            raise fetched.error
        self.state = State.ACCEPTED
        logger.info("forced reference %s accepted without classification", ref)
        return Selection(State.ACCEPTED, ref, fetched.value, ADMIN_RATING)

    async def _fallback(self, date_key: str, attempts: tuple[Attempt, ...]) -> Selection:
        ref = pick_whitelist(date_key, FALLBACK_OFFSET)
        try:
            fetched = await self.policy.run(lambda: self.fetcher.fetch_text(ref), FetchError, f"fetch '{ref}'")
            text = fetched.value if fetched.ok else str(ref)
        except Exception:
            logger.exception("%s: fetching fallback %s failed; using the reference as text", date_key, ref)
            text = str(ref)
        self.state = State.FALLBACK
        logger.warning("%s: no candidate accepted in %d tries, falling back to %s",
            date_key, self.max_tries, ref)
        return Selection(State.FALLBACK, ref, text, FALLBACK_RATING, attempts)
