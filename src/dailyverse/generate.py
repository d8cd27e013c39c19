'''One generation run for one date: select, explain, extend, persist.

A run either completes (record persisted) or raises; an explanation failure
raises ExplainError before anything is written, leaving the previous
last-known-good snapshot in effect.
'''
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from . import config
from .bible import BibleMap, Reference, normalize_ref, parse_ref
from .errors import ExplainError, FetchError
from .fetcher import BibleApiFetcher, TextFetcher
from .model import ExtendedPassage, VerseRecord
from .oracle import Explainer, OpenAIClassifier, OpenAIExplainer, SuitabilityClassifier, find_extended_passage, make_client
from .picker import default_catalog
from .retry import RetryPolicy
from .selection import Selector
from .store import DailyStore

logger = logging.getLogger(__name__)


def today_key(tz: str = config.TIMEZONE) -> str:
    '''Today's ISO date in the configured zone.'''
    try:
        zone = ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as err:
        raise ValueError(f"unknown time zone: '{tz}'") from err
    return datetime.now(zone).date().isoformat()


def check_date_key(date_key: str) -> str:
    '''Validate an ISO calendar date and return it in canonical form.'''
    try:
        return date.fromisoformat(date_key).isoformat()
    except ValueError as err:
        raise ValueError(f"not an ISO date: '{date_key}'") from err


@dataclass
class Generator:
    fetcher: TextFetcher
    classifier: SuitabilityClassifier
    explainer: Explainer
    store: DailyStore
    catalog: Optional[BibleMap]
    policy: RetryPolicy
    translation: str = config.TRANSLATION
    max_tries: int = config.MAX_TRIES

    async def build(self, date_key: str, forced: Optional[Reference] = None) -> VerseRecord:
        '''Produce the record for `date_key` without persisting it.'''
        selector = Selector(self.fetcher, self.classifier, self.catalog, self.policy, self.max_tries)
        selection = await selector.select(date_key, forced)

        explained = await self.policy.run(
            lambda: self.explainer.explain(selection.reference, selection.text),
            ExplainError, f"explain '{selection.reference}'")
        if not explained.ok:
            raise explained.error

        return VerseRecord(
            date=date_key,
            reference=selection.reference,
            text=selection.text,
            rating=selection.rating,
            context=explained.value,
            translation=self.translation.upper(),
            extended=await self.extended_passage(explained.value),
        )

    async def extended_passage(self, html: str) -> Optional[ExtendedPassage]:
        ref = find_extended_passage(html)
        if ref is None:
            return None
        fetched = await self.policy.run(
            lambda: self.fetcher.fetch_passage(str(ref)), FetchError, f"fetch passage '{ref}'")
        if not fetched.ok:
            logger.info("extended passage %s unavailable; continuing without it", ref)
            return None
        return ExtendedPassage(str(ref), fetched.value)

    async def run(self, date_key: Optional[str] = None, forced: Optional[Reference] = None,
            force: bool = False) -> VerseRecord:
        '''Generate and persist the record for `date_key` (default: today).

        An existing archive entry for the date is reused unless `force` (or a
        `forced` reference) asks for regeneration.
        '''
        date_key = check_date_key(date_key) if date_key else today_key()
        if forced is None and not force:
            existing = self.store.load_record(date_key)
            if existing is not None:
                logger.info("%s already generated (%s); keeping it", date_key, existing.reference)
                served = self.store.load_current()
                newer_served = served is not None and str(served["date"]) > date_key
                if not newer_served and not self.store.is_published(existing):
                    # an earlier run stopped after archiving; finish publishing it
                    logger.warning("%s was archived but not published; publishing it now", date_key)
                    self.store.write_all(existing)
                return existing

        record = await self.build(date_key, forced)
        self.store.write_all(record)
        logger.info("generated daily verse for %s: %s", record.date, record.reference)
        return record


def parse_forced(reference: Optional[str]) -> Optional[Reference]:
    '''Operator-supplied reference, display-normalized and parsed.'''
    if not reference:
        return None
    return parse_ref(normalize_ref(reference))


async def generate_daily(date_key: Optional[str] = None, reference: Optional[str] = None,
        force: bool = False, out_dir: str = config.OUTPUT_DIR) -> VerseRecord:
    '''Run one generation with the default (network) collaborators.'''
    forced = parse_forced(reference)
    client = make_client()
    async with BibleApiFetcher() as fetcher:
        gen = Generator(
            fetcher=fetcher,
            classifier=OpenAIClassifier(client),
            explainer=OpenAIExplainer(client),
            store=DailyStore(out_dir),
            catalog=default_catalog(),
            policy=RetryPolicy(),
        )
        return await gen.run(date_key, forced, force)
