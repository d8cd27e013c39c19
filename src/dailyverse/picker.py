'''Deterministic reference picking.

A date key and an attempt offset are hashed with SHA-256 and successive
digest bytes choose the book, chapter and verse, so the same (date, offset)
always yields the same reference, whatever process asks.
'''
from __future__ import annotations
import functools
import hashlib
import logging
from typing import Optional

from .bible import BibleMap, Reference, parse_ref
from .config import VERSE_MAP_FILE

logger = logging.getLogger(__name__)


# References never surfaced for daily devotional use (exact string match)
BLOCKLIST = frozenset([
    "Matthew 27:5",     # Judas' suicide
    "Judges 19:25",
    "2 Samuel 13:14",
])

# Good "memory" candidates for when everything else fails
WHITELIST = (
    "Philippians 4:6-7",
    "Proverbs 3:5-6",
    "Romans 8:28",
    "Psalm 23:1",
    "Isaiah 41:10",
    "Matthew 11:28-30",
    "John 3:16",
    "Ephesians 3:20",
    "Joshua 1:9",
    "Psalm 27:1",
    "Romans 12:2",
    "Galatians 2:20",
)

# Reserved offset for the fallback pick, outside any selection loop bound
FALLBACK_OFFSET = 777


def digest(key: str) -> bytes:
    return hashlib.sha256(key.encode("utf-8")).digest()


def pick(date_key: str, offset: int, bm: BibleMap) -> Reference:
    '''Pick the candidate reference for `date_key` at attempt `offset`.'''
    if offset < 0:
        raise ValueError(f"offset must be >= 0, not {offset}")
    h = digest(f"{date_key}#{offset}")
    book = bm.books[h[0] % len(bm)]
    chapter = h[1] % bm.last_chapter(book) + 1
    verse = h[2] % bm.last_verse(book, chapter) + 1
    return Reference(book, chapter, verse)


def pick_whitelist(date_key: str, offset: int = FALLBACK_OFFSET) -> Reference:
    '''Pick a whitelist reference, deterministically for (date, offset).'''
    h = digest(f"{date_key}#w#{offset}")
    return parse_ref(WHITELIST[h[0] % len(WHITELIST)])


def pick_candidate(date_key: str, offset: int, bm: Optional[BibleMap]) -> Reference:
    '''Pick from the catalog when there is one, otherwise from the whitelist.'''
    if bm is None:
        return pick_whitelist(date_key, offset)
    return pick(date_key, offset, bm)


def is_blocked(ref: Reference) -> bool:
    return str(ref) in BLOCKLIST


def load_catalog(filename: str = VERSE_MAP_FILE) -> Optional[BibleMap]:
    '''Load the verse map once; a missing/broken file means whitelist-only picking.'''
    try:
        return BibleMap.fromfile(filename)
    except (OSError, ValueError) as err:
        logger.warning("verse map '%s' unavailable (%s); picking from whitelist only", filename, err)
        return None


@functools.lru_cache(maxsize=None)
def default_catalog() -> Optional[BibleMap]:
    '''The process-wide catalog, loaded on first use and shared read-only.'''
    return load_catalog()
