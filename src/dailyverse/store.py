'''Persistence of daily verse records.

Layout under the output directory:

    daily.json              current snapshot (what "today" serves)
    last-good.json          last-known-good snapshot
    daily.js                legacy `window.dailyVerse=...;` script
    archive/<date>.json     one record per date
    archive/index.json      the 30 most recent {date, reference}, newest first

Every file is written to a temporary sibling and renamed into place, so a
reader sees either the old or the new document, never a partial one.  There
is no locking: two runs for the *same* date must not overlap.
'''
from __future__ import annotations
import json
import logging
import os
import tempfile
from typing import Any, Optional

from . import config
from .errors import ArchiveCorruptionError
from .model import ArchiveIndexEntry, VerseRecord
from .render import render_legacy_js

logger = logging.getLogger(__name__)


ARCHIVE_SIZE = 30

CURRENT_FILE = "daily.json"
LAST_GOOD_FILE = "last-good.json"
LEGACY_FILE = "daily.js"
ARCHIVE_DIR = "archive"
INDEX_FILE = "index.json"


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def atomic_write(path: str, content: str) -> None:
    '''Write `content` to a temp file beside `path`, then rename it over `path`.'''
    directory, name = os.path.split(path)
    scratch_fd, scratch = tempfile.mkstemp(dir=directory, prefix=f".{name}.", suffix=".tmp")
    try:
        with os.fdopen(scratch_fd, "wt", encoding="utf-8") as fd:
            fd.write(content)
            fd.flush()
            os.fsync(fd.fileno())
        # mkstemp creates 0600; published files get the usual umask-derived mode
        os.chmod(scratch, 0o666 & ~_current_umask())
        os.replace(scratch, path)
    except BaseException:
        if os.path.exists(scratch):
            os.unlink(scratch)
        raise


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def _read_json(path: str) -> Optional[Any]:
    try:
        with open(path, "rt", encoding="utf-8") as fd:
            return json.load(fd)
    except FileNotFoundError:
        return None


def updated_index(entries: list[ArchiveIndexEntry], entry: ArchiveIndexEntry,
        size: int = ARCHIVE_SIZE) -> list[ArchiveIndexEntry]:
    '''Prepend `entry`, dropping any older entry for its date, keep `size` newest.'''
    kept = [e for e in entries if e.date != entry.date]
    return [entry, *kept][:size]


class DailyStore:
    def __init__(self, root: str = config.OUTPUT_DIR):
        self.root = root
        self.archive_dir = os.path.join(root, ARCHIVE_DIR)

    @property
    def current_path(self) -> str:
        return os.path.join(self.root, CURRENT_FILE)

    @property
    def last_good_path(self) -> str:
        return os.path.join(self.root, LAST_GOOD_FILE)

    @property
    def legacy_path(self) -> str:
        return os.path.join(self.root, LEGACY_FILE)

    @property
    def index_path(self) -> str:
        return os.path.join(self.archive_dir, INDEX_FILE)

    def archive_path(self, date: str) -> str:
        return os.path.join(self.archive_dir, f"{date}.json")

    def ensure_dirs(self) -> None:
        os.makedirs(self.archive_dir, exist_ok=True)

    # Writing
    #########

    def write_all(self, record: VerseRecord) -> None:
        '''Persist `record` as archive entry, index head, current, last-good and legacy.'''
        self.ensure_dirs()
        payload = record.to_dict()
        document = _dump(payload)

        atomic_write(self.archive_path(record.date), document)

        index = updated_index(self.load_archive_index(), record.index_entry)
        atomic_write(self.index_path, _dump([e.to_dict() for e in index]))

        atomic_write(self.current_path, document)
        atomic_write(self.last_good_path, document)
        atomic_write(self.legacy_path, render_legacy_js(payload))
        logger.info("persisted %s (%s) under %s", record.date, record.reference, self.root)

    # Reading
    #########

    def read_index(self) -> list[ArchiveIndexEntry]:
        '''Strict index read: a missing index is empty, a malformed one raises.'''
        try:
            data = _read_json(self.index_path)
        except ValueError as err:
            raise ArchiveCorruptionError(f"archive index is not JSON: {err}") from err
        if data is None:
            return []
        if not isinstance(data, list):
            raise ArchiveCorruptionError("archive index is not a list")
        entries = []
        for item in data:
            if not (isinstance(item, dict)
                    and isinstance(item.get("date"), str)
                    and isinstance(item.get("reference"), str)):
                raise ArchiveCorruptionError(f"bad archive index entry: {item!r}")
            entries.append(ArchiveIndexEntry(item["date"], item["reference"]))
        return entries

    def load_archive_index(self) -> list[ArchiveIndexEntry]:
        '''Tolerant index read: corruption resets to an empty index.'''
        try:
            return self.read_index()
        except (ArchiveCorruptionError, OSError) as err:
            logger.warning("discarding unreadable archive index: %s", err)
            return []

    def _load_snapshot(self, path: str) -> Optional[dict[str, Any]]:
        try:
            data = _read_json(path)
        except (OSError, ValueError) as err:
            logger.warning("unreadable snapshot '%s': %s", path, err)
            return None
        return data if isinstance(data, dict) and "date" in data else None

    def load_last_good(self) -> Optional[dict[str, Any]]:
        return self._load_snapshot(self.last_good_path)

    def load_current(self) -> Optional[dict[str, Any]]:
        '''The snapshot to serve: current, unless it is missing, broken or staler than last-good.'''
        current = self._load_snapshot(self.current_path)
        last_good = self.load_last_good()
        if current is None:
            return last_good
        if last_good is not None and str(last_good["date"]) > str(current["date"]):
            return last_good
        return current

    def is_published(self, record: VerseRecord) -> bool:
        '''True when every artifact of `write_all(record)` is in place.'''
        document = record.to_dict()
        index = self.load_archive_index()
        return (self._load_snapshot(self.current_path) == document
            and self.load_last_good() == document
            and bool(index) and index[0] == record.index_entry
            and os.path.exists(self.legacy_path))

    def load_archive_entry(self, date: str) -> Optional[dict[str, Any]]:
        return self._load_snapshot(self.archive_path(date))

    def load_record(self, date: str) -> Optional[VerseRecord]:
        data = self.load_archive_entry(date)
        if data is None:
            return None
        try:
            return VerseRecord.from_dict(data)
        except (KeyError, TypeError, ValueError) as err:
            logger.warning("archive entry for %s is unusable: %s", date, err)
            return None
