import hashlib
from datetime import date, timedelta

import pytest

from dailyverse.bible import BibleMap, Reference, parse_ref
from dailyverse.picker import (BLOCKLIST, FALLBACK_OFFSET, WHITELIST, default_catalog, is_blocked,
    load_catalog, pick, pick_candidate, pick_whitelist)


def test_pick_known_digest():
    bm = BibleMap({"John": [51]})
    # sha256("2024-01-01#0") starts 9c 8c 6c: 0x6c % 51 + 1 == 7
    assert hashlib.sha256(b"2024-01-01#0").digest()[2] == 0x6C
    assert pick("2024-01-01", 0, bm) == Reference("John", 1, 7)
    assert str(pick("2024-01-01", 0, bm)) == "John 1:7"


def test_pick_is_deterministic(small_map):
    first = [pick("2025-03-09", o, small_map) for o in range(20)]
    again = [pick("2025-03-09", o, BibleMap({"John": [51, 25, 36], "Psalm": [6, 12],
        "Ruth": [22, 23, 18, 22]})) for o in range(20)]
    assert first == again


def test_pick_varies_with_offset_and_date(small_map):
    by_offset = {pick("2025-03-09", o, small_map) for o in range(20)}
    by_date = {pick(f"2025-03-{d:02d}", 0, small_map) for d in range(1, 29)}
    assert len(by_offset) > 1
    assert len(by_date) > 1


def test_pick_stays_within_catalog_bounds():
    bm = BibleMap.fromfile()
    start = date(2024, 1, 1)
    for day in range(120):
        key = (start + timedelta(days=day)).isoformat()
        for offset in range(5):
            ref = pick(key, offset, bm)
            assert bm.is_valid_ref(ref), ref
            assert ref.end_verse is None


def test_pick_rejects_negative_offset(small_map):
    with pytest.raises(ValueError):
        pick("2024-01-01", -1, small_map)


def test_pick_whitelist_is_deterministic_member():
    ref = pick_whitelist("2024-01-01")
    assert str(ref) in WHITELIST
    assert ref == pick_whitelist("2024-01-01", FALLBACK_OFFSET)
    # sha256("2024-01-01#w#777")[0] == 0x57 == 87; 87 % 12 == 3
    assert str(ref) == "Psalm 23:1"


def test_whitelist_entries_are_valid_references():
    bm = BibleMap.fromfile()
    for entry in WHITELIST:
        assert bm.is_valid_ref(parse_ref(entry)), entry


def test_pick_candidate_without_catalog_uses_whitelist():
    for offset in range(10):
        assert str(pick_candidate("2024-06-01", offset, None)) in WHITELIST


def test_blocklist_membership():
    for entry in BLOCKLIST:
        assert is_blocked(parse_ref(entry))
    assert not is_blocked(Reference("John", 3, 16))


def test_load_catalog_missing_file(tmp_path):
    assert load_catalog(str(tmp_path / "nope.json")) is None


def test_load_catalog_broken_file(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    assert load_catalog(str(broken)) is None


def test_default_catalog_is_shared():
    assert default_catalog() is default_catalog()
