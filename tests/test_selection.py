import pytest

import dailyverse.selection as selection
from conftest import SAFE, UNSAFE, FakeClassifier, FakeFetcher, run
from dailyverse.bible import Reference, parse_ref
from dailyverse.errors import ClassifyError, FetchError
from dailyverse.picker import BLOCKLIST, WHITELIST, pick
from dailyverse.selection import Abandoned, Selector, State


def scripted_picks(monkeypatch, refs):
    """Make the selector see `refs` at offsets 0, 1, ... (then John 3:16 forever)."""
    def fake_pick(date_key, offset, catalog):
        return parse_ref(refs[offset]) if offset < len(refs) else Reference("John", 3, 16)
    monkeypatch.setattr(selection, "pick_candidate", fake_pick)


def test_accepts_first_safe_candidate(small_map, policy):
    fetcher, classifier = FakeFetcher(), FakeClassifier()
    sel = run(Selector(fetcher, classifier, small_map, policy).select("2024-01-01"))
    assert sel.state is State.ACCEPTED
    assert sel.reference == pick("2024-01-01", 0, small_map)
    assert sel.rating == SAFE
    assert sel.text == f"text of {sel.reference}"
    assert [a.result for a in sel.attempts] == [None]


def test_unsafe_candidates_move_to_next_offset(small_map, policy):
    second = str(pick("2024-01-01", 1, small_map))
    first = str(pick("2024-01-01", 0, small_map))
    classifier = FakeClassifier(lambda ref: SAFE if ref == second and ref != first else UNSAFE)
    sel = run(Selector(FakeFetcher(), classifier, small_map, policy).select("2024-01-01"))
    assert sel.state is State.ACCEPTED
    assert str(sel.reference) == second
    assert [a.candidate.offset for a in sel.attempts] == [0, 1]
    assert sel.attempts[0].result is Abandoned.UNSAFE


def test_blocklisted_candidates_are_never_fetched_or_classified(monkeypatch, small_map, policy):
    blocked = sorted(BLOCKLIST)
    scripted_picks(monkeypatch, blocked + ["Romans 8:28"])
    fetcher, classifier = FakeFetcher(), FakeClassifier()
    sel = run(Selector(fetcher, classifier, small_map, policy).select("2024-01-01"))
    assert str(sel.reference) == "Romans 8:28"
    assert fetcher.calls == ["Romans 8:28"]
    assert classifier.calls == ["Romans 8:28"]
    assert [a.result for a in sel.attempts] == [Abandoned.BLOCKLISTED] * len(blocked) + [None]


def test_blocklisted_reference_never_accepted_even_if_rated_safe(monkeypatch, small_map, policy):
    scripted_picks(monkeypatch, ["Matthew 27:5"] * 5)
    classifier = FakeClassifier()
    sel = run(Selector(FakeFetcher(), classifier, small_map, policy, max_tries=5).select("2024-01-01"))
    assert sel.state is State.FALLBACK
    assert classifier.calls == []
    assert str(sel.reference) not in BLOCKLIST


def test_fetch_failure_abandons_offset_without_classifying(monkeypatch, small_map, policy):
    scripted_picks(monkeypatch, ["John 1:1", "John 1:2"])
    fetcher = FakeFetcher(failing={"John 1:1"})
    classifier = FakeClassifier()
    sel = run(Selector(fetcher, classifier, small_map, policy).select("2024-01-01"))
    assert str(sel.reference) == "John 1:2"
    # the retry policy gets two tries at the failing fetch, then the offset is dropped
    assert fetcher.calls == ["John 1:1", "John 1:1", "John 1:2"]
    assert classifier.calls == ["John 1:2"]
    assert sel.attempts[0].result is Abandoned.FETCH_FAILED


def test_classifier_failure_counts_as_unsafe(monkeypatch, small_map, policy):
    scripted_picks(monkeypatch, ["John 1:1", "John 1:2"])
    classifier = FakeClassifier(lambda ref: ClassifyError("garbled") if ref == "John 1:1" else SAFE)
    sel = run(Selector(FakeFetcher(), classifier, small_map, policy).select("2024-01-01"))
    assert str(sel.reference) == "John 1:2"
    assert sel.attempts[0].result is Abandoned.CLASSIFY_FAILED


def test_all_unsafe_falls_back_to_whitelist(small_map, policy, unsafe_everything):
    fetcher = FakeFetcher()
    sel = run(Selector(fetcher, unsafe_everything, small_map, policy, max_tries=20).select("2024-01-01"))
    assert sel.state is State.FALLBACK
    assert str(sel.reference) in WHITELIST
    assert sel.rating.safe is True
    assert sel.rating.category == "edifying"
    assert sel.rating.reason == "fallback_whitelist"
    assert len(sel.attempts) == 20
    assert [a.candidate.offset for a in sel.attempts] == list(range(20))
    assert len(unsafe_everything.calls) == 20
    assert sel.text == f"text of {sel.reference}"


def test_fallback_is_deterministic(small_map, policy, unsafe_everything):
    a = run(Selector(FakeFetcher(), unsafe_everything, small_map, policy).select("2024-01-01"))
    b = run(Selector(FakeFetcher(), unsafe_everything, small_map, policy).select("2024-01-01"))
    assert a.reference == b.reference
    assert str(a.reference) == "Psalm 23:1"


def test_fallback_survives_text_provider_outage(small_map, policy):
    fetcher = FakeFetcher(failing={"*"})
    classifier = FakeClassifier()
    sel = run(Selector(fetcher, classifier, small_map, policy, max_tries=3).select("2024-01-01"))
    assert sel.state is State.FALLBACK
    assert sel.text == str(sel.reference)
    assert classifier.calls == []
    assert {a.result for a in sel.attempts} == {Abandoned.FETCH_FAILED}


def test_fallback_survives_a_broken_fetcher(small_map, policy, unsafe_everything):
    class BrokenOnFallback(FakeFetcher):
        async def fetch_text(self, reference):
            if str(reference) in WHITELIST:
                raise RuntimeError("fetcher bug")
            return await super().fetch_text(reference)

    sel = run(Selector(BrokenOnFallback(), unsafe_everything, small_map, policy, max_tries=2).select("2024-01-01"))
    assert sel.state is State.FALLBACK
    assert sel.text == str(sel.reference)


def test_each_offset_gets_one_classification(small_map, policy, classify_errors):
    sel = run(Selector(FakeFetcher(), classify_errors, small_map, policy, max_tries=4).select("2024-01-01"))
    assert sel.state is State.FALLBACK
    # two policy attempts per offset, four offsets, never revisited
    assert len(classify_errors.calls) == 8
    offsets = [a.candidate.offset for a in sel.attempts]
    assert offsets == sorted(set(offsets))


def test_forced_reference_skips_classification(small_map, policy):
    fetcher, classifier = FakeFetcher(), FakeClassifier(lambda ref: UNSAFE)
    selector = Selector(fetcher, classifier, small_map, policy)
    sel = run(selector.select("2024-01-01", forced=Reference("Judges", 19, 25)))
    assert sel.state is State.ACCEPTED
    assert selector.state is State.ACCEPTED
    assert str(sel.reference) == "Judges 19:25"
    assert sel.rating.safe is True
    assert sel.rating.reason == "admin_override"
    assert classifier.calls == []
    assert fetcher.calls == ["Judges 19:25"]


def test_forced_reference_fetch_failure_raises(small_map, policy):
    fetcher = FakeFetcher(failing={"John 3:16"})
    with pytest.raises(FetchError):
        run(Selector(fetcher, FakeClassifier(), small_map, policy).select(
            "2024-01-01", forced=Reference("John", 3, 16)))


def test_selector_without_catalog_picks_whitelist(policy):
    sel = run(Selector(FakeFetcher(), FakeClassifier(), None, policy).select("2024-01-01"))
    assert sel.state is State.ACCEPTED
    assert str(sel.reference) in WHITELIST


def test_max_tries_must_be_positive(small_map):
    with pytest.raises(ValueError):
        Selector(FakeFetcher(), FakeClassifier(), small_map, max_tries=0)
