import asyncio

import pytest

from dailyverse.bible import BibleMap
from dailyverse.errors import ClassifyError, ExplainError, FetchError
from dailyverse.model import Rating
from dailyverse.retry import RetryPolicy
from dailyverse.store import DailyStore


SAFE = Rating(True, "edifying", "encouragement")
UNSAFE = Rating(False, "non_edifying", "violence")


class FakeFetcher:
    """Returns canned text; references in `failing` raise FetchError."""
    def __init__(self, failing=(), texts=None):
        self.failing = set(failing)
        self.texts = texts or {}
        self.calls = []
        self.passage_calls = []

    async def fetch_text(self, reference):
        self.calls.append(str(reference))
        if str(reference) in self.failing or "*" in self.failing:
            raise FetchError(f"no text for {reference}")
        return self.texts.get(str(reference), f"text of {reference}")

    async def fetch_passage(self, range_reference):
        self.passage_calls.append(range_reference)
        if range_reference in self.failing:
            raise FetchError(f"no text for {range_reference}")
        return f"passage {range_reference}"


class FakeClassifier:
    """Rates via `judge(reference_str) -> Rating`; may raise ClassifyError."""
    def __init__(self, judge=lambda ref: SAFE):
        self.judge = judge
        self.calls = []

    async def classify(self, reference, text):
        self.calls.append(str(reference))
        rating = self.judge(str(reference))
        if isinstance(rating, Exception):
            raise rating
        return rating


class FakeExplainer:
    def __init__(self, html="<h2>Summary</h2><p>Context</p>", fail=False):
        self.html = html
        self.fail = fail
        self.calls = []

    async def explain(self, reference, text):
        self.calls.append(str(reference))
        if self.fail:
            raise ExplainError("model unavailable")
        return self.html


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def policy():
    return RetryPolicy(max_attempts=2, base_delay=0.0, backoff=1.0, timeout=None)


@pytest.fixture
def small_map():
    return BibleMap({"John": [51, 25, 36], "Psalm": [6, 12], "Ruth": [22, 23, 18, 22]})


@pytest.fixture
def store(tmp_path):
    return DailyStore(str(tmp_path / "public"))


@pytest.fixture
def unsafe_everything():
    return FakeClassifier(lambda ref: UNSAFE)


@pytest.fixture
def classify_errors():
    return FakeClassifier(lambda ref: ClassifyError("garbled"))
