'''Suitability classification and pastoral explanation via an OpenAI chat model.

Both are consumed as black boxes: the classifier's judgment is trusted as
given, and the explainer's HTML is stored as returned.
'''
from __future__ import annotations
import json
import logging
import re
from typing import Optional, Protocol

from openai import AsyncOpenAI, OpenAIError

from . import config
from .bible import Reference, normalize_ref, parse_ref
from .errors import ClassifyError, ConfigError, ExplainError, ReferenceSyntaxError
from .model import Rating

logger = logging.getLogger(__name__)


class SuitabilityClassifier(Protocol):
    async def classify(self, reference: Reference, text: str) -> Rating: ...


class Explainer(Protocol):
    async def explain(self, reference: Reference, text: str) -> str: ...


CLASSIFY_PROMPT = """
Return STRICT JSON ONLY (no markdown, no prose).
Is this verse suitable for daily edification/memorization (authority, encouragement, learning)?
Disqualify if mainly about suicide/rape/murder descriptions, curses/punishments without hope,
genealogies/inventories/measurements, or content likely to distress without broader context.

Schema:
{"safe": true|false, "category": "edifying|neutral|non_edifying", "reason": "short phrase"}
""".strip()

EXPLAIN_PROMPT = """
Explain this Bible verse using only biblical context. Keep it pastoral, faithful, concise.
Return clean HTML with:
- <h2> one-line summary (what it says)
- <p> what it reveals about God/Christ
- <p> how a believer can live this today
- <ul> 2-3 cross-references (list items: just references)
- optionally, <h3>Extended Passage: Book C:V-E</h3> naming the surrounding verses worth reading
No inline styles, no scripts, no external links.
""".strip()

RX_EXTENDED = re.compile(r"<h3[^>]*>\s*Extended\s+Passage\s*:?\s*(.*?)\s*</h3>", re.I | re.S)
RX_TAG = re.compile(r"<[^>]+>")


def make_client() -> AsyncOpenAI:
    # reads OPENAI_API_KEY from the environment
    try:
        return AsyncOpenAI()
    except OpenAIError as err:
        raise ConfigError(f"cannot create model client: {err}") from err


class OpenAIClassifier:
    def __init__(self, client: Optional[AsyncOpenAI] = None, model: str = config.OPENAI_MODEL):
        self.client = client or make_client()
        self.model = model

    async def classify(self, reference: Reference, text: str) -> Rating:
        try:
            resp = await self.client.chat.completions.create(
                model=self.model,
                temperature=0,
                max_tokens=120,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": "You are a strict JSON classifier."},
                    {"role": "user", "content": f"{CLASSIFY_PROMPT}\n\n{reference}\n\"{text}\""},
                ],
            )
        except OpenAIError as err:
            raise ClassifyError(f"classifier request failed: {err}") from err

        raw = (resp.choices[0].message.content or "") if resp.choices else ""
        try:
            data = json.loads(raw)
        except ValueError as err:
            raise ClassifyError(f"classifier returned non-JSON: {raw[:80]!r}") from err
        return Rating.from_dict(data)


class OpenAIExplainer:
    def __init__(self, client: Optional[AsyncOpenAI] = None, model: str = config.OPENAI_MODEL):
        self.client = client or make_client()
        self.model = model

    async def explain(self, reference: Reference, text: str) -> str:
        try:
            resp = await self.client.chat.completions.create(
                model=self.model,
                temperature=0.5,
                max_tokens=600,
                messages=[
                    {"role": "system", "content": "You are a concise, biblically faithful pastor-teacher."},
                    {"role": "user", "content": f"{EXPLAIN_PROMPT}\n\nReference: {reference}\nText:\n{text}"},
                ],
            )
        except OpenAIError as err:
            raise ExplainError(f"explainer request failed: {err}") from err

        html = ((resp.choices[0].message.content or "") if resp.choices else "").strip()
        if not html:
            raise ExplainError(f"explainer returned nothing for '{reference}'")
        return html


def find_extended_passage(html: str) -> Optional[Reference]:
    '''Best-effort: the range named in an "Extended Passage" heading, if any.

    Anything missing or unparseable (including cross-chapter ranges) is
    simply "no extended passage".
    '''
    m = RX_EXTENDED.search(html or "")
    if not m:
        return None
    candidate = normalize_ref(RX_TAG.sub("", m.group(1)))
    try:
        ref = parse_ref(candidate)
    except ReferenceSyntaxError:
        logger.info("ignoring unparseable extended passage %r", candidate)
        return None
    return ref if ref.is_range else None
