from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar

from .bible import Reference, parse_ref
from .errors import ClassifyError, DailyVerseError


CATEGORIES = ("edifying", "neutral", "non_edifying")

T = TypeVar("T")


@dataclass(frozen=True)
class Rating:
    """Suitability judgment for one reference/text pair."""
    safe: bool
    category: str
    reason: str

    @staticmethod
    def from_dict(data: Any) -> Rating:
        """Validate a classifier reply; anything off-schema is a ClassifyError."""
        if not isinstance(data, dict):
            raise ClassifyError(f"rating is not an object: {data!r}")
        safe, category = data.get("safe"), data.get("category")
        if not isinstance(safe, bool):
            raise ClassifyError(f"rating 'safe' is not a boolean: {safe!r}")
        if category not in CATEGORIES:
            raise ClassifyError(f"unknown rating category: {category!r}")
        return Rating(safe, category, str(data.get("reason") or ""))

    def to_dict(self) -> dict[str, object]:
        return {"safe": self.safe, "category": self.category, "reason": self.reason}


@dataclass(frozen=True)
class Candidate:
    reference: Reference    # Proposed by the picker
    offset: int             # Attempt offset that produced it
    date: str               # Date key it was picked for


@dataclass(frozen=True)
class ExtendedPassage:
    reference: str
    text: str


@dataclass(frozen=True)
class VerseRecord:
    """The accepted verse of the day for one date."""
    date: str                                   # ISO date, zone-anchored
    reference: Reference
    text: str
    rating: Rating
    context: str                                # Explanation HTML
    translation: str
    extended: Optional[ExtendedPassage] = None

    def to_dict(self) -> dict[str, object]:
        return {
            "date": self.date,
            "reference": str(self.reference),
            "text": self.text,
            "context": self.context,
            "rating": self.rating.to_dict(),
            "translation": self.translation,
            "extended": (
                {"reference": self.extended.reference, "text": self.extended.text}
                if self.extended else None
            ),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> VerseRecord:
        extended = data.get("extended")
        rating = data["rating"]
        return VerseRecord(
            date=data["date"],
            reference=parse_ref(data["reference"]),
            text=data["text"],
            rating=Rating(bool(rating["safe"]), rating["category"], rating.get("reason", "")),
            context=data["context"],
            translation=data["translation"],
            extended=ExtendedPassage(extended["reference"], extended["text"]) if extended else None,
        )

    @property
    def index_entry(self) -> ArchiveIndexEntry:
        return ArchiveIndexEntry(self.date, str(self.reference))


@dataclass(frozen=True)
class ArchiveIndexEntry:
    date: str
    reference: str

    def to_dict(self) -> dict[str, str]:
        return {"date": self.date, "reference": self.reference}


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of one external call: either a value or the error that ended it."""
    value: Optional[T] = None
    error: Optional[DailyVerseError] = field(default=None)

    @property
    def ok(self) -> bool:
        return self.error is None
