'''Tools for parsing, validating and displaying Bible references.

A `BibleMap` is the catalog of addressable references: book name -> verse
count of each chapter, loaded from a JSON file shaped like
`{"Genesis": [31, 25, 24, ...], "Exodus": [...]}`.
'''
from __future__ import annotations
import json
import re
import string
from collections import namedtuple
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Sequence

from .config import VERSE_MAP_FILE
from .errors import ReferenceSyntaxError


# Simple types and compiled regexen
###################################

class Reference(namedtuple("Reference", ("book", "chapter", "verse", "end_verse"), defaults=(None,))):
    '''A book/chapter/verse(/end-verse) address, rendered as `Book C:V[-E]`.'''
    __slots__ = ()

    def __str__(self) -> str:
        s = f"{self.book} {self.chapter}:{self.verse}"
        if self.end_verse is not None:
            s += f"-{self.end_verse}"
        return s

    @property
    def is_range(self) -> bool:
        return self.end_verse is not None


RX_WS = re.compile(r"\s*")
RX_NAME = re.compile(r"((?:[1-3]|I{1,3}\s)?\s*[A-Za-z][A-Za-z.]*(?:\s+[A-Za-z][A-Za-z.]*)*)\s*")
RX_NUM = re.compile(r"([0-9]+)\s*")
RX_LEAD_BOOK = re.compile(r"^\s*((?:[1-3]|I{1,3}\s)?\s*[A-Za-z][A-Za-z.]*(?:\s+[A-Za-z][A-Za-z.]*)*)\s*(.*)$", re.S)
RX_NUMBERED = re.compile(r"^(III|II|I|[1-3])\s*(.+)$", re.I)

_ROMAN = {"i": "1", "ii": "2", "iii": "3"}


# Book names, in canonical order, with the abbreviations we accept for each
# (the 3-letter codes of the kjvdat.txt format are included).
BOOKS = [
    ("Genesis", ["Gen", "Gn", "Ge"]),
    ("Exodus", ["Exo", "Ex", "Exod"]),
    ("Leviticus", ["Lev", "Lv"]),
    ("Numbers", ["Num", "Nm", "Nu"]),
    ("Deuteronomy", ["Deu", "Deut", "Dt"]),
    ("Joshua", ["Jos", "Josh", "Jsh"]),
    ("Judges", ["Jdg", "Judg", "Jg"]),
    ("Ruth", ["Rut", "Ru"]),
    ("1 Samuel", ["1 Sam", "1 Sa", "Sa1"]),
    ("2 Samuel", ["2 Sam", "2 Sa", "Sa2"]),
    ("1 Kings", ["1 Kgs", "1 Ki", "Kg1"]),
    ("2 Kings", ["2 Kgs", "2 Ki", "Kg2"]),
    ("1 Chronicles", ["1 Chr", "1 Ch", "Ch1"]),
    ("2 Chronicles", ["2 Chr", "2 Ch", "Ch2"]),
    ("Ezra", ["Ezr"]),
    ("Nehemiah", ["Neh"]),
    ("Esther", ["Est", "Esth"]),
    ("Job", ["Jb"]),
    # not Psalms: for references, we mean a _single_ Psalm, not all of them
    ("Psalm", ["Psalms", "Psa", "Ps", "Pss"]),
    ("Proverbs", ["Pro", "Prov", "Pv", "Prv"]),
    ("Ecclesiastes", ["Ecc", "Eccl", "Qoh"]),
    ("Song of Solomon", ["Song of Songs", "Song", "Sol", "Sng", "SoS", "Canticles"]),
    ("Isaiah", ["Isa", "Is"]),
    ("Jeremiah", ["Jer", "Jr"]),
    ("Lamentations", ["Lam", "La"]),
    ("Ezekiel", ["Eze", "Ezek", "Ezk"]),
    ("Daniel", ["Dan", "Dn"]),
    ("Hosea", ["Hos", "Ho"]),
    ("Joel", ["Joe", "Jol", "Jl"]),
    ("Amos", ["Amo", "Am"]),
    ("Obadiah", ["Oba", "Obad", "Ob"]),
    ("Jonah", ["Jon", "Jnh"]),
    ("Micah", ["Mic", "Mc"]),
    ("Nahum", ["Nah", "Na"]),
    ("Habakkuk", ["Hab", "Hb", "Habbakkuk"]),
    ("Zephaniah", ["Zep", "Zeph", "Zph"]),
    ("Haggai", ["Hag", "Hg"]),
    ("Zechariah", ["Zac", "Zec", "Zech", "Zachariah"]),
    ("Malachi", ["Mal", "Ml"]),
    ("Matthew", ["Mat", "Matt", "Mt"]),
    ("Mark", ["Mar", "Mrk", "Mk"]),
    ("Luke", ["Luk", "Lk"]),
    ("John", ["Joh", "Jhn", "Jn"]),
    ("Acts", ["Act", "Ac"]),
    ("Romans", ["Rom", "Rm"]),
    ("1 Corinthians", ["1 Cor", "1 Co", "Co1"]),
    ("2 Corinthians", ["2 Cor", "2 Co", "Co2"]),
    ("Galatians", ["Gal", "Ga"]),
    ("Ephesians", ["Eph", "Ephes"]),
    ("Philippians", ["Phi", "Phil", "Php", "Phillippians"]),
    ("Colossians", ["Col"]),
    ("1 Thessalonians", ["1 Thess", "1 Th", "Th1"]),
    ("2 Thessalonians", ["2 Thess", "2 Th", "Th2"]),
    ("1 Timothy", ["1 Tim", "1 Ti", "Ti1"]),
    ("2 Timothy", ["2 Tim", "2 Ti", "Ti2"]),
    ("Titus", ["Tit", "Tt"]),
    ("Philemon", ["Plm", "Phm", "Philem"]),
    ("Hebrews", ["Heb"]),
    ("James", ["Jam", "Jas", "Jm"]),
    ("1 Peter", ["1 Pet", "1 Pe", "Pe1"]),
    ("2 Peter", ["2 Pet", "2 Pe", "Pe2"]),
    ("1 John", ["1 Jn", "1 Jo", "1 Jhn", "Jo1"]),
    ("2 John", ["2 Jn", "2 Jo", "2 Jhn", "Jo2"]),
    ("3 John", ["3 Jn", "3 Jo", "3 Jhn", "Jo3"]),
    ("Jude", ["Jde", "Jud", "Jd"]),
    ("Revelation", ["Rev", "Re", "Rv", "Revelations"]),
]


def _book_key(name: str) -> str:
    '''Fold a book name or abbreviation to a lookup key ("I Sam." -> "1sam").'''
    name = name.strip()
    m = RX_NUMBERED.match(name)
    if m and (m.group(1).isdigit() or name[len(m.group(1)):][:1].isspace()):
        prefix = _ROMAN.get(m.group(1).lower(), m.group(1))
        name = prefix + m.group(2)
    return re.sub(r"[\s.]+", "", name).lower()


BOOK_NAMES = {}
for _canon, _abbrevs in BOOKS:
    for _alias in [_canon, *_abbrevs]:
        BOOK_NAMES[_book_key(_alias)] = _canon


def canonical_book(name: str) -> str:
    '''Return the display form of a book name; unknown names are just Title Cased.'''
    try:
        return BOOK_NAMES[_book_key(name)]
    except KeyError:
        return string.capwords(name.strip())


def normalize_ref(ref: str) -> str:
    '''Canonicalize the book name of a reference string for display.

    Only the leading book name is touched (its chapter/verse remainder is kept,
    with whitespace collapsed) so anything the parser can't handle still comes
    out sensibly.  Normalizing twice gives the same string.
    '''
    m = RX_LEAD_BOOK.match(ref)
    if not m:
        return " ".join(ref.split())
    book, rest = m.group(1), m.group(2)
    rest = re.sub(r"\s*([:\-,;])\s*", r"\1", " ".join(rest.split()))
    rest = rest.replace(";", "; ")
    return f"{canonical_book(book)} {rest}".strip()


# Catalog
#########

class BibleMap:
    '''Immutable catalog of books and chapter/verse limits.

    Book order is the order of the source mapping (canonical order for the
    bundled file), and is what the picker indexes into.
    '''
    def __init__(self, books: Mapping[str, Sequence[int]]):
        checked = {}
        for book, counts in books.items():
            counts = tuple(int(c) for c in counts)
            if not counts or any(c < 1 for c in counts):
                raise ValueError(f"invalid verse counts for '{book}'")
            checked[book] = counts
        if not checked:
            raise ValueError("empty verse map")
        self._books = MappingProxyType(checked)
        self._order = tuple(checked)

    @staticmethod
    def fromfile(filename: str = VERSE_MAP_FILE) -> BibleMap:
        with open(filename, "rt", encoding="utf8") as fd:
            return BibleMap(json.load(fd))

    @property
    def books(self) -> tuple[str, ...]:
        return self._order

    def last_chapter(self, book: str) -> int:
        return len(self._books[book])

    def last_verse(self, book: str, chapter: int) -> int:
        return self._books[book][chapter - 1]

    def is_valid_ref(self, v: Reference) -> bool:
        if v.book not in self._books:
            return False
        if v.chapter < 1 or v.chapter > self.last_chapter(v.book):
            return False
        last = self.last_verse(v.book, v.chapter)
        if v.verse < 1 or v.verse > last:
            return False
        if v.end_verse is not None and not (v.verse <= v.end_verse <= last):
            return False
        return True

    def __contains__(self, book: str) -> bool:
        return book in self._books

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterable[str]:
        return iter(self._order)


# Reference parsing
###################

class ParseStream:
    '''Recursive-descent parser over a single reference string.'''
    def __init__(self, s: str):
        self._s = s
        self._pos = 0
        self.eat_ws()

    def eos(self) -> bool:
        return self._pos >= len(self._s)

    def peek(self, span=1) -> str:
        return self._s[self._pos : self._pos + span]

    def eat(self, pat, return_group=0) -> Optional[str]:
        m = pat.match(self._s, pos=self._pos)
        if m:
            self._pos += len(m.group(0))
            return m.group(return_group)
        else:
            return None

    def eat_ws(self):
        self.eat(RX_WS)

    def read_name(self) -> str:
        name = self.eat(RX_NAME, return_group=1)
        if name is None:
            raise ReferenceSyntaxError(f"expected book name in '{self._s}'")
        return name

    def read_num(self) -> int:
        num = self.eat(RX_NUM, return_group=1)
        if num is None:
            raise ReferenceSyntaxError(f"expected number in '{self._s}'")
        return int(num)

    def require(self, literal: str):
        if self.peek(len(literal)) != literal:
            raise ReferenceSyntaxError(f"expected '{literal}' in '{self._s}'")
        self._pos += len(literal)
        self.eat_ws()

    def accept(self, literal: str) -> bool:
        if self.peek(len(literal)) == literal:
            self._pos += len(literal)
            self.eat_ws()
            return True
        else:
            return False


def parse_ref(ref: str, bm: Optional[BibleMap] = None) -> Reference:
    '''Parse `Book C:V[-E]` into a Reference.

    The book name is kept as written; pass a `bm` to also check the
    reference against the catalog's bounds.
    '''
    ps = ParseStream(ref)
    book = ps.read_name()
    chapter = ps.read_num()
    ps.require(":")
    verse = ps.read_num()
    end_verse = None
    if ps.accept("-"):
        end_verse = ps.read_num()
    if not ps.eos():
        raise ReferenceSyntaxError(f"unexpected '{ps.peek()}' in '{ref}'")
    if chapter < 1 or verse < 1 or (end_verse is not None and end_verse < verse):
        raise ReferenceSyntaxError(f"invalid chapter/verse numbers in '{ref}'")

    result = Reference(book, chapter, verse, end_verse)
    if bm is not None and not bm.is_valid_ref(result):
        raise ReferenceSyntaxError(f"'{ref}' is outside the catalog")
    return result
