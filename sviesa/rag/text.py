"""
Text primitives shared by the scorer, the caches and the memories:
tokenization, edit distance, cosine similarity and scripture references.
"""

import math
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

# Lithuanian stop words
STOP_WORDS = frozenset([
    "ir", "kad", "kai", "kur", "kas", "dėl", "su", "į", "iš", "apie", "kaip", "turi", "yra", "buvo",
    "bet", "ar", "tai", "čia", "prie", "nuo", "šis", "ši", "tas", "ta", "jie", "jos", "jūs", "mes",
    "pas", "per", "po", "tik", "nei", "nors", "dar", "jau", "vėl", "be", "ant", "už", "prieš",
    "tarp", "pvz", "etc",
])

BIBLICAL_BOOKS = frozenset([
    "pradžios", "išėjimo", "kunigų", "skaičių", "pakartoto įstatymo", "jozuės", "teisėjų", "rūtos",
    "1 samuelio", "2 samuelio", "1 karalių", "2 karalių", "1 metraščių", "2 metraščių", "ezros",
    "nehemijo", "esteros", "jobo", "psalmių", "patarlių", "mokytojo", "giesmių giesmės", "izaijo",
    "jeremijo", "raudų", "ezekielio", "danielio", "ozėjo", "joelio", "amoso", "abdijo", "jonos",
    "michėjo", "nahumo", "habakuko", "cefanijo", "hagajo", "zacharijo", "malachijo",
    "mato", "markaus", "luko", "jono", "apostolų darbų", "romiečiams", "1 korintiečiams",
    "2 korintiečiams", "galatams", "efeziečiams", "filipiečiams", "kolosiečiams",
    "1 tesalonikiečiams", "2 tesalonikiečiams", "1 timotiejui", "2 timotiejui", "titui",
    "filemonui", "hebrajams", "jokūbo", "1 petro", "2 petro", "1 jono", "2 jono", "3 jono",
    "judo", "apreiškimo",
])

# Abbreviations and trailing words of multi-word names -> canonical book
BOOK_ALIASES = {
    "mt": "mato", "mk": "markaus", "mork": "markaus", "morkaus": "markaus", "lk": "luko",
    "jn": "jono", "pr": "pradžios", "ps": "psalmių", "iz": "izaijo",
    "apd": "apostolų darbų", "darbų": "apostolų darbų", "rom": "romiečiams",
    "įstatymo": "pakartoto įstatymo", "giesmės": "giesmių giesmės", "apr": "apreiškimo",
}

# How a canonical book name shows up in section labels ("Evangelija pagal Matą")
BOOK_STEMS = {
    "mato": ("mato", "matą"),
    "markaus": ("markaus", "morkaus", "morkų"),
    "luko": ("luko", "luką"),
    "jono": ("jono", "joną"),
}

_PUNCTUATION = re.compile(r"[.,?!:;()\"'\[\]{}]")
_QUERY_PUNCTUATION = re.compile(r"[.,?!:;()\"']")
_WHITESPACE = re.compile(r"\s+")
_REFERENCE = re.compile(
    r"(?:(?<!\w)([1-3])\s*)?([^\W\d_]+)\.?\s*(\d{1,3})(?:\s*[,:]\s*|\s+)?(\d{1,3})?",
    re.UNICODE,
)
_SOURCE_TAG = re.compile(r"^\[Šaltinis: .*?\]\s*")
_SENTENCE_SPLIT = re.compile(r"[.!?]+")


def tokenize(text: str) -> List[str]:
    """Lowercase, strip punctuation, drop stop words and tokens of length <= 2."""
    cleaned = _PUNCTUATION.sub(" ", text.lower())
    return [t for t in _WHITESPACE.split(cleaned.strip()) if len(t) > 2 and t not in STOP_WORDS]


def normalize_query(query: str) -> str:
    """Query form used for exact-phrase matching and cache keys."""
    cleaned = _QUERY_PUNCTUATION.sub("", query.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def strip_source_tag(content: str) -> str:
    """Remove the synthetic '[Šaltinis: name, type]' prefix added at ingestion."""
    return _SOURCE_TAG.sub("", content, count=1)


def split_sentences(text: str) -> List[str]:
    return [s for s in _SENTENCE_SPLIT.split(text) if len(s.strip()) > 10]


def levenshtein_distance(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            cost = 0 if ca == cb else 1
            current.append(min(
                previous[j - 1] + cost,  # substitution
                current[j - 1] + 1,      # insertion
                previous[j] + 1,         # deletion
            ))
        previous = current
    return previous[-1]


def is_fuzzy_match(a: str, b: str, threshold: float = 0.25) -> bool:
    """True if the edit distance normalized by the longer length is <= threshold."""
    longest = max(len(a), len(b))
    if longest == 0:
        return True
    return levenshtein_distance(a, b) / longest <= threshold


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    """
    Dot product over L2 norms.

    Returns 0.0 when either vector is missing, has zero norm, or the
    dimensions differ.
    """
    if not a or not b or len(a) != len(b):
        return 0.0

    dot = norm_a = norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


@dataclass(frozen=True)
class ScriptureReference:
    """A parsed '<book> <chapter>[,:]<verse>' reference."""
    book: str
    chapter: int
    verse: Optional[int] = None

    def book_matches(self, label: str) -> bool:
        label = label.lower()
        return any(stem in label for stem in BOOK_STEMS.get(self.book, (self.book,)))

    def chapter_matches(self, chapter_or_ref: str) -> bool:
        return re.search(rf"(?<!\d){self.chapter}(?!\d)", chapter_or_ref) is not None

    def __str__(self) -> str:
        if self.verse is None:
            return f"{self.book} {self.chapter}"
        return f"{self.book} {self.chapter}, {self.verse}"


def _resolve_book(number: Optional[str], word: str) -> Optional[str]:
    name = word.lower()
    name = BOOK_ALIASES.get(name, name)
    candidate = f"{number} {name}" if number else name
    if candidate in BIBLICAL_BOOKS:
        return candidate
    if name in BIBLICAL_BOOKS and not number:
        return name
    return None


def extract_reference(query: str) -> Optional[ScriptureReference]:
    """
    Find the first scripture reference in a query.

    Accepts "Mato 5, 3", "Mt 5:3", "1 Korintiečiams 13, 4" and bare
    "Mato 5". Only recognised book names count.
    """
    pos = 0
    while True:
        match = _REFERENCE.search(query, pos)
        if match is None:
            return None
        number, word, chapter, verse = match.groups()
        book = _resolve_book(number, word)
        if book is None:
            # the chapter digit may be the number prefix of the next book
            pos = match.end(2)
            continue
        return ScriptureReference(
            book=book,
            chapter=int(chapter),
            verse=int(verse) if verse else None,
        )
