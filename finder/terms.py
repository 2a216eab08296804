"""Regex and keyword term extraction used when the model is not consulted."""

import re


CUISINE_KEYWORDS: dict[str, str] = {
    "american": "American",
    "italian": "Italian",
    "mexican": "Mexican",
    "chinese": "Chinese",
    "japanese": "Japanese",
    "thai": "Thai",
    "indian": "Indian",
    "french": "French",
    "mediterranean": "Mediterranean",
    "greek": "Greek",
    "spanish": "Spanish",
    "middle eastern": "Middle Eastern",
    "korean": "Korean",
    "vietnamese": "Vietnamese",
    "jewish": "Jewish",
    "german": "German",
    "ethiopian": "Ethiopian",
    "african": "African",
    "brazilian": "Brazilian",
    "caribbean": "Caribbean",
}

CUISINE_WORDS = {w for k in CUISINE_KEYWORDS for w in k.split()} | {"india"}

PROTEINS = (
    "meat",
    "chicken",
    "beef",
    "pork",
    "lamb",
    "turkey",
    "fish",
    "salmon",
    "shrimp",
    "tofu",
)

STOP_WORDS = frozenset(
    {
        "and",
        "any",
        "are",
        "but",
        "can",
        "cook",
        "dish",
        "dishes",
        "eat",
        "find",
        "food",
        "foods",
        "for",
        "from",
        "give",
        "has",
        "have",
        "how",
        "like",
        "looking",
        "love",
        "make",
        "meal",
        "meals",
        "need",
        "please",
        "recipe",
        "recipes",
        "show",
        "some",
        "something",
        "that",
        "the",
        "want",
        "what",
        "with",
        "would",
        "you",
    }
)

NEGATIVE_RE = re.compile(
    r"\b(?:don'?t|do not|doesn'?t|does not|not|no|without|hate|dislike|exclude)"
    r"\s+(?:(?:like|have|want|eat)\s+)?([a-z][\w-]*)",
    re.I,
)

WORD_SPLIT_RE = re.compile(r"[\s,.;:!?()\"]+")

CONNECTOR_SPLIT_RE = re.compile(
    r"[,.;!?]|\s+and\s+|\s+or\s+|\s+with\s+|\s+without\s+|\s+not\s+|\s+but\s+"
)

EXCLUDED_CUISINE_LIST_RE = re.compile(
    r"\b(?:do not recommend|don't recommend|no|not|without|exclude|avoid)\W*(?:any\s+)?"
    r"((?:[a-z\s]+?)(?:\s+or\s+[a-z\s]+)+)(?:\s+recipes|\s+cuisine|\s+dishes|\s+food)?",
    re.I,
)


class QueryTerms:
    def __init__(
        self,
        *,
        positive: list[str] | None = None,
        negative: list[str] | None = None,
    ) -> None:
        self.positive = [] if positive is None else positive
        self.negative = [] if negative is None else negative

    def __repr__(self) -> str:
        return f"<QueryTerms(+{self.positive}, -{self.negative})>"

    @property
    def proteins(self) -> list[str]:
        """Positive terms when every one of them names a protein."""
        if self.negative or not self.positive:
            return []
        if all(t in PROTEINS for t in self.positive):
            return self.positive
        return []

    @property
    def is_protein_query(self) -> bool:
        return bool(self.proteins)


def dedupe(items: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        key = item.strip().lower()
        if key and key not in seen:
            seen.add(key)
            out.append(item.strip())
    return out


def negative_terms(query: str) -> list[str]:
    return dedupe(
        [m.group(1).lower() for m in NEGATIVE_RE.finditer(query) if len(m.group(1)) > 2]
    )


def split_terms(query: str) -> QueryTerms:
    """Split a query into wanted and unwanted words.

    Negative phrases ("don't like cheese", "without nuts") are cut out of the
    query first; what is left is split on whitespace and punctuation, and stop
    words, cuisine names and words of two letters or fewer are dropped.
    """
    negative = negative_terms(query)
    remainder = NEGATIVE_RE.sub(" ", query.lower())
    positive = [
        w.strip("'-")
        for w in WORD_SPLIT_RE.split(remainder)
        if len(w.strip("'-")) > 2
    ]
    positive = [
        w
        for w in positive
        if w not in STOP_WORDS and w not in negative and w not in CUISINE_WORDS
    ]
    return QueryTerms(positive=dedupe(positive), negative=negative)


def mentions(query: str, keyword: str) -> bool:
    return re.search(rf"\b{re.escape(keyword)}\b", query, re.I) is not None


def excluded_cuisines(query: str) -> list[str]:
    """Cuisines the query asks to leave out, e.g. "no Italian or Greek food"."""
    lowered = query.lower()
    excluded: list[str] = []

    for match in EXCLUDED_CUISINE_LIST_RE.finditer(lowered):
        for part in re.split(r"\s+or\s+|\s+and\s+|,", match.group(1)):
            for keyword, cuisine in CUISINE_KEYWORDS.items():
                if mentions(part, keyword) and cuisine not in excluded:
                    excluded.append(cuisine)

    for keyword, cuisine in CUISINE_KEYWORDS.items():
        kw = re.escape(keyword)
        pattern = (
            rf"\b(?:no|exclude|without|not|avoid)\s+{kw}\b"
            rf"|\b(?:do not|don't) recommend(?: any)?\s+{kw}\b"
        )
        if re.search(pattern, lowered) and cuisine not in excluded:
            excluded.append(cuisine)
    return excluded


def detect_cuisines(query: str, exclude: list[str] | None = None) -> list[str]:
    exclude = [] if exclude is None else exclude
    found: list[str] = []
    for keyword, cuisine in CUISINE_KEYWORDS.items():
        if mentions(query, keyword) and cuisine not in exclude:
            found.append(cuisine)
    if mentions(query, "india") and "Indian" not in exclude and "Indian" not in found:
        found.append("Indian")
    return found


def candidate_chunks(query: str) -> list[str]:
    return [
        c.strip() for c in CONNECTOR_SPLIT_RE.split(query.lower()) if len(c.strip()) > 2
    ]
