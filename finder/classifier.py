import re

from finder.models import QueryKind


COMPLEX_PATTERNS = (
    re.compile(r"\bbut\b", re.I),
    re.compile(r"\b(?:don'?t|not|no|without)\b", re.I),
    re.compile(r"\b(?:except|exclude)", re.I),
    re.compile(r"\bor\b", re.I),
    re.compile(r"\band\b", re.I),
    re.compile(r"\bif\b", re.I),
    re.compile(r"\binstead\s?of\b", re.I),
)

MAX_SIMPLE_TOKENS = 3


def classify(query: str) -> QueryKind:
    """Simple queries skip the model altogether."""
    if any(p.search(query) for p in COMPLEX_PATTERNS):
        return QueryKind.complex
    tokens = [w for w in query.split() if len(w) > 1]
    if len(tokens) <= MAX_SIMPLE_TOKENS:
        return QueryKind.simple
    return QueryKind.complex
