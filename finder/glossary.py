import logging
from typing import Protocol

from finder.errors import RepositoryError
from finder.models import TermType
from finder.terms import candidate_chunks, dedupe


logger = logging.getLogger(__name__)


INCLUDES_DISH = "includes_dish"

KOSHER_FORBIDDEN_CANONICAL = ("pork", "bacon", "ham", "shellfish", "seafood")


class GlossaryStore(Protocol):
    """Read access to the glossary tables. All lookups are case-insensitive."""

    async def standardize(self, term: str) -> str | None:
        ...

    async def lookup(self, term: str) -> tuple[str, TermType] | None:
        ...

    async def variants(self, canonical: str) -> list[str]:
        ...

    async def related_terms(self, canonical: str, relation: str) -> list[str]:
        ...

    async def category_items(self, category: str) -> list[str]:
        ...


class GlossaryMatches:
    def __init__(self) -> None:
        self.ingredients: list[str] = []
        self.cuisines: list[str] = []
        self.dishes: list[str] = []
        # dishes a matched cuisine is known for, strongest first
        self.related_dishes: list[str] = []

    def __bool__(self) -> bool:
        return bool(self.ingredients or self.cuisines or self.dishes)

    def __repr__(self) -> str:
        return (
            f"<GlossaryMatches(ingredients={self.ingredients}, "
            f"cuisines={self.cuisines}, dishes={self.dishes})>"
        )


def extract_candidate_terms(query: str) -> list[str]:
    """Phrases worth looking up in the glossary.

    The whole query, then the chunks between punctuation and connector words
    and the words within them, then every two- and three-word window, so that
    multi-word terms like "bell pepper" or "matzah ball soup" can be found.
    """
    normalized = query.strip().lower()
    if not normalized:
        return []
    chunks = candidate_chunks(normalized)
    terms = [normalized, *chunks]
    terms.extend(w for c in chunks for w in c.split() if len(w) > 2)
    words = normalized.split()
    for i in range(len(words) - 1):
        terms.append(" ".join(words[i : i + 2]))
        if i < len(words) - 2:
            terms.append(" ".join(words[i : i + 3]))
    return dedupe(terms)


class TermGlossary:
    """Synonym, misspelling and category resolution backed by a `GlossaryStore`.

    Store failures are logged and answered as "nothing known" so that a broken
    glossary never breaks a search.
    """

    def __init__(self, store: GlossaryStore) -> None:
        self.store = store

    async def standardize(self, term: str) -> str | None:
        try:
            return await self.store.standardize(term.strip())
        except RepositoryError as e:
            logger.error("Error standardizing term %r: %s", term, e)
            return None

    async def variants_of(self, canonical: str) -> list[str]:
        try:
            return await self.store.variants(canonical)
        except RepositoryError as e:
            logger.error("Error getting variants of %r: %s", canonical, e)
            return []

    async def related_dishes(self, cuisine: str) -> list[str]:
        try:
            return await self.store.related_terms(cuisine, INCLUDES_DISH)
        except RepositoryError as e:
            logger.error("Error getting dishes related to %r: %s", cuisine, e)
            return []

    async def expand(self, term: str) -> list[str]:
        canonical = await self.standardize(term) or term.strip()
        variants = await self.variants_of(canonical)
        return dedupe([canonical, *variants, term])

    async def resolve_category(self, category: str) -> list[str]:
        """"vegetables" -> ["carrot", "broccoli", ...]; empty when not a category."""
        try:
            return await self.store.category_items(category.strip())
        except RepositoryError as e:
            logger.error("Error resolving category %r: %s", category, e)
            return []

    async def process_query_terms(
        self, query: str, *, kosher: bool = False
    ) -> GlossaryMatches:
        matches = GlossaryMatches()
        for candidate in extract_candidate_terms(query):
            try:
                found = await self.store.lookup(candidate)
            except RepositoryError as e:
                logger.error("Error looking up %r: %s", candidate, e)
                continue
            if found is None:
                continue

            canonical, term_type = found
            match term_type:
                case TermType.ingredient:
                    matches.ingredients.append(canonical)
                case TermType.cuisine:
                    matches.cuisines.append(canonical)
                    matches.related_dishes.extend(await self.related_dishes(canonical))
                case TermType.dish:
                    matches.dishes.append(canonical)

        if kosher or "Jewish" in matches.cuisines:
            matches.ingredients = [
                i
                for i in matches.ingredients
                if i.lower() not in KOSHER_FORBIDDEN_CANONICAL
            ]
        matches.ingredients = dedupe(matches.ingredients)
        matches.cuisines = dedupe(matches.cuisines)
        matches.dishes = dedupe(matches.dishes)
        matches.related_dishes = dedupe(matches.related_dishes)
        return matches
