import logging
from typing import Any, Protocol

from databases import Database

from finder.errors import RepositoryError
from finder.models import RecipeSummary, TermType
from finder.predicates import (
    RESULT_LIMIT,
    IngredientAny,
    RepositoryFilter,
    TextAny,
)


logger = logging.getLogger(__name__)


STANDARDIZE_TERM = """
SELECT t.term FROM glossary_terms t
LEFT JOIN glossary_variants v ON v.term_id = t.id
WHERE LOWER(t.term) = LOWER(:term) OR LOWER(v.variant) = LOWER(:term)
ORDER BY CASE WHEN LOWER(t.term) = LOWER(:term) THEN 0 ELSE 1 END, t.id
LIMIT 1
"""

LOOKUP_TERM = """
SELECT t.term, t.type FROM glossary_terms t
LEFT JOIN glossary_variants v ON v.term_id = t.id
WHERE LOWER(t.term) = LOWER(:term) OR LOWER(v.variant) = LOWER(:term)
ORDER BY CASE WHEN LOWER(t.term) = LOWER(:term) THEN 0 ELSE 1 END, t.id
LIMIT 1
"""

LIST_VARIANTS = """
SELECT v.variant FROM glossary_variants v
JOIN glossary_terms t ON v.term_id = t.id
WHERE LOWER(t.term) = LOWER(:term)
ORDER BY v.id
"""

LIST_RELATED_TERMS = """
SELECT r.related_term FROM glossary_related_terms r
JOIN glossary_terms t ON r.term_id = t.id
WHERE LOWER(t.term) = LOWER(:term) AND r.relation_type = :relation
ORDER BY r.strength DESC
"""

LIST_CATEGORY_ITEMS = """
SELECT item_name FROM glossary
WHERE LOWER(category_name) = LOWER(:category)
ORDER BY item_name
"""


def to_summary(row: Any) -> RecipeSummary:
    return RecipeSummary(
        id=row["id"],
        title=row["title"],
        description=row["description"] or "",
        cuisine=row["cuisine"] or "",
        category=row["category"] or "",
    )


class RecipeRepository(Protocol):
    async def find_recipes_by_filter(
        self, filter: RepositoryFilter
    ) -> list[RecipeSummary]:
        ...

    async def find_recipes_by_protein_terms(
        self, terms: list[str], title_desc_required: bool
    ) -> list[RecipeSummary]:
        ...


class RecipesRepository:
    """Recipe search over the relational store."""

    def __init__(self, db: Database, *, limit: int = RESULT_LIMIT) -> None:
        self.db = db
        self.limit = limit

    async def fetch_all(self, query: str, values: dict[str, Any]) -> list[Any]:
        try:
            return await self.db.fetch_all(query, values=values)  # pyright: ignore[reportUnknownMemberType]
        except Exception as e:
            raise RepositoryError(f"{type(e).__name__}: {e}") from e

    async def find_recipes_by_filter(
        self, filter: RepositoryFilter
    ) -> list[RecipeSummary]:
        query, values = filter.to_sql()
        logger.debug("Recipe query: %s %s", query, values)
        rows = await self.fetch_all(query, values)
        return [to_summary(r) for r in rows]

    async def find_recipes_by_protein_terms(
        self, terms: list[str], title_desc_required: bool
    ) -> list[RecipeSummary]:
        conditions = [IngredientAny(terms)]
        if title_desc_required:
            conditions.append(TextAny(terms))
        return await self.find_recipes_by_filter(
            RepositoryFilter(conditions, rank_terms=terms, limit=self.limit)
        )


class GlossaryRepository:
    """`GlossaryStore` over the glossary tables."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def fetch_all(self, query: str, values: dict[str, Any]) -> list[Any]:
        try:
            return await self.db.fetch_all(query, values=values)  # pyright: ignore[reportUnknownMemberType]
        except Exception as e:
            raise RepositoryError(f"{type(e).__name__}: {e}") from e

    async def standardize(self, term: str) -> str | None:
        rows = await self.fetch_all(STANDARDIZE_TERM, {"term": term})
        return rows[0]["term"] if rows else None

    async def lookup(self, term: str) -> tuple[str, TermType] | None:
        rows = await self.fetch_all(LOOKUP_TERM, {"term": term})
        if not rows:
            return None
        try:
            return rows[0]["term"], TermType(rows[0]["type"])
        except ValueError:
            logger.warning("Unknown glossary term type %r", rows[0]["type"])
            return None

    async def variants(self, canonical: str) -> list[str]:
        rows = await self.fetch_all(LIST_VARIANTS, {"term": canonical})
        return [r["variant"] for r in rows]

    async def related_terms(self, canonical: str, relation: str) -> list[str]:
        rows = await self.fetch_all(
            LIST_RELATED_TERMS, {"term": canonical, "relation": relation}
        )
        return [r["related_term"] for r in rows]

    async def category_items(self, category: str) -> list[str]:
        rows = await self.fetch_all(LIST_CATEGORY_ITEMS, {"category": category})
        return [r["item_name"] for r in rows]
