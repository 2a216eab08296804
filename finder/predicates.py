"""Typed SQL conditions over the recipe tables.

Conditions accumulate in a `RepositoryFilter`; every literal goes through a
`Binder`, which hands out a fresh `:pN` name per value, so no placeholder is
ever shared between clauses.
"""

import abc
import logging
from typing import Any

from finder.models import SearchIntent
from finder.terms import dedupe, excluded_cuisines


logger = logging.getLogger(__name__)


RESULT_LIMIT = 20
DEFAULT_CUISINE = "Jewish"

DIETARY_EXCLUSIONS = {
    "vegan": ("meat", "chicken", "beef", "pork", "fish"),
    "vegetarian": ("meat", "chicken", "beef"),
    "gluten-free": ("wheat", "flour", "bread"),
    "dairy-free": ("milk", "cheese", "cream", "butter"),
    "lactose": ("milk", "cheese", "cream", "butter"),
    "lactose-free": ("milk", "cheese", "cream", "butter"),
}

SELECT_RECIPES = """
SELECT r.id, r.title, r.description, r.cuisine, c.name AS category
FROM recipes r
LEFT JOIN categories c ON r.category_id = c.id
""".strip()

INGREDIENT_EXISTS = """
EXISTS (
    SELECT 1 FROM recipe_ingredients ri
    JOIN ingredients i ON ri.ingredient_id = i.id
    WHERE ri.recipe_id = r.id AND ({match})
)
""".strip()


class Binder:
    def __init__(self) -> None:
        self.values: dict[str, Any] = {}

    def bind(self, value: Any) -> str:
        name = f"p{len(self.values)}"
        self.values[name] = value
        return f":{name}"


def like(term: str) -> str:
    return f"%{term.strip().lower()}%"


def any_like(column: str, terms: list[str], binder: Binder) -> str:
    return " OR ".join(f"LOWER({column}) LIKE {binder.bind(like(t))}" for t in terms)


class Condition(abc.ABC):
    def __init__(self, terms: list[str]) -> None:
        self.terms = dedupe(terms)

    def __bool__(self) -> bool:
        return bool(self.terms)

    def __repr__(self) -> str:
        return f"<{type(self).__name__}({self.terms})>"

    @abc.abstractmethod
    def to_sql(self, binder: Binder) -> str: ...


class CuisineAny(Condition):
    def to_sql(self, binder: Binder) -> str:
        return f"({any_like('r.cuisine', self.terms, binder)})"


class CuisineNone(Condition):
    def to_sql(self, binder: Binder) -> str:
        return " AND ".join(
            f"LOWER(COALESCE(r.cuisine, '')) NOT LIKE {binder.bind(like(t))}"
            for t in self.terms
        )


class IngredientAny(Condition):
    def to_sql(self, binder: Binder) -> str:
        return INGREDIENT_EXISTS.format(match=any_like("i.name", self.terms, binder))


class IngredientNone(Condition):
    def to_sql(self, binder: Binder) -> str:
        return "NOT " + INGREDIENT_EXISTS.format(
            match=any_like("i.name", self.terms, binder)
        )


class TextAny(Condition):
    def to_sql(self, binder: Binder) -> str:
        return (
            f"({any_like('r.title', self.terms, binder)} "
            f"OR {any_like('r.description', self.terms, binder)})"
        )


class IngredientOrTextAny(Condition):
    def to_sql(self, binder: Binder) -> str:
        return (
            f"({IngredientAny(self.terms).to_sql(binder)} "
            f"OR {TextAny(self.terms).to_sql(binder)})"
        )


class AnyField(Condition):
    """Substring match against cuisine, title, description or an ingredient."""

    def to_sql(self, binder: Binder) -> str:
        return (
            f"({any_like('r.cuisine', self.terms, binder)} "
            f"OR {TextAny(self.terms).to_sql(binder)} "
            f"OR {IngredientAny(self.terms).to_sql(binder)})"
        )


class RepositoryFilter:
    """An AND of conditions, ranked by where `rank_terms` match."""

    def __init__(
        self,
        conditions: list[Condition] | None = None,
        *,
        rank_terms: list[str] | None = None,
        limit: int = RESULT_LIMIT,
    ) -> None:
        self.conditions: list[Condition] = []
        self.rank_terms = [] if rank_terms is None else dedupe(rank_terms)
        self.limit = limit
        for condition in [] if conditions is None else conditions:
            self.add(condition)

    def __repr__(self) -> str:
        return f"<RepositoryFilter({self.conditions}, rank={self.rank_terms})>"

    def __bool__(self) -> bool:
        return bool(self.conditions)

    def add(self, condition: Condition) -> "RepositoryFilter":
        if condition:
            self.conditions.append(condition)
        return self

    def find(self, kind: type[Condition]) -> list[Condition]:
        return [c for c in self.conditions if isinstance(c, kind)]

    def terms_of(self, kind: type[Condition]) -> list[str]:
        return dedupe([t for c in self.find(kind) for t in c.terms])

    def to_sql(self) -> tuple[str, dict[str, Any]]:
        binder = Binder()
        sql = SELECT_RECIPES
        if self.conditions:
            sql += "\nWHERE " + "\nAND ".join(
                c.to_sql(binder) for c in self.conditions
            )

        order = "r.id DESC"
        if self.rank_terms:
            # title hits, then description hits, then the rest; newest first
            title = any_like("r.title", self.rank_terms, binder)
            description = any_like("r.description", self.rank_terms, binder)
            order = (
                f"CASE WHEN {title} THEN 1 WHEN {description} THEN 2 ELSE 3 END, "
                + order
            )
        sql += f"\nORDER BY {order}\nLIMIT {int(self.limit)}"
        return sql, binder.values


class PredicateBuilder:
    def __init__(
        self,
        *,
        default_cuisine: str | None = DEFAULT_CUISINE,
        limit: int = RESULT_LIMIT,
    ) -> None:
        self.default_cuisine = default_cuisine
        self.limit = limit

    def build(self, intent: SearchIntent, raw_query: str = "") -> RepositoryFilter:
        """Predicates for `intent`, in ranking-relevant order.

        Cuisine, then wanted ingredients, then one exclusion per unwanted
        ingredient, then dietary exclusions, then free text.
        """
        predicates = RepositoryFilter(limit=self.limit)

        excluded = excluded_cuisines(raw_query)
        cuisines = [c for c in intent.cuisines if c not in excluded]
        if cuisines:
            predicates.add(CuisineAny(cuisines))
        elif self.default_cuisine:
            logger.warning(
                "No cuisine detected in %r, defaulting to %s",
                raw_query,
                self.default_cuisine,
            )
            predicates.add(CuisineAny([self.default_cuisine]))
        predicates.add(CuisineNone(excluded))

        predicates.add(IngredientAny(intent.include_ingredients))

        exclude = list(intent.exclude_ingredients)
        for tag in intent.dietary_preferences:
            if tag.value and tag.name in DIETARY_EXCLUSIONS:
                exclude.extend(DIETARY_EXCLUSIONS[tag.name])
        for term in dedupe(exclude):
            predicates.add(IngredientNone([term]))

        text_terms: list[str] = []
        if intent.main_dish or intent.cooking_methods:
            text_terms = [
                *intent.main_dish,
                *intent.cooking_methods,
                *[t for t in intent.include_ingredients if " " not in t.strip()],
            ]
            predicates.add(TextAny(text_terms))

        predicates.rank_terms = dedupe(text_terms) or (
            [raw_query.strip()] if raw_query.strip() else []
        )
        return predicates
