import logging

from finder.errors import RepositoryError
from finder.models import RecipeSummary
from finder.predicates import (
    RESULT_LIMIT,
    AnyField,
    CuisineAny,
    CuisineNone,
    IngredientNone,
    IngredientOrTextAny,
    RepositoryFilter,
)
from finder.repository import RecipeRepository
from finder.terms import detect_cuisines, excluded_cuisines, split_terms


logger = logging.getLogger(__name__)


MIN_PROTEIN_RESULTS = 5


def merge_unique(
    batches: list[list[RecipeSummary]], limit: int = RESULT_LIMIT
) -> list[RecipeSummary]:
    seen: set[int] = set()
    merged: list[RecipeSummary] = []
    for batch in batches:
        for recipe in batch:
            if recipe.id not in seen:
                seen.add(recipe.id)
                merged.append(recipe)
    return merged[:limit]


class HeuristicSearch:
    """Keyword search used whenever the model is skipped or gave nothing.

    `find` lets a failing repository raise `RepositoryError`; `search` never
    raises, any failure is logged and yields no recipes.
    """

    def __init__(
        self, repository: RecipeRepository, *, limit: int = RESULT_LIMIT
    ) -> None:
        self.repository = repository
        self.limit = limit

    def build_filter(self, query: str) -> RepositoryFilter:
        terms = split_terms(query)
        excluded = excluded_cuisines(query)
        cuisines = detect_cuisines(query, excluded)

        predicates = RepositoryFilter(limit=self.limit)
        predicates.add(CuisineNone(excluded))
        for term in terms.negative:
            predicates.add(IngredientNone([term]))
        predicates.add(CuisineAny(cuisines))

        if terms.positive:
            predicates.add(IngredientOrTextAny(terms.positive))
            predicates.rank_terms = terms.positive
        elif query.strip() and not cuisines and not terms.negative:
            predicates.add(AnyField([query.strip()]))
            predicates.rank_terms = [query.strip()]
        return predicates

    async def find(self, query: str) -> list[RecipeSummary]:
        terms = split_terms(query)
        if terms.is_protein_query:
            return await self.protein_search(terms.proteins)
        return await self.repository.find_recipes_by_filter(self.build_filter(query))

    async def search(self, query: str) -> list[RecipeSummary]:
        try:
            return await self.find(query)
        except Exception as e:
            logger.error("Heuristic search failed for %r: %r", query, e)
            return []

    async def protein_search(self, proteins: list[str]) -> list[RecipeSummary]:
        """Recipes naming the protein in both ingredients and title/description.

        Falls back to ingredient-only matches when that is too strict, and to
        one search per protein when the combined search fails.
        """
        try:
            recipes = await self.repository.find_recipes_by_protein_terms(
                proteins, True
            )
            if len(recipes) < MIN_PROTEIN_RESULTS:
                logger.info(
                    "Only %d strict matches for %s, relaxing to ingredients",
                    len(recipes),
                    proteins,
                )
                relaxed = await self.repository.find_recipes_by_protein_terms(
                    proteins, False
                )
                recipes = merge_unique([recipes, relaxed], self.limit)
            return recipes[: self.limit]
        except RepositoryError as e:
            if len(proteins) < 2:
                raise
            logger.warning(
                "Combined protein search failed (%s), searching %s one by one",
                e,
                proteins,
            )

        batches = []
        for protein in proteins:
            try:
                batches.append(
                    await self.repository.find_recipes_by_protein_terms(
                        [protein], True
                    )
                )
            except RepositoryError as e:
                logger.error("Protein search for %r failed: %s", protein, e)
        return merge_unique(batches, self.limit)
