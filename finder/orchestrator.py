"""The search entry point.

A search is a short list of strategies tried in order until one returns
recipes. Which list is used depends on the query (simple queries never reach
the model) and on the breaker (an unreliable model is skipped). Every strategy
yields the same `StrategyOutcome`, so the loop in `_run` is the only place
where tiers cascade.
"""

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, TypeAlias

from finder.breaker import AvailabilityBreaker
from finder.cache import SWEEP_INTERVAL, ResultCache
from finder.classifier import classify
from finder.completion import CompletionClient, CompletionOptions
from finder.errors import FinderError
from finder.glossary import TermGlossary
from finder.heuristic import HeuristicSearch
from finder.intent import DEFAULT_INGREDIENT, KOSHER_FORBIDDEN, IntentExtractor
from finder.models import (
    QueryKind,
    RecipeSummary,
    SearchIntent,
    SearchMethod,
    SearchResult,
)
from finder.predicates import (
    DEFAULT_CUISINE,
    RESULT_LIMIT,
    CuisineAny,
    CuisineNone,
    IngredientAny,
    IngredientNone,
    PredicateBuilder,
    RepositoryFilter,
    TextAny,
)
from finder.prompts import VibePrompt
from finder.repository import RecipeRepository
from finder.terms import dedupe, excluded_cuisines, split_terms


logger = logging.getLogger(__name__)


DEFAULT_VIBE = "Yummy! Here are some recipes you might enjoy!"

VIBE_OPTIONS = CompletionOptions(temperature=0.8, max_tokens=60, top_p=0.9)


class StrategyOutcome:
    def __init__(
        self,
        recipes: list[RecipeSummary] | None = None,
        *,
        method: SearchMethod = SearchMethod.fallback,
        error: Exception | None = None,
        intent: SearchIntent | None = None,
        explanation: str = "",
    ) -> None:
        self.recipes = [] if recipes is None else recipes
        self.method = method
        self.error = error
        self.intent = intent
        self.explanation = explanation

    def __repr__(self) -> str:
        return (
            f"<StrategyOutcome(method={self.method.value}, "
            f"n={len(self.recipes)}, error={self.error!r})>"
        )

    def to_result(self) -> SearchResult:
        return SearchResult(
            self.recipes,
            method=self.method,
            explanation=self.explanation,
            intent=self.intent,
        )


Strategy: TypeAlias = Callable[[str], Awaitable[StrategyOutcome]]


class SearchOrchestrator:
    def __init__(
        self,
        *,
        repository: RecipeRepository,
        glossary: TermGlossary,
        client: CompletionClient,
        breaker: AvailabilityBreaker | None = None,
        cache: ResultCache | None = None,
        builder: PredicateBuilder | None = None,
        extractor: IntentExtractor | None = None,
        heuristic: HeuristicSearch | None = None,
        limit: int = RESULT_LIMIT,
        default_cuisine: str | None = DEFAULT_CUISINE,
        default_ingredient: str | None = DEFAULT_INGREDIENT,
        sweep_interval: float = SWEEP_INTERVAL,
    ) -> None:
        self.repository = repository
        self.glossary = glossary
        self.client = client
        self.breaker = AvailabilityBreaker() if breaker is None else breaker
        self.cache = ResultCache() if cache is None else cache
        self.builder = (
            PredicateBuilder(default_cuisine=default_cuisine, limit=limit)
            if builder is None
            else builder
        )
        self.extractor = (
            IntentExtractor(client, default_ingredient=default_ingredient)
            if extractor is None
            else extractor
        )
        self.heuristic = (
            HeuristicSearch(repository, limit=limit) if heuristic is None else heuristic
        )
        self.limit = limit
        self.sweep_interval = sweep_interval
        self._sweeper: asyncio.Task[None] | None = None

    def start(self) -> None:
        """Start sweeping expired cache entries in the background."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(
                self.cache.run_sweeper(self.sweep_interval)
            )

    async def aclose(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweeper
            self._sweeper = None
        await self.client.aclose()

    def plan(self, query: str) -> list[tuple[SearchMethod, Strategy]]:
        if classify(query) == QueryKind.simple:
            return [
                (SearchMethod.glossary, self._glossary_search),
                (SearchMethod.optimized, self._heuristic_search),
            ]
        if not self.breaker.is_available():
            logger.info("Model unavailable, skipping AI search for %r", query)
            return [
                (SearchMethod.glossary, self._glossary_search),
                (SearchMethod.fallback, self._heuristic_search),
            ]
        return [
            (SearchMethod.ai, self._ai_search),
            (SearchMethod.fallback, self._heuristic_search),
        ]

    async def search(self, query: str) -> SearchResult:
        """Recipes for a free-text `query`. Never raises."""
        try:
            entry = self.cache.get_entry(query)
            if entry is not None:
                logger.info("Cache hit for %r", query)
                return SearchResult(
                    entry.results,
                    method=SearchMethod(entry.method),
                    explanation=entry.explanation,
                    intent=entry.intent,
                    cached=True,
                )

            outcome = await self._run(query, self.plan(query))
            # an empty answer is only kept when no tier failed on the way
            if outcome.recipes or outcome.error is None:
                self.cache.put(
                    query,
                    outcome.recipes,
                    outcome.intent,
                    method=outcome.method.value,
                    explanation=outcome.explanation,
                )
            return outcome.to_result()
        except Exception:
            logger.exception("Search failed for %r", query)
            return SearchResult([], method=SearchMethod.fallback)

    async def _run(
        self, query: str, strategies: list[tuple[SearchMethod, Strategy]]
    ) -> StrategyOutcome:
        outcome = StrategyOutcome()
        error: Exception | None = None
        for method, strategy in strategies:
            try:
                outcome = await strategy(query)
            except FinderError as e:
                logger.warning("%s search failed for %r: %s", method.value, query, e)
                outcome = StrategyOutcome(error=e)
            except Exception as e:
                logger.exception("%s search crashed for %r", method.value, query)
                outcome = StrategyOutcome(error=e)
            outcome.method = method
            error = outcome.error or error
            if outcome.recipes:
                logger.info(
                    "%s search found %d recipes for %r",
                    method.value,
                    len(outcome.recipes),
                    query,
                )
                return outcome
            logger.info("%s search found nothing for %r", method.value, query)
        outcome.error = error
        return outcome

    async def _ai_search(self, query: str) -> StrategyOutcome:
        try:
            intent = await self.extractor.extract(query)
        except Exception:
            self.breaker.record_failure()
            raise
        self.breaker.record_success()

        intent = await self._standardize(intent)
        predicates = self.builder.build(intent, query)
        recipes = await self.repository.find_recipes_by_filter(predicates)
        return StrategyOutcome(
            recipes, intent=intent, explanation=intent.explanation
        )

    async def _standardize(self, intent: SearchIntent) -> SearchIntent:
        """Categories become their members; other terms their canonical form."""
        include: list[str] = []
        for term in intent.include_ingredients:
            members = await self.glossary.resolve_category(term)
            if members:
                logger.info("Resolved category %r to %s", term, members)
                include.extend(members)
            else:
                include.append(await self.glossary.standardize(term) or term)

        exclude: list[str] = []
        for term in intent.exclude_ingredients:
            exclude.extend(await self.glossary.resolve_category(term) or [term])

        intent.include_ingredients = dedupe(include)
        intent.exclude_ingredients = dedupe(exclude)
        excluded = {t.lower() for t in intent.exclude_ingredients}
        intent.include_ingredients = [
            t for t in intent.include_ingredients if t.lower() not in excluded
        ]
        return intent

    async def _glossary_search(self, query: str) -> StrategyOutcome:
        lowered = query.lower()
        kosher = "kosher" in lowered
        negatives = split_terms(query).negative
        excluded = excluded_cuisines(query)

        matches = await self.glossary.process_query_terms(query, kosher=kosher)
        unwanted = set(negatives)
        for term in negatives:
            unwanted.add((await self.glossary.standardize(term) or term).lower())
        ingredients = [i for i in matches.ingredients if i.lower() not in unwanted]
        cuisines = [c for c in matches.cuisines if c not in excluded]
        if not (ingredients or cuisines or matches.dishes):
            return StrategyOutcome(explanation="No glossary terms found")

        predicates = RepositoryFilter(limit=self.limit)
        if cuisines:
            expanded: list[str] = []
            for cuisine in cuisines:
                expanded.extend(await self.glossary.expand(cuisine))
            predicates.add(CuisineAny(expanded))
        predicates.add(CuisineNone(excluded))
        for ingredient in ingredients:
            predicates.add(IngredientAny(await self.glossary.expand(ingredient)))
        predicates.add(TextAny(matches.dishes))
        for term in negatives:
            predicates.add(IngredientNone(await self.glossary.expand(term)))
        if kosher or "Jewish" in cuisines:
            for term in KOSHER_FORBIDDEN:
                predicates.add(IngredientNone([term]))
        predicates.rank_terms = dedupe(
            [*matches.dishes, *matches.related_dishes, *ingredients]
        )

        recipes = await self.repository.find_recipes_by_filter(predicates)
        found = ", ".join([*cuisines, *ingredients, *matches.dishes])
        return StrategyOutcome(recipes, explanation=f"Recipes matching {found}")

    async def _heuristic_search(self, query: str) -> StrategyOutcome:
        recipes = await self.heuristic.find(query)
        return StrategyOutcome(
            recipes, explanation="Recipes matching the words of your search"
        )

    async def positive_vibe(self, query: str, recipes: list[RecipeSummary]) -> str:
        """A short friendly line to show with the results."""
        if not recipes or not self.breaker.state.available:
            return DEFAULT_VIBE
        completion = await self.client.generate_completion(
            str(VibePrompt(query, [r.title for r in recipes])), VIBE_OPTIONS
        )
        if not completion.ok:
            logger.warning("Could not generate message: %s", completion.error)
            return DEFAULT_VIBE
        return completion.text.strip().strip('"') or DEFAULT_VIBE

    async def search_with_vibe(self, query: str) -> tuple[SearchResult, str]:
        result = await self.search(query)
        return result, await self.positive_vibe(query, result.recipes)
