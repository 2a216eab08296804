import pytest

from finder.heuristic import HeuristicSearch, merge_unique
from finder.predicates import (
    AnyField,
    CuisineAny,
    CuisineNone,
    IngredientNone,
    IngredientOrTextAny,
)
from tests.conftest import FakeRepository, recipe


def test_merge_unique_dedupes_and_caps() -> None:
    a = [recipe(1, "A"), recipe(2, "B")]
    b = [recipe(2, "B"), recipe(3, "C")]
    assert [r.id for r in merge_unique([a, b])] == [1, 2, 3]
    assert [r.id for r in merge_unique([a, b], limit=2)] == [1, 2]


def test_filter_for_wanted_and_unwanted_terms() -> None:
    predicates = HeuristicSearch(FakeRepository()).build_filter(
        "I like pasta but not cheese"
    )
    assert [type(c) for c in predicates.conditions] == [IngredientNone, IngredientOrTextAny]
    assert predicates.terms_of(IngredientNone) == ["cheese"]
    assert predicates.terms_of(IngredientOrTextAny) == ["pasta"]
    assert predicates.rank_terms == ["pasta"]


def test_filter_with_cuisines() -> None:
    predicates = HeuristicSearch(FakeRepository()).build_filter(
        "thai curry, no italian"
    )
    assert predicates.terms_of(CuisineNone) == ["Italian"]
    assert predicates.terms_of(CuisineAny) == ["Thai"]
    assert predicates.terms_of(IngredientOrTextAny) == ["curry"]


def test_filter_without_positive_terms_matches_whole_query() -> None:
    predicates = HeuristicSearch(FakeRepository()).build_filter("the")
    assert predicates.terms_of(AnyField) == ["the"]


def test_filter_for_empty_query_has_no_conditions() -> None:
    assert not HeuristicSearch(FakeRepository()).build_filter("  ")


@pytest.mark.asyncio
async def test_protein_search_strict_first() -> None:
    strict = [recipe(i, f"Chicken {i}") for i in range(1, 7)]
    repository = FakeRepository(protein_results={"chicken": strict})
    recipes = await HeuristicSearch(repository).search("chicken recipe")
    assert len(recipes) == 6
    assert repository.protein_calls == [(["chicken"], True)]
    assert repository.filters == []


@pytest.mark.asyncio
async def test_protein_search_relaxes_when_too_few() -> None:
    class Relaxing(FakeRepository):
        async def find_recipes_by_protein_terms(self, terms, title_desc_required):
            self.protein_calls.append((terms, title_desc_required))
            if title_desc_required:
                return [recipe(1, "Beef Stew")]
            return [recipe(1, "Beef Stew"), recipe(2, "Cottage Pie")]

    repository = Relaxing()
    recipes = await HeuristicSearch(repository).search("beef")
    assert [r.id for r in recipes] == [1, 2]
    assert repository.protein_calls == [(["beef"], True), (["beef"], False)]


@pytest.mark.asyncio
async def test_combined_protein_failure_unions_single_searches() -> None:
    meat = [recipe(i, f"Meat {i}") for i in range(1, 15)]
    chicken = [recipe(i, f"Chicken {i}") for i in range(10, 25)]
    repository = FakeRepository(
        protein_results={"meat": meat, "chicken": chicken},
        fail_combined_proteins=True,
    )
    recipes = await HeuristicSearch(repository).search("meat and chicken dishes")
    assert [r.id for r in recipes] == list(range(1, 21))
    assert (["meat"], True) in repository.protein_calls
    assert (["chicken"], True) in repository.protein_calls


@pytest.mark.asyncio
async def test_search_never_raises() -> None:
    repository = FakeRepository(fail=True)
    assert await HeuristicSearch(repository).search("pasta with peas") == []
    assert await HeuristicSearch(repository).search("chicken") == []
