import pytest

from finder.errors import IntentParseError, ModelTimeout, ModelUnavailable
from finder.intent import (
    KOSHER_FORBIDDEN,
    IntentExtractor,
    find_json_object,
    heuristic_intent,
    parse_intent,
    process_dietary,
)
from finder.models import DietaryTag, SearchIntent
from tests.conftest import INTENT_JSON, FakeCompletionClient


@pytest.mark.parametrize(
    "text,expected",
    (
        ('Sure! {"a": {"b": 1}} hope that helps', '{"a": {"b": 1}}'),
        ('{"x": "}"} {"y": 2}', '{"x": "}"}'),
        ('{"x": "say \\"hi\\" {"}', '{"x": "say \\"hi\\" {"}'),
        ('{"x": [1, 2', '{"x": [1, 2'),
        ("no braces at all", None),
    ),
)
def test_find_json_object(text: str, expected: str | None) -> None:
    assert find_json_object(text) == expected


def test_parse_intent_with_prose_around() -> None:
    intent = parse_intent(INTENT_JSON)
    assert intent.main_dish == ["soup"]
    assert intent.include_ingredients == ["chicken"]
    assert intent.exclude_ingredients == ["cheese"]
    assert intent.explanation == "Chicken soup without cheese"
    assert intent.source == "model"


def test_parse_intent_tolerates_trailing_commas_and_shapes() -> None:
    intent = parse_intent(
        '{"mainDish": "stew", "cuisines": ["India",], '
        '"dietaryPreferences": ["Vegan", {"name": "kosher", "value": false}],}'
    )
    assert intent.main_dish == ["stew"]
    assert intent.cuisines == ["Indian"]
    assert intent.include_ingredients == []
    assert intent.dietary_preferences == [
        DietaryTag("vegan"),
        DietaryTag("kosher", False),
    ]
    assert intent.has_diet("vegan")
    assert not intent.has_diet("kosher")


def test_parse_intent_recovers_fields_from_truncated_output() -> None:
    intent = parse_intent('{"mainDish": ["soup"], "includeIngredients": ["leek"], "cuis')
    assert intent.main_dish == ["soup"]
    assert intent.include_ingredients == ["leek"]


@pytest.mark.parametrize(
    "text",
    (
        "I could not understand the query.",
        '{"mainDish": 5}',
        "{not json at all}",
    ),
)
def test_parse_intent_errors(text: str) -> None:
    with pytest.raises(IntentParseError):
        parse_intent(text)


def test_heuristic_intent_for_kosher() -> None:
    intent = heuristic_intent("kosher dinner")
    assert intent.has_diet("kosher")
    assert set(KOSHER_FORBIDDEN) <= set(intent.exclude_ingredients)
    assert {"pork", "shellfish", "seafood", "shrimp", "mussel"} <= set(
        intent.exclude_ingredients
    )
    assert intent.include_ingredients == []
    assert intent.source == "heuristic"


def test_heuristic_intent_defaults_ingredient() -> None:
    assert heuristic_intent("something tasty").include_ingredients == ["chicken"]
    assert heuristic_intent("something tasty", default_ingredient="tofu").include_ingredients == ["tofu"]
    assert heuristic_intent("something tasty", default_ingredient=None).include_ingredients == []


def test_heuristic_intent_keywords() -> None:
    intent = heuristic_intent("I like pasta without cheese")
    assert intent.main_dish == ["pasta"]
    assert intent.cuisines == ["Italian"]
    assert "cheese" in intent.exclude_ingredients
    assert "cheese" not in intent.include_ingredients

    intent = heuristic_intent("matzo ball soup")
    assert intent.main_dish == ["matzo", "soup"]
    assert intent.include_ingredients == ["matzo meal"]

    intent = heuristic_intent("brisket with potatoes")
    assert intent.main_dish == ["brisket"]
    assert intent.include_ingredients == ["brisket", "potato"]


def test_heuristic_intent_respects_excluded_cuisines() -> None:
    intent = heuristic_intent("mexican food but no italian")
    assert intent.cuisines == ["Mexican"]


def test_kosher_moves_dairy_out_when_meat_is_included() -> None:
    intent = SearchIntent(
        include_ingredients=["beef", "cheese", "pork belly"],
        exclude_ingredients=["shrimp"],
    )
    intent = process_dietary(intent, "kosher beef with cheese")
    assert intent.has_diet("kosher")
    assert intent.include_ingredients == ["beef"]
    assert "cheese" in intent.exclude_ingredients
    assert {
        "pork",
        "shellfish",
        "seafood",
        "shrimp",
        "crab",
        "lobster",
        "clam",
        "oyster",
        "mussel",
    } <= set(intent.exclude_ingredients)
    assert intent.exclude_ingredients.count("shrimp") == 1
    assert intent.explanation.startswith("Kosher")


def test_kosher_keeps_dairy_without_meat() -> None:
    intent = process_dietary(
        SearchIntent(include_ingredients=["cheese"], explanation="Cheesy bakes"),
        "kosher cheese bake",
    )
    assert intent.include_ingredients == ["cheese"]
    assert intent.explanation == "Kosher: Cheesy bakes"


def test_process_dietary_finds_missed_preferences() -> None:
    intent = process_dietary(SearchIntent(), "gluten-free pasta with no meat")
    assert intent.has_diet("gluten-free")
    assert intent.has_diet("vegetarian")
    assert not intent.has_diet("kosher")

    intent = process_dietary(SearchIntent(), "soup without mushrooms")
    assert intent.exclude_ingredients == ["mushrooms"]


def test_process_dietary_pairs_challah_with_bread() -> None:
    intent = process_dietary(SearchIntent(), "a nice challa for shabbat")
    assert intent.main_dish == ["challah", "bread"]


def test_process_dietary_never_includes_excluded() -> None:
    intent = SearchIntent(
        include_ingredients=["cheese", "tomato"], exclude_ingredients=["Cheese"]
    )
    intent = process_dietary(intent, "tomato and cheese")
    assert intent.include_ingredients == ["tomato"]


@pytest.mark.asyncio
async def test_extract_parses_model_output() -> None:
    client = FakeCompletionClient()
    intent = await IntentExtractor(client).extract("chicken soup but no cheese")
    assert intent.source == "model"
    assert intent.include_ingredients == ["chicken"]
    assert intent.exclude_ingredients == ["cheese"]
    assert client.health_calls == 1
    assert "chicken soup but no cheese" in client.prompts[0]


@pytest.mark.asyncio
async def test_extract_falls_back_to_heuristics_on_bad_output() -> None:
    client = FakeCompletionClient(responses=["Sorry, I can't help with that."])
    intent = await IntentExtractor(client).extract("kosher brisket but not pork")
    assert intent.source == "heuristic"
    assert intent.has_diet("kosher")
    assert "brisket" in intent.include_ingredients
    assert "pork" in intent.exclude_ingredients


@pytest.mark.asyncio
async def test_extract_raises_when_model_is_down() -> None:
    client = FakeCompletionClient(healthy=False)
    with pytest.raises(ModelUnavailable):
        await IntentExtractor(client).extract("chicken but not cheese")
    assert client.generate_calls == 0

    client = FakeCompletionClient(error=ModelTimeout("timed out"))
    with pytest.raises(ModelTimeout):
        await IntentExtractor(client).extract("chicken but not cheese")
