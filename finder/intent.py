"""Turn a free-text query into a `SearchIntent`.

The model is asked for a single JSON object. Its reply is parsed leniently
(prose around the object, trailing commas, truncated output); when nothing can
be recovered the intent is built from keyword heuristics instead. Dietary
post-processing runs on every intent, whichever way it was produced.
"""

import json
import logging
import re
from typing import Any

from finder.completion import CompletionClient, CompletionOptions
from finder.errors import IntentParseError, ModelError, ModelUnavailable
from finder.models import DietaryTag, SearchIntent
from finder.prompts import IntentPrompt
from finder.terms import (
    dedupe,
    detect_cuisines,
    excluded_cuisines,
    mentions,
    negative_terms,
)


logger = logging.getLogger(__name__)


DEFAULT_INGREDIENT = "chicken"

KOSHER_FORBIDDEN = (
    "pork",
    "bacon",
    "ham",
    "shellfish",
    "seafood",
    "shrimp",
    "crab",
    "lobster",
    "clam",
    "oyster",
    "mussel",
    "scallop",
)

MEAT_TERMS = (
    "meat",
    "beef",
    "chicken",
    "lamb",
    "turkey",
    "veal",
    "brisket",
    "steak",
    "duck",
)

DAIRY_TERMS = (
    "milk",
    "cheese",
    "cream",
    "butter",
    "yogurt",
    "dairy",
    "parmesan",
    "mozzarella",
)

CHALLAH_SPELLINGS = ("challah", "challa", "hallah", "chala")
MATZO_SPELLINGS = ("matzo", "matzah", "matza", "matzoh")

DIETARY_KEYWORDS = {
    "kosher": "kosher",
    "vegan": "vegan",
    "vegetarian": "vegetarian",
    "halal": "halal",
    "gluten-free": "gluten-free",
    "gluten free": "gluten-free",
    "dairy-free": "dairy-free",
    "dairy free": "dairy-free",
    "lactose-free": "dairy-free",
    "nut-free": "nut-free",
    "low carb": "low-carb",
    "keto": "keto",
    "paleo": "paleo",
}

# "no meat" means a diet, not just one excluded ingredient
EXCLUSION_DIETS = {
    "meat": "vegetarian",
    "dairy": "dairy-free",
    "milk": "dairy-free",
    "gluten": "gluten-free",
}

COMMON_DISHES = (
    "pasta",
    "pizza",
    "soup",
    "salad",
    "sandwich",
    "bread",
    "cake",
    "pie",
    "cookie",
    "stew",
    "curry",
    "burger",
    "taco",
    "burrito",
    "sushi",
    "rice",
    "noodle",
)

COMMON_INGREDIENTS = (
    "cheese",
    "chicken",
    "beef",
    "pork",
    "fish",
    "shrimp",
    "tomato",
    "garlic",
    "onion",
    "potato",
    "carrot",
    "broccoli",
    "spinach",
    "mushroom",
)

DISH_CUISINES = {
    "pizza": "Italian",
    "pasta": "Italian",
    "sushi": "Japanese",
    "curry": "Indian",
    "taco": "Mexican",
    "burrito": "Mexican",
}

LIST_FIELDS = {
    "mainDish": "main_dish",
    "cuisines": "cuisines",
    "includeIngredients": "include_ingredients",
    "excludeIngredients": "exclude_ingredients",
    "cookingMethods": "cooking_methods",
}

TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def find_json_object(text: str) -> str | None:
    """The first `{...}` span of `text`, braces inside strings ignored.

    An object the model never closed is returned up to the end of the text.
    """
    start = text.find("{")
    if start < 0:
        return None
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return text[start:]


def sanitize_json(raw: str) -> str:
    return TRAILING_COMMA_RE.sub(r"\1", raw.strip())


def recover_fields(raw: str) -> dict[str, Any] | None:
    """Salvage the array fields of a malformed object by pattern."""
    data: dict[str, Any] = {}
    for key in (*LIST_FIELDS, "dietaryPreferences"):
        m = re.search(rf'"{key}"\s*:\s*\[(.*?)\]', raw, re.S)
        if m:
            data[key] = re.findall(r'"([^"]*)"', m.group(1))
    m = re.search(r'"explanation"\s*:\s*"([^"]*)"', raw)
    if m:
        data["explanation"] = m.group(1)
    if not any(data.get(k) for k in (*LIST_FIELDS, "dietaryPreferences")):
        return None
    return data


def as_list(value: Any) -> list[str]:
    match value:
        case None:
            return []
        case str():
            return [value.strip()] if value.strip() else []
        case list() | tuple():
            return dedupe([str(v) for v in value if v is not None and str(v).strip()])
        case _:
            raise IntentParseError(f"Expected a list, got {type(value).__name__}")


def as_dietary(value: Any) -> list[DietaryTag]:
    match value:
        case None:
            return []
        case dict():
            return [DietaryTag(str(k), bool(v)) for k, v in value.items()]
        case str():
            return [DietaryTag(value)] if value.strip() else []
        case list() | tuple():
            tags = []
            for v in value:
                if isinstance(v, dict) and "name" in v:
                    tags.append(DietaryTag(str(v["name"]), bool(v.get("value", True))))
                elif isinstance(v, str) and v.strip():
                    tags.append(DietaryTag(v))
            return tags
        case _:
            raise IntentParseError(
                f"Expected dietary preferences, got {type(value).__name__}"
            )


def normalize_cuisine(cuisine: str) -> str:
    if cuisine.strip().lower() == "india":
        return "Indian"
    return cuisine.strip()


def intent_from_dict(data: dict[str, Any]) -> SearchIntent:
    fields = {attr: as_list(data.get(key)) for key, attr in LIST_FIELDS.items()}
    fields["cuisines"] = dedupe([normalize_cuisine(c) for c in fields["cuisines"]])
    explanation = data.get("explanation") or ""
    return SearchIntent(
        **fields,
        dietary_preferences=as_dietary(data.get("dietaryPreferences")),
        explanation=str(explanation).strip(),
        source="model",
    )


def parse_intent(text: str) -> SearchIntent:
    raw = find_json_object(text)
    if raw is None:
        raise IntentParseError("No JSON object found in model response")

    try:
        data = json.loads(sanitize_json(raw))
    except json.JSONDecodeError as e:
        data = recover_fields(raw)
        if data is None:
            raise IntentParseError(f"Malformed JSON in model response: {e}") from e
        logger.info("Recovered partial intent from malformed JSON")

    if not isinstance(data, dict):
        raise IntentParseError(
            f"Expected a JSON object, got {type(data).__name__}"
        )
    return intent_from_dict(data)


def add_diet(intent: SearchIntent, name: str) -> None:
    if not intent.has_diet(name):
        intent.dietary_preferences = [
            t for t in intent.dietary_preferences if t.name != name
        ]
        intent.dietary_preferences.append(DietaryTag(name))


def mentions_any(text: str, terms: tuple[str, ...]) -> bool:
    return any(mentions(text, t) for t in terms)


def remove_conflicts(intent: SearchIntent) -> SearchIntent:
    """Drop included ingredients that are also excluded; exclusion wins."""
    excluded = {t.lower() for t in intent.exclude_ingredients}
    intent.include_ingredients = dedupe(
        [t for t in intent.include_ingredients if t.lower() not in excluded]
    )
    intent.exclude_ingredients = dedupe(intent.exclude_ingredients)
    return intent


def heuristic_intent(
    query: str, *, default_ingredient: str | None = DEFAULT_INGREDIENT
) -> SearchIntent:
    lowered = query.lower()
    intent = SearchIntent(
        explanation="Found recipes based on your preferences",
        source="heuristic",
    )

    for keyword, diet in DIETARY_KEYWORDS.items():
        if keyword in lowered:
            add_diet(intent, diet)

    kosher = "kosher" in lowered
    if kosher:
        intent.exclude_ingredients.extend(KOSHER_FORBIDDEN)

    if mentions_any(lowered, CHALLAH_SPELLINGS):
        intent.main_dish.append("challah")
    if mentions_any(lowered, MATZO_SPELLINGS):
        intent.main_dish.append("matzo")
        intent.include_ingredients.append("matzo meal")
    if mentions(lowered, "brisket"):
        intent.main_dish.append("brisket")
        intent.include_ingredients.append("brisket")

    intent.exclude_ingredients.extend(negative_terms(query))

    intent.cuisines = detect_cuisines(query, excluded_cuisines(query))

    for dish in COMMON_DISHES:
        if re.search(rf"\b{dish}s?\b", lowered) and dish not in intent.main_dish:
            intent.main_dish.append(dish)
    if not intent.cuisines:
        for dish in intent.main_dish:
            if dish in DISH_CUISINES:
                intent.cuisines.append(DISH_CUISINES[dish])
                break

    excluded = {t.lower() for t in intent.exclude_ingredients}
    for ingredient in COMMON_INGREDIENTS:
        if ingredient in excluded:
            continue
        if re.search(rf"\b{ingredient}(?:e?s)?\b", lowered):
            intent.include_ingredients.append(ingredient)

    if not intent.include_ingredients and not kosher and default_ingredient:
        logger.warning(
            "No ingredient found in %r, defaulting to %r", query, default_ingredient
        )
        intent.include_ingredients.append(default_ingredient)

    return remove_conflicts(intent)


def fill_missed_cuisines(intent: SearchIntent, query: str) -> SearchIntent:
    excluded = excluded_cuisines(query)
    if not intent.cuisines:
        found = detect_cuisines(query, excluded)
        if found:
            logger.info("Identified missed cuisines %s from query", found)
        intent.cuisines = found
    intent.cuisines = [c for c in intent.cuisines if c not in excluded]
    return intent


def process_dietary(intent: SearchIntent, query: str) -> SearchIntent:
    """Apply dietary rules the model may have missed.

    Kosher requests always carry the kosher tag, never include pork or
    shellfish, and never mix meat and dairy: when both are asked for, the
    dairy terms move to the excluded ingredients.
    """
    lowered = query.lower()

    for keyword, diet in DIETARY_KEYWORDS.items():
        if keyword in lowered and not intent.has_diet(diet):
            logger.info("Identified missed dietary preference %s from query", diet)
            add_diet(intent, diet)

    for term in negative_terms(query):
        if term in EXCLUSION_DIETS:
            add_diet(intent, EXCLUSION_DIETS[term])
        else:
            intent.exclude_ingredients.append(term)

    if mentions_any(lowered, CHALLAH_SPELLINGS):
        for dish in ("challah", "bread"):
            if dish not in (d.lower() for d in intent.main_dish):
                intent.main_dish.append(dish)

    if "kosher" in lowered:
        add_diet(intent, "kosher")
        intent.include_ingredients = [
            t
            for t in intent.include_ingredients
            if not mentions_any(t, KOSHER_FORBIDDEN)
        ]
        intent.exclude_ingredients.extend(KOSHER_FORBIDDEN)

        has_meat = any(mentions_any(t, MEAT_TERMS) for t in intent.include_ingredients)
        dairy = [t for t in intent.include_ingredients if mentions_any(t, DAIRY_TERMS)]
        if has_meat and dairy:
            logger.info("Kosher meal with meat, moving dairy %s to excluded", dairy)
            intent.include_ingredients = [
                t for t in intent.include_ingredients if t not in dairy
            ]
            intent.exclude_ingredients.extend(dairy)

        if "kosher" not in intent.explanation.lower():
            intent.explanation = (
                f"Kosher: {intent.explanation}"
                if intent.explanation
                else "Kosher recipes matching your request"
            )

    return remove_conflicts(intent)


class IntentExtractor:
    def __init__(
        self,
        client: CompletionClient,
        *,
        default_ingredient: str | None = DEFAULT_INGREDIENT,
        options: CompletionOptions | None = None,
    ) -> None:
        self.client = client
        self.default_ingredient = default_ingredient
        # low temperature keeps the JSON shape stable
        self.options = (
            CompletionOptions(temperature=0.1, max_tokens=500, top_p=0.9)
            if options is None
            else options
        )

    async def extract(self, query: str) -> SearchIntent:
        """Ask the model what `query` means.

        Raises a `ModelError` when the model cannot be reached or fails; a reply
        that cannot be parsed is not an error and yields a heuristic intent.
        """
        if not await self.client.health_check():
            raise ModelUnavailable("Completion service health check failed")

        completion = await self.client.generate_completion(
            str(IntentPrompt(query)), self.options
        )
        if not completion.ok:
            raise completion.error or ModelError(completion.text)

        try:
            intent = parse_intent(completion.text)
        except IntentParseError as e:
            logger.warning("Could not parse model intent for %r: %s", query, e)
            intent = heuristic_intent(query, default_ingredient=self.default_ingredient)

        intent = fill_missed_cuisines(intent, query)
        return process_dietary(intent, query)
