from enum import Enum
from typing import Any


class QueryKind(Enum):
    simple = "simple"
    complex = "complex"


class SearchMethod(Enum):
    ai = "ai"
    glossary = "glossary"
    optimized = "optimized"
    fallback = "fallback"


class TermType(Enum):
    ingredient = "ingredient"
    cuisine = "cuisine"
    dish = "dish"


class DietaryTag:
    def __init__(self, name: str, value: bool = True) -> None:
        self.name = name.strip().lower()
        self.value = value

    def __repr__(self) -> str:
        return f"<DietaryTag({self.name}={self.value})>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DietaryTag):
            return NotImplemented
        return (self.name, self.value) == (other.name, other.value)

    def __hash__(self) -> int:
        return hash((self.name, self.value))


class SearchIntent:
    """What a free-text query asks for. List fields are never `None`."""

    def __init__(
        self,
        *,
        main_dish: list[str] | None = None,
        cuisines: list[str] | None = None,
        include_ingredients: list[str] | None = None,
        exclude_ingredients: list[str] | None = None,
        dietary_preferences: list[DietaryTag] | None = None,
        cooking_methods: list[str] | None = None,
        explanation: str = "",
        source: str = "model",
    ) -> None:
        self.main_dish = [] if main_dish is None else main_dish
        self.cuisines = [] if cuisines is None else cuisines
        self.include_ingredients = (
            [] if include_ingredients is None else include_ingredients
        )
        self.exclude_ingredients = (
            [] if exclude_ingredients is None else exclude_ingredients
        )
        self.dietary_preferences = (
            [] if dietary_preferences is None else dietary_preferences
        )
        self.cooking_methods = [] if cooking_methods is None else cooking_methods
        self.explanation = explanation
        # "model" when parsed from the completion, "heuristic" otherwise
        self.source = source

    def __repr__(self) -> str:
        return f"<SearchIntent({self.to_dict()})>"

    def has_diet(self, name: str) -> bool:
        return any(t.name == name and t.value for t in self.dietary_preferences)

    def is_empty(self) -> bool:
        return not (
            self.main_dish
            or self.cuisines
            or self.include_ingredients
            or self.exclude_ingredients
            or self.dietary_preferences
            or self.cooking_methods
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "mainDish": self.main_dish,
            "cuisines": self.cuisines,
            "includeIngredients": self.include_ingredients,
            "excludeIngredients": self.exclude_ingredients,
            "dietaryPreferences": {t.name: t.value for t in self.dietary_preferences},
            "cookingMethods": self.cooking_methods,
            "explanation": self.explanation,
        }


class GlossaryTerm:
    def __init__(
        self,
        *,
        canonical: str,
        type: TermType,
        variants: set[str] | None = None,
        relations: list[tuple[str, str, float]] | None = None,
    ) -> None:
        self.canonical = canonical
        self.type = type
        self.variants = set() if variants is None else variants
        # (relation type, related canonical term, strength)
        self.relations = [] if relations is None else relations

    def __repr__(self) -> str:
        return f"<GlossaryTerm({self.type.value}:{self.canonical})>"


class RecipeSummary:
    def __init__(
        self,
        *,
        id: int,
        title: str,
        description: str = "",
        cuisine: str = "",
        category: str = "",
    ) -> None:
        self.id = id
        self.title = title
        self.description = description
        self.cuisine = cuisine
        self.category = category

    def __repr__(self) -> str:
        return f"<RecipeSummary(id={self.id}, title={self.title})>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "cuisine": self.cuisine,
            "category": self.category,
        }


class SearchResult:
    """Recipes plus how they were found. Iterates over the recipes."""

    def __init__(
        self,
        recipes: list[RecipeSummary],
        *,
        method: SearchMethod,
        explanation: str = "",
        intent: SearchIntent | None = None,
        cached: bool = False,
    ) -> None:
        self.recipes = recipes
        self.method = method
        self.explanation = explanation
        self.intent = intent
        self.cached = cached

    def __iter__(self):
        return iter(self.recipes)

    def __len__(self) -> int:
        return len(self.recipes)

    def __repr__(self) -> str:
        return f"<SearchResult(method={self.method.value}, n={len(self.recipes)})>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method.value,
            "explanation": self.explanation,
            "recipes": [r.to_dict() for r in self.recipes],
        }
