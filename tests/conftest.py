import pytest
import pytest_asyncio

import db
from finder.completion import Completion, CompletionOptions
from finder.errors import ModelError, RepositoryError
from finder.glossary import TermGlossary
from finder.models import GlossaryTerm, RecipeSummary, TermType
from finder.orchestrator import SearchOrchestrator
from finder.predicates import RepositoryFilter


INTENT_JSON = """
Here is the analysis:
{
  "mainDish": ["soup"],
  "cuisines": [],
  "includeIngredients": ["chicken"],
  "excludeIngredients": ["cheese"],
  "dietaryPreferences": {},
  "cookingMethods": [],
  "explanation": "Chicken soup without cheese"
}
"""


def recipe(id: int, title: str, **kwargs: str) -> RecipeSummary:
    return RecipeSummary(id=id, title=title, **kwargs)


class FakeCompletionClient:
    def __init__(
        self,
        *,
        responses: list[str] | None = None,
        healthy: bool = True,
        error: ModelError | None = None,
    ) -> None:
        self.model = "fake"
        self.responses = [] if responses is None else list(responses)
        self.healthy = healthy
        self.error = error
        self.health_calls = 0
        self.generate_calls = 0
        self.prompts: list[str] = []
        self.closed = False

    async def generate_completion(
        self, prompt: str, options: CompletionOptions | None = None
    ) -> Completion:
        self.generate_calls += 1
        self.prompts.append(prompt)
        if self.error is not None:
            return Completion.failure(self.error)
        if self.responses:
            return Completion(self.responses.pop(0))
        return Completion(INTENT_JSON)

    async def health_check(self) -> bool:
        self.health_calls += 1
        return self.healthy

    async def ensure_model_available(self) -> bool:
        return self.healthy

    def set_model(self, name: str) -> None:
        self.model = name

    async def aclose(self) -> None:
        self.closed = True


class FakeRepository:
    """Answers filter queries from a queue, then with `recipes`."""

    def __init__(
        self,
        recipes: list[RecipeSummary] | None = None,
        *,
        filter_results: list[list[RecipeSummary]] | None = None,
        protein_results: dict[str, list[RecipeSummary]] | None = None,
        fail: bool = False,
        fail_combined_proteins: bool = False,
    ) -> None:
        self.recipes = [] if recipes is None else recipes
        self.filter_results = [] if filter_results is None else list(filter_results)
        self.protein_results = {} if protein_results is None else protein_results
        self.fail = fail
        self.fail_combined_proteins = fail_combined_proteins
        self.filters: list[RepositoryFilter] = []
        self.protein_calls: list[tuple[list[str], bool]] = []

    async def find_recipes_by_filter(
        self, filter: RepositoryFilter
    ) -> list[RecipeSummary]:
        self.filters.append(filter)
        if self.fail:
            raise RepositoryError("database is locked")
        if self.filter_results:
            return self.filter_results.pop(0)
        return self.recipes

    async def find_recipes_by_protein_terms(
        self, terms: list[str], title_desc_required: bool
    ) -> list[RecipeSummary]:
        self.protein_calls.append((terms, title_desc_required))
        if self.fail or (self.fail_combined_proteins and len(terms) > 1):
            raise RepositoryError("too many terms")
        found: list[RecipeSummary] = []
        for term in terms:
            found.extend(self.protein_results.get(term, []))
        return found


class FakeGlossaryStore:
    def __init__(
        self,
        terms: list[GlossaryTerm] | None = None,
        categories: dict[str, list[str]] | None = None,
        *,
        fail: bool = False,
    ) -> None:
        self.terms = {t.canonical.lower(): t for t in ([] if terms is None else terms)}
        self.categories = {} if categories is None else categories
        self.fail = fail

    def _find(self, term: str) -> GlossaryTerm | None:
        if self.fail:
            raise RepositoryError("no such table: glossary_terms")
        key = term.strip().lower()
        if key in self.terms:
            return self.terms[key]
        for t in self.terms.values():
            if key in {v.lower() for v in t.variants}:
                return t
        return None

    async def standardize(self, term: str) -> str | None:
        found = self._find(term)
        return None if found is None else found.canonical

    async def lookup(self, term: str) -> tuple[str, TermType] | None:
        found = self._find(term)
        return None if found is None else (found.canonical, found.type)

    async def variants(self, canonical: str) -> list[str]:
        found = self._find(canonical)
        return [] if found is None else sorted(found.variants)

    async def related_terms(self, canonical: str, relation: str) -> list[str]:
        found = self._find(canonical)
        if found is None:
            return []
        related = [r for r in found.relations if r[0] == relation]
        return [term for _, term, _ in sorted(related, key=lambda r: -r[2])]

    async def category_items(self, category: str) -> list[str]:
        if self.fail:
            raise RepositoryError("no such table: glossary")
        return self.categories.get(category.strip().lower(), [])


GLOSSARY_TERMS = [
    GlossaryTerm(
        canonical="capsicum",
        type=TermType.ingredient,
        variants={"bell pepper", "sweet pepper"},
    ),
    GlossaryTerm(
        canonical="Jewish",
        type=TermType.cuisine,
        variants={"jewish", "ashkenazi"},
        relations=[
            ("includes_dish", "brisket", 0.9),
            ("includes_dish", "challah", 0.5),
            ("includes_dish", "kugel", 0.95),
        ],
    ),
    GlossaryTerm(canonical="pork", type=TermType.ingredient, variants={"pig"}),
    GlossaryTerm(canonical="stew", type=TermType.dish, variants={"casserole"}),
]


@pytest.fixture
def glossary_store() -> FakeGlossaryStore:
    return FakeGlossaryStore(
        GLOSSARY_TERMS, categories={"vegetables": ["carrot", "capsicum"]}
    )


@pytest.fixture
def glossary(glossary_store: FakeGlossaryStore) -> TermGlossary:
    return TermGlossary(glossary_store)


@pytest.fixture
def recipes() -> list[RecipeSummary]:
    return [
        recipe(1, "Chicken Soup", cuisine="Jewish"),
        recipe(2, "Pasta al Pomodoro", cuisine="Italian"),
    ]


@pytest.fixture
def make_orchestrator(glossary: TermGlossary):
    def factory(
        *,
        repository: FakeRepository | None = None,
        client: FakeCompletionClient | None = None,
        **kwargs,
    ) -> SearchOrchestrator:
        return SearchOrchestrator(
            repository=FakeRepository() if repository is None else repository,
            glossary=glossary,
            client=FakeCompletionClient() if client is None else client,
            **kwargs,
        )

    return factory


@pytest_asyncio.fixture
async def database(tmp_path):
    database = db.database_factory(f"sqlite+aiosqlite:///{tmp_path / 'recipes.db'}")
    await database.connect()
    await db.create_db(database)
    yield database
    await database.disconnect()
