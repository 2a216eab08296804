from databases import Database

from finder.models import GlossaryTerm


CREATE_TABLES = (
    """
    CREATE TABLE IF NOT EXISTS categories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name VARCHAR(128) NOT NULL UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS recipes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title VARCHAR(256) NOT NULL,
        description TEXT DEFAULT '',
        cuisine VARCHAR(128) DEFAULT '',
        category_id INTEGER REFERENCES categories(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS ingredients (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name VARCHAR(256) NOT NULL UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS recipe_ingredients (
        recipe_id INTEGER NOT NULL REFERENCES recipes(id),
        ingredient_id INTEGER NOT NULL REFERENCES ingredients(id),
        PRIMARY KEY (recipe_id, ingredient_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS glossary_terms (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        term VARCHAR(256) NOT NULL UNIQUE,
        type VARCHAR(32) NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS glossary_variants (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        term_id INTEGER NOT NULL REFERENCES glossary_terms(id),
        variant VARCHAR(256) NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS glossary_related_terms (
        term_id INTEGER NOT NULL REFERENCES glossary_terms(id),
        related_term VARCHAR(256) NOT NULL,
        relation_type VARCHAR(64) NOT NULL,
        strength REAL DEFAULT 1.0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS glossary (
        item_name VARCHAR(256) NOT NULL,
        category_name VARCHAR(128) NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_recipe_ingredients_recipe ON recipe_ingredients(recipe_id)",
    "CREATE INDEX IF NOT EXISTS idx_glossary_variants_variant ON glossary_variants(variant)",
    "CREATE INDEX IF NOT EXISTS idx_glossary_category ON glossary(category_name)",
)


GET_CATEGORY = "SELECT id FROM categories WHERE name = :name"
CREATE_CATEGORY = "INSERT INTO categories(name) VALUES (:name)"

GET_INGREDIENT = "SELECT id FROM ingredients WHERE name = :name"
CREATE_INGREDIENT = "INSERT INTO ingredients(name) VALUES (:name)"

CREATE_RECIPE = """
INSERT INTO recipes(title, description, cuisine, category_id)
VALUES (:title, :description, :cuisine, :category_id)
"""

LINK_INGREDIENT = """
INSERT OR IGNORE INTO recipe_ingredients(recipe_id, ingredient_id)
VALUES (:recipe_id, :ingredient_id)
"""

CREATE_GLOSSARY_TERM = "INSERT INTO glossary_terms(term, type) VALUES (:term, :type)"

CREATE_GLOSSARY_VARIANT = """
INSERT INTO glossary_variants(term_id, variant) VALUES (:term_id, :variant)
"""

CREATE_GLOSSARY_RELATION = """
INSERT INTO glossary_related_terms(term_id, related_term, relation_type, strength)
VALUES (:term_id, :related_term, :relation_type, :strength)
"""

CREATE_CATEGORY_ITEM = """
INSERT INTO glossary(item_name, category_name) VALUES (:item_name, :category_name)
"""


def database_factory(url: str) -> Database:
    return Database(url)


async def create_db(database: Database) -> None:
    for statement in CREATE_TABLES:
        await database.execute(query=statement)  # pyright: ignore[reportUnknownMemberType]


async def get_or_create(
    database: Database, get: str, create: str, name: str
) -> int:
    row = await database.fetch_one(get, values={"name": name})  # pyright: ignore[reportUnknownMemberType]
    if row is not None:
        return row["id"]
    return await database.execute(create, values={"name": name})  # pyright: ignore[reportUnknownMemberType]


async def create_recipe(
    database: Database,
    *,
    title: str,
    description: str = "",
    cuisine: str = "",
    category: str | None = None,
    ingredients: list[str] | None = None,
) -> int:
    async with database.transaction():
        category_id = (
            None
            if category is None
            else await get_or_create(database, GET_CATEGORY, CREATE_CATEGORY, category)
        )
        recipe_id = await database.execute(  # pyright: ignore[reportUnknownMemberType]
            CREATE_RECIPE,
            values={
                "title": title,
                "description": description,
                "cuisine": cuisine,
                "category_id": category_id,
            },
        )
        for name in [] if ingredients is None else ingredients:
            ingredient_id = await get_or_create(
                database, GET_INGREDIENT, CREATE_INGREDIENT, name.strip().lower()
            )
            await database.execute(  # pyright: ignore[reportUnknownMemberType]
                LINK_INGREDIENT,
                values={"recipe_id": recipe_id, "ingredient_id": ingredient_id},
            )
    return recipe_id


async def add_glossary_term(database: Database, term: GlossaryTerm) -> int:
    async with database.transaction():
        term_id = await database.execute(  # pyright: ignore[reportUnknownMemberType]
            CREATE_GLOSSARY_TERM,
            values={"term": term.canonical, "type": term.type.value},
        )
        for variant in sorted(term.variants):
            await database.execute(  # pyright: ignore[reportUnknownMemberType]
                CREATE_GLOSSARY_VARIANT, values={"term_id": term_id, "variant": variant}
            )
        for relation, related, strength in term.relations:
            await database.execute(  # pyright: ignore[reportUnknownMemberType]
                CREATE_GLOSSARY_RELATION,
                values={
                    "term_id": term_id,
                    "related_term": related,
                    "relation_type": relation,
                    "strength": strength,
                },
            )
    return term_id


async def add_category_items(
    database: Database, category: str, items: list[str]
) -> None:
    for item in items:
        await database.execute(  # pyright: ignore[reportUnknownMemberType]
            CREATE_CATEGORY_ITEM, values={"item_name": item, "category_name": category}
        )
