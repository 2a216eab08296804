import argparse
import asyncio

from rich import print
from rich.table import Table

import config
import db
from app.logs import configure_logging
from app.wiring import orchestrator_factory
from finder.models import SearchResult
from finder.orchestrator import SearchOrchestrator


def render(result: SearchResult, message: str) -> Table:
    table = Table(
        title=f"{message}\n[dim]{result.method.value}: {result.explanation}[/dim]"
    )
    table.add_column("id", justify="right")
    table.add_column("title")
    table.add_column("cuisine")
    table.add_column("category")
    for recipe in result:
        table.add_row(str(recipe.id), recipe.title, recipe.cuisine, recipe.category)
    return table


async def ask(orchestrator: SearchOrchestrator, query: str) -> None:
    result, message = await orchestrator.search_with_vibe(query)
    print(render(result, message))


async def main(query: str | None = None) -> None:
    cfg = config.Config()
    configure_logging(cfg.log_level)

    database = db.database_factory(cfg.db_url)
    await database.connect()
    await db.create_db(database)
    orchestrator = orchestrator_factory(cfg, database)
    orchestrator.start()
    try:
        if query is not None:
            await ask(orchestrator, query)
            return
        while True:
            qu = input("Qu: ")
            if qu.lower() in ("q", "quit", "exit"):
                break
            await ask(orchestrator, qu)
            print()
    finally:
        await orchestrator.aclose()
        await database.disconnect()


def run() -> None:
    parser = argparse.ArgumentParser(description="Search recipes in plain words")
    parser.add_argument(
        "query", nargs="*", help="What to look for. Omit for an interactive prompt."
    )
    args = parser.parse_args()
    asyncio.run(main(" ".join(args.query) if args.query else None))


if __name__ == "__main__":
    run()
