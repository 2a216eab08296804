import contextlib
import logging

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

import config
import db
from app.logs import configure_logging
from app.wiring import orchestrator_factory
from finder.orchestrator import SearchOrchestrator


CONFIG = config.Config()


logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: Starlette):
    database = None
    if app.state.orchestrator is None:
        database = db.database_factory(CONFIG.db_url)
        await database.connect()
        await db.create_db(database)
        app.state.orchestrator = orchestrator_factory(CONFIG, database)

    orchestrator: SearchOrchestrator = app.state.orchestrator
    orchestrator.start()
    try:
        yield
    finally:
        await orchestrator.aclose()
        if database is not None:
            await database.disconnect()


async def search(request: Request) -> JSONResponse:
    match request.method.lower():
        case "get":
            query = request.query_params.get("q", "")
        case "post":
            async with request.form() as form:
                query = str(form.get("about", ""))
        case _:
            raise ValueError("Unsupported method.")

    orchestrator: SearchOrchestrator = request.app.state.orchestrator
    result, message = await orchestrator.search_with_vibe(query)
    logger.info("%d recipes for %r via %s", len(result), query, result.method.value)
    return JSONResponse({"query": query, "message": message, **result.to_dict()})


def create_app(orchestrator: SearchOrchestrator | None = None) -> Starlette:
    app = Starlette(
        debug=True if CONFIG.env == config.Env.local else False,
        routes=[
            Route("/recipes/search", search, methods=["GET", "POST"]),
        ],
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator
    return app


configure_logging(CONFIG.log_level)
app = create_app()
