import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tradie_market import __version__
from tradie_market.api import create_api_router
from tradie_market.core.config import get_settings
from tradie_market.core.container import ApplicationContainer, build_container
from tradie_market.infrastructure.database.session import init_db

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("tradie_market").setLevel(level.upper())


def create_app(container: Optional[ApplicationContainer] = None) -> FastAPI:
    settings = container.settings if container is not None else get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_container = container or build_container(settings)
        app.state.container = app_container
        if settings.environment in {"development", "test"}:
            await init_db(app_container.engine)
        logger.info("%s %s started (%s)", settings.project_name, __version__, settings.environment)
        try:
            yield
        finally:
            await app_container.aclose()

    app = FastAPI(
        title=settings.project_name,
        description="Credit ledger and job application workflow for the tradie marketplace",
        version=__version__,
        lifespan=lifespan,
    )
    if container is not None:
        app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(create_api_router(settings.api_prefix))

    @app.get("/health", summary="Liveness probe")
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    return app


app = create_app()
