import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from routelynk.api.router import api_router
from routelynk.core.config import Settings, settings as default_settings
from routelynk.core.errors import RouteLynkError
from routelynk.db.init_db import create_tables, seed_demo_data
from routelynk.db.session import make_engine, make_session_factory
from routelynk.services.gateway import PaymentGateway, StripeGateway

logger = logging.getLogger(__name__)


def _run_migrations_if_needed(settings: Settings):
    """Apply Alembic migrations automatically in production if enabled.

    Controlled by env var AUTO_APPLY_MIGRATIONS (default: '1'). Safe to run repeatedly.
    """
    if settings.env.lower() != "prod":
        return
    if os.getenv("AUTO_APPLY_MIGRATIONS", "1") != "1":
        return
    from alembic import command
    from alembic.config import Config
    alembic_ini = Path(__file__).resolve().parents[1] / "alembic.ini"
    if not alembic_ini.exists():
        logger.warning("alembic.ini not found at %s, skipping auto-migrations", alembic_ini)
        return
    cfg = Config(str(alembic_ini))
    # Ensure script_location resolves correctly when launched from arbitrary CWD
    cfg.set_main_option("script_location", str(Path(__file__).resolve().parents[1] / "alembic"))
    logger.info("Applying Alembic migrations -> head ...")
    command.upgrade(cfg, "head")
    logger.info("Migrations applied successfully")


def create_app(settings: Optional[Settings] = None, gateway: Optional[PaymentGateway] = None) -> FastAPI:
    settings = settings or default_settings
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = make_engine(settings.database_url)
        app.state.engine = engine
        app.state.session_factory = make_session_factory(engine)
        if settings.env.lower() == "prod":
            _run_migrations_if_needed(settings)
        else:
            create_tables(engine)
        seed_demo_data(app.state.session_factory, settings)
        logger.info("%s started (env=%s)", settings.app_name, settings.env)
        try:
            yield
        finally:
            engine.dispose()
            logger.info("%s stopped", settings.app_name)

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.gateway = gateway or StripeGateway(settings.stripe_secret_key)

    origins = settings.cors_origins
    logger.info("Resolved CORS origins: %s", origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RouteLynkError)
    async def routelynk_error_handler(request: Request, exc: RouteLynkError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{location}: {first.get('msg', 'invalid input')}" if location else first.get("msg", "invalid input")
        return JSONResponse(status_code=400, content={"message": message})

    app.include_router(api_router)
    return app


app = create_app()
