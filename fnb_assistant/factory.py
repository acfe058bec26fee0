"""
FastAPI application factory.

Settings and flags are resolved here, once, and handed to every component.
Tests pass their own settings, flags, gateway or session factory.
"""

import logging
from datetime import date
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from . import __version__
from .api.router import router
from .core.auth import SupabaseAuthClient
from .core.config import Settings, get_settings
from .core.database import close_db, create_engine, create_session_factory, init_db
from .core.flags import FeatureFlags, get_flags
from .orchestrator.agent_loop import AgentLoop
from .services.llm import ModelGateway
from .tools.executor import ToolExecutor
from .tools.registry import init_tools

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    flags: Optional[FeatureFlags] = None,
    gateway: Optional[ModelGateway] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    clock: Callable[[], date] = date.today,
) -> FastAPI:
    settings = settings or get_settings()
    flags = flags or get_flags()

    app = FastAPI(
        title="F&B Assistant",
        description="AI financial assistant for food & beverage back offices",
        version=__version__,
        docs_url="/docs" if settings.env == "development" else None,
        redoc_url="/redoc" if settings.env == "development" else None,
    )

    # ── Components ───────────────────────────────────────────────
    engine = None
    if session_factory is None:
        engine = create_engine(settings)
        session_factory = create_session_factory(engine)
    gateway = gateway or ModelGateway(settings)

    tools = init_tools()
    executor = ToolExecutor(session_factory, settings, flags, registry=tools, clock=clock)

    app.state.settings = settings
    app.state.flags = flags
    app.state.gateway = gateway
    app.state.executor = executor
    app.state.agent = AgentLoop(gateway, executor, settings, flags, clock=clock)
    app.state.auth_client = SupabaseAuthClient(settings)

    # ── CORS ─────────────────────────────────────────────────────
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Errors as {"error": ...} ─────────────────────────────────
    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    # ── Startup ──────────────────────────────────────────────────
    @app.on_event("startup")
    async def on_startup():
        logging.basicConfig(
            level=getattr(logging, settings.log_level.upper(), logging.INFO),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
        logger.info("Starting F&B Assistant (env=%s)", settings.env)

        if flags.create_tables and engine is not None:
            await init_db(engine)

        logger.info(
            "Flags: auth=%s write_tools=%s stream_on_round_limit=%s create_tables=%s",
            flags.use_auth, flags.enable_write_tools,
            flags.stream_on_round_limit, flags.create_tables,
        )
        logger.info(
            "Agent: model=%s max_rounds=%d max_parallel_tools=%d",
            settings.llm_model, settings.agent_max_rounds, settings.agent_max_parallel_tools,
        )
        logger.info("F&B Assistant is ready")

    # ── Shutdown ─────────────────────────────────────────────────
    @app.on_event("shutdown")
    async def on_shutdown():
        await gateway.aclose()
        if engine is not None:
            await close_db(engine)
        logger.info("F&B Assistant shut down")

    # ── Routes ───────────────────────────────────────────────────
    app.include_router(router)

    return app
