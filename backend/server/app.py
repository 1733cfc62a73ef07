"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Build, start and shut down the single HelperSession
- Register routes
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppConfig
from errors import ConfigurationError
from observability import logger
from observability.logger import log_event
from session.helper_session import HelperSession

from server.routes import register_routes


SessionFactory = Callable[[AppConfig], HelperSession]


def default_session_factory(config: AppConfig) -> HelperSession:
    """Build the session from the launch URL in the environment."""
    return HelperSession.build(config=config, launch_context=config.launch_url)


def create_app(
    config: AppConfig | None = None,
    session_factory: SessionFactory | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with injected configuration and fake transports
    - ASGI server compatibility

    A launch URL without a usable token is NOT a startup failure: the
    app comes up, every session route answers "invalid_session", and
    nothing is connected.
    """
    if config is None:
        config = AppConfig.load_from_env()
    factory = session_factory or default_session_factory

    logger.configure(enabled=config.enable_json_logs)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.session = None
        app.state.session_error = None

        try:
            session = factory(config)
        except ConfigurationError as e:
            app.state.session_error = str(e) or type(e).__name__
            log_event({
                "event_type": "SESSION_NOT_STARTED",
                "error_type": type(e).__name__,
                "error": app.state.session_error,
            })
            yield
            return

        app.state.session = session
        await session.start()
        try:
            yield
        finally:
            await session.shutdown()

    app = FastAPI(title="Helper Session API", lifespan=lifespan)

    app.state.config = config
    app.state.session = None
    app.state.session_error = None

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    register_routes(app)

    return app
