"""FastAPI application factory for the getaway game."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import game_config as config
from chat_client import ChatClient
from errors import NotFoundError, ValidationError
from handler import router
from obstacles import load_obstacles
from services import GameServices, build_services


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def _generic(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=500, content={"error": f"internal server error: {exc}"})


def create_app(services: GameServices | None = None) -> FastAPI:
    """Build the game app.

    Without ``services`` the lifespan opens the chat client, loads the
    collision map and wires fresh services. Passed-in services are installed
    on ``app.state`` right away and only shut down at exit.
    """
    _provided_services = services

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        if _provided_services is not None:
            yield
            await _provided_services.shutdown()
            return

        chat = ChatClient()
        _services = build_services(chat, obstacles=load_obstacles(config.COLLISIONS_PATH))
        app.state.services = _services
        yield
        await _services.shutdown()
        await chat.close()

    app = FastAPI(title="Getaway Game", lifespan=lifespan)

    if _provided_services is not None:
        app.state.services = _provided_services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        max_age=600,
    )

    _register_exception_handlers(app)
    app.include_router(router)

    return app
