from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from replay_browser.core.db import create_tables, engine
from replay_browser.core.exceptions import ReplayError
from replay_browser.services.replay_parser import ReplayParserService
from replay_browser.utils.exception_handlers import (
    general_exception_handler,
    http_exception_handler,
    replay_exception_handler,
    validation_exception_handler,
)
from replay_browser.utils.router_discovery import register_routers


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, FastAPI]:
    await create_tables()
    app.state.replay_parser = ReplayParserService()

    yield

    await app.state.replay_parser.stop()
    await engine.dispose()


app = FastAPI(
    title="Replay Browser API",
    lifespan=app_lifespan,
    servers=[{"url": "http://localhost:3011", "description": "Local server"}],
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


register_routers(app)

app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(ReplayError, replay_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)


@app.get("/")
async def healthz() -> str:
    return "OK"
