from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import admin, health, history, profile, search, settings as settings_routes
from funding_finder.config import settings


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    logging.basicConfig(level=settings.log_level)
    logging.getLogger(__name__).info(
        "Funding finder API starting (provider=%s, data_dir=%s)", settings.llm_provider, settings.data_dir
    )
    yield


def create_app() -> FastAPI:
    app = FastAPI(title="ASBL Funding Finder API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(search.router)
    app.include_router(profile.router)
    app.include_router(history.router)
    app.include_router(admin.router)
    app.include_router(settings_routes.router)

    return app


app = create_app()
