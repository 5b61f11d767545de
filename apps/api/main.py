"""FastAPI entrypoint for the cineclub catalog and feed API."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cineclub.db.session import init_engine

from .dependencies import _load_settings
from .routers import api_router


logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

settings = _load_settings()
init_engine(settings)


app = FastAPI(
    title="cineclub API",
    version="0.1.0",
    description="Film catalog, feeds, search and reviews.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.api.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router)


@app.get("/", tags=["info"], summary="API metadata")
def read_index() -> dict[str, str]:
    return {
        "message": "cineclub API",
        "documentation": "/docs",
    }
