"""Inkwell HTTP API. Run with: uvicorn inkwell.api.main:app --reload"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from inkwell.agents.local import GraphAgents
from inkwell.api.routes.agents import router as agents_router
from inkwell.api.routes.articles import router as articles_router
from inkwell.api.routes.edit import router as edit_router
from inkwell.api.routes.topics import router as topics_router
from inkwell.errors import InvalidTransitionError, PersistenceFailure, ProviderFailure, ValidationError
from inkwell.graph.graph import compile_graphs
from inkwell.store.repository import Repository

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    repository = Repository()
    async with compile_graphs() as graphs:
        app.state.repository = repository
        app.state.agents = GraphAgents(graphs, repository)
        yield


app = FastAPI(title="Inkwell — Article Generation Engine", version="0.1.0", lifespan=lifespan)
app.include_router(agents_router)
app.include_router(topics_router)
app.include_router(edit_router)
app.include_router(articles_router)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(InvalidTransitionError)
async def transition_error_handler(request: Request, exc: InvalidTransitionError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(ProviderFailure)
async def provider_failure_handler(request: Request, exc: ProviderFailure):
    logger.warning("Provider failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.exception_handler(PersistenceFailure)
async def persistence_failure_handler(request: Request, exc: PersistenceFailure):
    logger.error("Persistence failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.get("/health")
async def health():
    return {"status": "ok"}
