"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from roundsearch.api import ops, rounds
from roundsearch.api.errors import install_error_handlers
from roundsearch.api.middleware_request_id import RequestIdMiddleware
from roundsearch.infra import postgres
from roundsearch.obs import init as obs_init
from roundsearch.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	if settings.uses_memory_store():
		logger.info("rounds.store backend=memory")
		yield
		return
	await postgres.init_pool()
	logger.info("rounds.store backend=postgres")
	try:
		yield
	finally:
		await postgres.close_pool()


app = FastAPI(
	title="Round Search",
	lifespan=lifespan,
	docs_url=None if settings.is_prod() else "/docs",
)
install_error_handlers(app)
obs_init(app)

# Sole owner of X-Request-Id; added last so it wraps the observability middleware
app.add_middleware(RequestIdMiddleware)

app.include_router(rounds.router, tags=["rounds"])
app.include_router(ops.router, tags=["ops"])
