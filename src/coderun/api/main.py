"""
FastAPI application for the code execution service.

This module configures the FastAPI application, wires the execution pool
to the ``/execute`` endpoint and enforces authentication via an optional
API key.  The HTTP layer only forwards requests: every execution outcome,
including compile errors and unsupported languages, is returned as a
structured result with status 200.  Only an overloaded pool answers 503.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..config import Config, configure_logging
from ..dispatcher import ExecutionDispatcher
from ..models import ExecuteRequest, ExecuteResponse, LanguageInfo, LanguageList
from ..pool import ExecutionPool

# Seconds between checks for a client that went away
DISCONNECT_POLL_SECONDS = 0.5

config = Config.from_env()
logger = configure_logging(config.log_level)

logger.info(
    "Loaded config: scratch_dir=%s, allowed_langs=%s, max_exec=%s, workers=%s, queue=%s",
    config.scratch_dir,
    config.allowed_langs,
    config.max_execution_seconds,
    config.max_workers,
    config.max_queue_depth,
)

dispatcher = ExecutionDispatcher.from_config(config)
pool = ExecutionPool.from_config(config, dispatcher)


app = FastAPI(title="Code Execution Service", version="0.1.0")


@app.middleware("http")
async def authenticate(request, call_next):
    """Middleware to enforce API key authentication on all requests."""
    path = request.url.path
    method = request.method
    client = getattr(request.client, "host", "unknown")

    logger.info("Incoming request: %s %s from %s", method, path, client)

    if config.api_key and path != "/health":
        provided_key = request.headers.get("x-api-key")
        if provided_key != config.api_key:
            logger.warning("Invalid API key for %s %s from %s", method, path, client)
            return JSONResponse(status_code=401, content={"detail": "Invalid API key"})

    response = await call_next(request)
    logger.info("Response: %s %s -> %s", method, path, response.status_code)
    return response


@app.get("/health")
async def health() -> Dict[str, str]:
    """Return a simple health check response."""
    return {"status": "ok"}


@app.get("/languages", response_model=LanguageList)
async def languages() -> LanguageList:
    """List the enabled languages and whether their toolchain is present."""
    return LanguageList(languages=[LanguageInfo(**info) for info in dispatcher.languages()])


@app.post("/execute", response_model=ExecuteResponse)
async def execute(req: ExecuteRequest, request: Request):
    """Run the submitted code and return its captured output.

    The execution is cancelled if the client disconnects before it
    finishes.
    """
    handle = pool.submit(req.to_execution_request())
    if handle.rejected:
        result = handle.result()
        return JSONResponse(status_code=503, content=ExecuteResponse.from_result(result).model_dump())

    waiter = asyncio.wrap_future(handle.future)
    while True:
        done, _ = await asyncio.wait({waiter}, timeout=DISCONNECT_POLL_SECONDS)
        if done:
            break
        if await request.is_disconnected():
            logger.info("[/execute] Client disconnected; cancelling %s execution", req.language)
            handle.cancel()
            break

    # A cancelled run still has to reap its process and release its workspace
    result = await asyncio.to_thread(handle.result)
    logger.info(
        "[/execute] Execution finished: language=%s, error_kind=%s, duration_ms=%s",
        result.language,
        result.error_kind.value,
        result.duration_ms,
    )
    return ExecuteResponse.from_result(result)
