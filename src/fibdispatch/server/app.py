"""aiohttp application exposing the direct and worker-dispatched routes."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from aiohttp import web

from fibdispatch._internal.config import ServerConfig
from fibdispatch._internal.errors import (
    DispatchError,
    DispatchTimeoutError,
    FibDispatchError,
    InvalidInputError,
    WorkerCrashError,
)
from fibdispatch._internal.logging import get_logger
from fibdispatch.compute.fibonacci import validate_variant
from fibdispatch.engine.coordinator import DispatchCoordinator
from fibdispatch.engine.worker import install_uvloop
from fibdispatch.server.router import RequestRouter, parse_input

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

logger = get_logger("server.app")

CONFIG_KEY = web.AppKey("config", ServerConfig)
COORDINATOR_KEY = web.AppKey("coordinator", DispatchCoordinator)
ROUTER_KEY = web.AppKey("router", RequestRouter)


def _status_for(exc: FibDispatchError) -> int:
    """Map a fibdispatch error to an HTTP status code."""
    if isinstance(exc, InvalidInputError):
        return 400
    if isinstance(exc, DispatchTimeoutError):
        return 504
    if isinstance(exc, WorkerCrashError):
        return 500
    if isinstance(exc, DispatchError):
        return 503
    return 500


@web.middleware
async def error_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    """Turn fibdispatch errors into plain-text error responses.

    Worker failures only ever fail the one request that dispatched the
    worker; the server keeps serving.
    """
    try:
        return await handler(request)
    except FibDispatchError as exc:
        status = _status_for(exc)
        if status >= 500:
            logger.warning("%s %s failed: %s", request.method, request.path, exc)
        else:
            logger.debug("%s %s rejected: %s", request.method, request.path, exc)
        return web.Response(status=status, text=f"Error: {exc}")


def _parse_timeout(raw: str | None) -> float | None:
    """Parse the optional ``timeout`` query parameter.

    Raises:
        InvalidInputError: If the value is not a finite positive number.
    """
    if raw is None:
        return None
    try:
        timeout = float(raw)
    except ValueError:
        msg = f"timeout must be a number, got: {raw!r}"
        raise InvalidInputError(msg) from None
    if not math.isfinite(timeout) or timeout <= 0:
        msg = f"timeout must be a finite positive number, got: {timeout}"
        raise InvalidInputError(msg)
    return timeout


async def no_worker_handler(request: web.Request) -> web.Response:
    """``GET /no-worker/{n}``: compute on the event loop thread.

    Blocks the whole server until the computation finishes.
    """
    n = parse_input(request.match_info["n"])
    variant = validate_variant(request.query.get("variant", "term"))
    report = request.app[ROUTER_KEY].direct_compute(n, variant)
    return web.Response(text=report.format())


async def worker_handler(request: web.Request) -> web.Response:
    """``GET /worker/{n}``: compute in a new worker process."""
    n = parse_input(request.match_info["n"])
    variant = validate_variant(request.query.get("variant", "term"))
    timeout = _parse_timeout(request.query.get("timeout"))
    report = await request.app[ROUTER_KEY].dispatched_compute(n, variant, timeout)
    return web.Response(text=report.format())


async def health_handler(request: web.Request) -> web.Response:
    """``GET /health``: liveness plus the number of running workers."""
    return web.json_response(
        {
            "status": "ok",
            "active_workers": request.app[COORDINATOR_KEY].active_count,
        }
    )


def create_app(
    config: ServerConfig | None = None,
    *,
    coordinator: DispatchCoordinator | None = None,
    log_level: int = 20,
) -> web.Application:
    """Build the HTTP application.

    The dispatch coordinator lives exactly as long as the application:
    it is created on startup and closed (terminating outstanding workers)
    on cleanup.

    Args:
        config: Server configuration. Defaults to ``ServerConfig()``.
        coordinator: Pre-built coordinator to use instead of creating one
            from ``config``. It is still closed on cleanup.
        log_level: Logging level passed to worker processes.

    Returns:
        The configured ``web.Application``.
    """
    config = config or ServerConfig()
    app = web.Application(middlewares=[error_middleware])
    app[CONFIG_KEY] = config

    async def _coordinator_ctx(app: web.Application) -> AsyncIterator[None]:
        coord = coordinator or DispatchCoordinator(
            start_method=config.start_method,
            default_timeout=config.dispatch_timeout,
            log_level=log_level,
        )
        app[COORDINATOR_KEY] = coord
        app[ROUTER_KEY] = RequestRouter(coord)
        logger.debug(
            "Dispatch coordinator ready: start_method=%s, timeout=%s",
            coord.start_method,
            coord.default_timeout,
        )
        yield
        await coord.close()

    app.cleanup_ctx.append(_coordinator_ctx)
    app.router.add_get("/no-worker/{n}", no_worker_handler)
    app.router.add_get("/worker/{n}", worker_handler)
    app.router.add_get("/health", health_handler)
    return app


def run_server(config: ServerConfig, *, log_level: int = 20) -> None:
    """Serve the application until interrupted.

    Args:
        config: Server configuration (host, port, dispatch settings).
        log_level: Logging level for the server and its workers.
    """
    install_uvloop()
    app = create_app(config, log_level=log_level)
    logger.info("Server running at http://%s:%d", config.host, config.port)
    web.run_app(app, host=config.host, port=config.port, print=None)
