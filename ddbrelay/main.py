import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ddbrelay.api import (
    character_router,
    content_router,
    credentials_router,
    health_router,
    sources_router,
)
from ddbrelay.api.deps import build_services, client_address
from ddbrelay.api.health import service_version
from ddbrelay.config import settings
from ddbrelay.logging_config import configure_logging
from ddbrelay.models.failure import KnownError
from ddbrelay.services.rate_limit import RateLimitStatus

logger = logging.getLogger(__name__)

AVAILABLE_ENDPOINTS = [
    "GET /health",
    "GET /ping",
    "GET /stats",
    "GET /api/source-books",
    "POST /api/validate-cookie",
    "POST /api/character/*",
    "POST /api/content/items",
    "POST /api/content/spells",
    "POST /api/content/*",
]

# Sent on every response; no Content-Security-Policy (JSON only)
SECURITY_HEADERS = {
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    async with httpx.AsyncClient(
        timeout=settings.request_timeout,
        follow_redirects=True,
    ) as client:
        app.state.relay = build_services(settings, client)
        logger.info(
            "DDB Relay started (environment=%s, port=%d)",
            settings.environment,
            settings.port,
        )
        yield
    logger.info("DDB Relay stopped")


configure_logging(logging.DEBUG if settings.debug else logging.INFO)

app = FastAPI(
    title=settings.app_name,
    version=service_version(),
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(sources_router)
app.include_router(credentials_router)
app.include_router(character_router)
app.include_router(content_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.middleware("http")
async def log_requests(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    # Method, path and client only; bodies carry credentials
    logger.info("%s %s - %s", request.method, request.url.path, client_address(request))
    return await call_next(request)


@app.middleware("http")
async def add_response_headers(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    response = await call_next(request)
    response.headers.update(SECURITY_HEADERS)

    # Set by enforce_rate_limit on /api/ routes only
    rate_limit: RateLimitStatus | None = getattr(request.state, "rate_limit", None)
    if rate_limit is not None:
        response.headers.update(rate_limit.headers())
        if response.status_code == 429:
            response.headers["Retry-After"] = str(rate_limit.reset_seconds)
    return response


@app.exception_handler(KnownError)
async def known_error_handler(_request: Request, exc: KnownError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.error, exc.message, extra={"kind": exc.kind.value})
    return JSONResponse(status_code=exc.status_code, content=exc.to_response().model_dump())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Malformed body"))
    return JSONResponse(status_code=400, content={"error": "Invalid request", "message": message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return JSONResponse(
            status_code=404,
            content={
                "error": "Not found",
                "message": f"Endpoint {request.method} {request.url.path} not found",
                "availableEndpoints": AVAILABLE_ENDPOINTS,
            },
        )
    error = "Forbidden" if exc.status_code == 403 else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": error, "message": str(exc.detail)},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error: %s", exc)
    message = str(exc) if settings.debug else "Something went wrong"
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": message},
    )


def serve() -> None:
    """CLI entry point."""
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    serve()
