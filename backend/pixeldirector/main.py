"""FastAPI app factory."""

from __future__ import annotations

import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pixeldirector.config import settings
from pixeldirector.errors import ErrorKind, PixelDirectorError

load_dotenv()

logging.basicConfig(
    level=getattr(logging, settings.pixeldirector_log_level.upper(), logging.DEBUG),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)

logger = logging.getLogger(__name__)

_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 422,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.TRANSIENT: 503,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.FATAL: 502,
    ErrorKind.PARSE: 502,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.UNSUPPORTED: 422,
    ErrorKind.CONFIGURATION: 500,
}


async def _pixeldirector_error(request: Request, exc: PixelDirectorError) -> JSONResponse:
    status = _STATUS_BY_KIND.get(exc.kind, 500)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status,
        content={"error": exc.kind.value, "detail": exc.message, "operation": exc.operation},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="PixelDirector",
        description="Natural-language image editing: plans edits and drives vision/generation models",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PixelDirectorError, _pixeldirector_error)

    from pixeldirector.api.router import api_router

    app.include_router(api_router)

    return app


app = create_app()
