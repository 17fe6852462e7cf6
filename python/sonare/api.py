"""FastAPI applications for the Sonare marketing site."""

import asyncio
from typing import Annotated, Optional

from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from shared.logging import get_logger
from . import __version__, store
from .analytics import AnalyticsRecorder
from .config import Settings, HEALTH_PING_TIMEOUT
from .database import Database, get_db
from .middleware import SecurityHeadersMiddleware, AnalyticsMiddleware, CacheControlStaticFiles
from .previews import normalize_theme, preview_sources_for_palette
from .schemas import HealthResponse, LeadCreate, LeadAck, PreviewSourcesResponse

logger = get_logger(__name__)

# Dependency for database session
DbSession = Annotated[Session, Depends(get_db)]


async def bad_request_handler(request: Request, exc: RequestValidationError):
    """Malformed client input is a 400, not a server fault."""
    logger.info(f"BAD REQUEST ({request.url.path}): {len(exc.errors())} validation error(s)")
    return JSONResponse(status_code=400, content={"detail": "Bad Request"})


def create_lead(lead: LeadCreate, db: DbSession) -> LeadAck:
    """Store a lead-capture form submission."""
    logger.info(
        f"LEAD RECEIVED: Name='{lead.name}' Business='{lead.business}' Email='{lead.email}' "
        f"System='{lead.system}' Palette='{lead.palette}' "
        f"Scale='{lead.hours_est}h/{lead.store_count} stores'"
    )
    try:
        store.save_lead(db, lead)
    except SQLAlchemyError as e:
        logger.error(f"DB ERROR (Lead): {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")
    return LeadAck()


def preview_sources(request: Request, palette: Optional[str] = None) -> PreviewSourcesResponse:
    """Preview track URLs for one palette, read fresh from the music directory."""
    palette = normalize_theme(palette)
    if not palette:
        raise HTTPException(status_code=400, detail="Missing palette query parameter")

    settings: Settings = request.app.state.settings
    try:
        sources = preview_sources_for_palette(settings.music_dir, palette)
    except OSError as e:
        logger.error(f"PREVIEW SOURCE ERROR: {e}")
        raise HTTPException(status_code=500, detail="Failed to load preview sources")

    return PreviewSourcesResponse(palette=palette, sources=sources)


async def health_check(request: Request) -> Response:
    """Overall and database status; HEAD gets headers only."""
    db: Optional[Database] = request.app.state.db
    status_code, overall, db_state = 200, "ok", "ok"

    if db is None:
        status_code, overall, db_state = 503, "degraded", "uninitialized"
    else:
        try:
            await asyncio.wait_for(run_in_threadpool(db.ping), timeout=HEALTH_PING_TIMEOUT)
        except (asyncio.TimeoutError, SQLAlchemyError) as e:
            logger.warning(f"HEALTH: database ping failed: {e!r}")
            status_code, overall, db_state = 503, "degraded", "down"

    headers = {"Cache-Control": "no-store"}
    if request.method == "HEAD":
        return Response(status_code=status_code, headers=headers, media_type="application/json")
    return JSONResponse(
        status_code=status_code,
        content=HealthResponse(status=overall, db=db_state).model_dump(),
        headers=headers,
    )


def create_app(
    db: Optional[Database],
    settings: Settings,
    recorder: AnalyticsRecorder,
) -> FastAPI:
    """Build the main site app with its middleware chain.

    The static mount is registered last so the API routes take precedence.
    """
    app = FastAPI(
        title="Sonare",
        description="Marketing site backend",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.db = db
    app.state.settings = settings
    app.state.recorder = recorder

    app.add_exception_handler(RequestValidationError, bad_request_handler)

    app.add_api_route("/api/lead", create_lead, methods=["POST"], status_code=201, response_model=LeadAck)
    app.add_api_route("/api/preview-sources", preview_sources, methods=["GET"],
                      response_model=PreviewSourcesResponse)
    app.add_api_route("/healthz", health_check, methods=["GET", "HEAD"])

    app.mount("/", CacheControlStaticFiles(directory=settings.web_dir, html=True, check_dir=False),
              name="static")

    # Last added is outermost: headers -> analytics -> router
    app.add_middleware(AnalyticsMiddleware, recorder=recorder)
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.hsts)

    return app


def escaped_path(request: Request) -> str:
    """Request path as sent, percent-escapes intact."""
    raw = request.scope.get("raw_path")
    if not raw:
        return request.url.path
    return raw.decode("latin-1").split("?", 1)[0]


def create_redirect_app() -> FastAPI:
    """Port-80 app: every request is sent permanently to its https equivalent."""
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

    @app.api_route("/{path:path}", methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"])
    async def redirect_to_https(request: Request, path: str):
        host = request.headers.get("host", request.url.netloc)
        target = f"https://{host}{escaped_path(request)}"
        if request.url.query:
            target += f"?{request.url.query}"
        return RedirectResponse(url=target, status_code=301)

    return app
