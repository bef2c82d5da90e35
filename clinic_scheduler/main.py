import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clinic_scheduler.api.routes import appointments, availability, catalog, reports, slots
from clinic_scheduler.core.config import settings, _ENV_FILE
from clinic_scheduler.core.db import build_engine, build_session_maker, init_db
from clinic_scheduler.services.resource_families import all_families, ensure_resources

if os.getenv("ENV") != "production":
    logging.basicConfig(level=logging.DEBUG)
else:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}',
    )
logger = logging.getLogger(__name__)


async def _seed_resources(app: FastAPI) -> None:
    """Make sure every family has its numbered units."""
    async with app.state.session_maker() as session:
        try:
            await ensure_resources(session)
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Loading .env from: %s (exists: %s)", _ENV_FILE, _ENV_FILE.exists())
    engine = build_engine(
        settings.database_url,
        echo=settings.env == "development",
        ssl=settings.database_ssl,
    )
    app.state.engine = engine
    app.state.session_maker = build_session_maker(engine)
    if settings.create_tables_on_startup:
        await init_db(engine)
    if settings.seed_resources:
        await _seed_resources(app)
    for family in all_families():
        logger.info("%s: %d unit(s)", family.label, family.capacity)
    logger.info("Closing cutoff: sessions must end before %s", settings.closing_time)
    yield
    await engine.dispose()


app = FastAPI(
    title="Clinic Scheduling API",
    description="Appointment booking for consultation rooms, hyperbaric chamber and drips stations",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(slots.router, prefix="/api/v1")
app.include_router(availability.router, prefix="/api/v1")
app.include_router(appointments.router, prefix="/api/v1")
app.include_router(catalog.router, prefix="/api/v1")
app.include_router(reports.router, prefix="/api/v1")


def _cors_headers(origin: str | None) -> dict[str, str]:
    """Add CORS headers to error responses so the browser doesn't block them."""
    headers = {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Authorization, Content-Type",
    }
    if origin and origin in settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = origin
    elif settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = settings.cors_origins_list[0]
    return headers


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return actual error in JSON; include CORS so 500 responses are not blocked by browser."""
    origin = request.headers.get("origin")
    headers = _cors_headers(origin)
    if isinstance(exc, HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=headers,
        )
    logger.exception("Unhandled exception: %s", exc)
    detail = f"{type(exc).__name__}: {str(exc)}"
    return JSONResponse(
        status_code=500,
        content={"detail": detail},
        headers=headers,
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
