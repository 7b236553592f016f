import asyncio
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import asyncpg
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core import db
from core.log import configure_logging
from roster import router as roster_router
from roster.service import RosterError

logger = logging.getLogger(__name__)


def cors_origins() -> list[str]:
    raw = os.environ.get("CORS_ORIGINS", "").strip()
    if not raw:
        return ["http://localhost:5173", "http://127.0.0.1:5173"]
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    # Initialize the DB pool once per process.
    await db.init_pool()
    try:
        yield
    finally:
        await db.close_pool()


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(roster_router.router, tags=["roster"])


@app.exception_handler(RequestValidationError)
async def validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    messages = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', '')}"
        for err in exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": f"Validation error: {messages}"},
    )


@app.exception_handler(RosterError)
async def roster_error(_: Request, exc: RosterError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"message": str(exc)},
    )


@app.exception_handler(asyncpg.PostgresError)
async def storage_error(request: Request, exc: asyncpg.PostgresError) -> JSONResponse:
    logger.error("db_error path=%s", request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error."},
    )


@app.get("/health")
async def health() -> JSONResponse:
    try:
        healthy = await db.database().ping()
    except (OSError, RuntimeError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError):
        logger.exception("health_check_failed")
        healthy = False

    timestamp = datetime.now(timezone.utc).isoformat()
    if not healthy:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "timestamp": timestamp},
        )
    return JSONResponse(content={"status": "healthy", "timestamp": timestamp})


@app.get("/")
def root() -> dict:
    return {"message": "teacher-student roster api"}
