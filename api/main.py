import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core import db, settings
from core.errors import HierarchyAPIError
from core.logging_config import configure_logging
from hierarchies import router as hierarchies_router

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Open the pool once per process; refuse to start if the store is unreachable.
    try:
        database = await db.connect()
    except Exception:
        logger.exception("database_connect_failed")
        raise
    try:
        await db.check_connection(database)
    except Exception:
        logger.exception("database_check_failed")
        await database.close()
        raise

    app.state.db = database
    logger.info("database_connected")
    try:
        yield
    finally:
        app.state.db = None
        await database.close()


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(hierarchies_router.router, tags=["hierarchies"])


@app.exception_handler(HierarchyAPIError)
async def hierarchy_error_handler(request: Request, exc: HierarchyAPIError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed path=%s error=%s", request.url.path, exc.message)
    else:
        logger.warning("request_rejected path=%s status=%s error=%s", request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("request_invalid path=%s errors=%s", request.url.path, len(exc.errors()))
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request.", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error path=%s", request.url.path)
    return JSONResponse(status_code=500, content={"error": "Something went wrong!"})


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


def run() -> None:
    uvicorn.run(app, host=settings.host(), port=settings.port())


if __name__ == "__main__":
    run()
