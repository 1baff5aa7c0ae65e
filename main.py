import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException

from config import get_settings
from database import db, ensure_indexes
from limiter import limiter
from routes import ROUTERS
from storage import AssetStoreError
from utils import ApiError

settings = get_settings()

# -------------------- Logging --------------------
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(settings.log_level.upper())
    ),
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting backend", database=settings.database_name)
    try:
        ensure_indexes(db)
    except PyMongoError as e:
        logger.error("Could not create indexes", error=str(e))
    yield
    logger.info("Shutting down backend")


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for router in ROUTERS:
    app.include_router(router, prefix=settings.api_prefix)


# -------------------- Errors --------------------
def error_response(status_code: int, message: str, errors=None) -> JSONResponse:
    content = {"statusCode": status_code, "message": message, "success": False}
    if errors:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return error_response(exc.status_code, str(exc.detail), getattr(exc, "errors", None))


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning("Rate limit hit", path=request.url.path, limit=str(exc.detail))
    return error_response(429, f"There are too many requests. You are only allowed {exc.detail}")


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=exc.detail)
    return error_response(exc.status_code, exc.detail, exc.errors)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
    return error_response(422, "Invalid request", errors)


@app.exception_handler(AssetStoreError)
async def asset_error_handler(request: Request, exc: AssetStoreError):
    logger.error("Asset store error", path=request.url.path, error=str(exc))
    return error_response(500, "Error while talking to the asset store")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", path=request.url.path)
    return error_response(500, str(exc) if settings.debug else "Internal server error")


# -------------------- Basic Routes --------------------
@app.get("/")
def read_root():
    return {"message": "Video Sharing Backend is running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
