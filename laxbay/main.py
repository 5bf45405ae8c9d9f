# laxbay/main.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.sessions import SessionMiddleware

from laxbay import config
from laxbay.api import admin_routes, auth_routes, chat_routes, routes, uploads
from laxbay.auth import IdentityMiddleware
from laxbay.db import init_db
from laxbay.errors import LaxbayError, UpstreamUnavailable
from laxbay.scheduler import start_scheduler, stop_scheduler
from laxbay.utils import logger

# create FastAPI instance
app = FastAPI(title="LaxBay")

# added innermost first: identity reads the session SessionMiddleware loads
app.add_middleware(IdentityMiddleware)
app.add_middleware(
    SessionMiddleware,
    secret_key=config.SESSION_SECRET,
    session_cookie="laxbay.sid",
    max_age=config.SESSION_MAX_AGE,
    same_site="none" if config.IS_PRODUCTION else "lax",
    https_only=config.IS_PRODUCTION,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (routes, auth_routes, uploads, chat_routes, admin_routes):
    app.include_router(module.router)


@app.exception_handler(LaxbayError)
async def handle_service_error(request: Request, exc: LaxbayError):
    body = {"detail": exc.detail}
    headers = None
    if isinstance(exc, UpstreamUnavailable):
        body["retryAfter"] = exc.retry_after
        headers = {"Retry-After": str(exc.retry_after)}
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": validation_message(exc.errors())})


@app.exception_handler(SQLAlchemyError)
async def handle_database_error(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Server error"})


def validation_message(errors) -> str:
    """First validation problem as a single human-readable message."""
    if not errors:
        return "Invalid request"
    err = errors[0]
    loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
    field = ".".join(loc)
    if field == "price":
        return "Invalid price"
    msg = err.get("msg", "Invalid request")
    if err.get("type") == "value_error":
        return msg.replace("Value error, ", "", 1)
    if err.get("type") == "missing":
        return "All fields must be provided"
    return f"{field}: {msg}" if field else msg


@app.on_event("startup")
def on_startup():
    # keep serving if the database is not reachable yet; /healthz reports it
    try:
        init_db()
    except SQLAlchemyError as e:
        logger.exception("Database bootstrap failed: %s", e)
    start_scheduler()


@app.on_event("shutdown")
def on_shutdown():
    stop_scheduler()
