from __future__ import annotations
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from treasure_hunt.config import settings
from treasure_hunt.db import SessionLocal
from treasure_hunt.errors import ConfigError, HuntError
from treasure_hunt.logging_setup import configure_logging
from treasure_hunt.routes.system import router as system_router
from treasure_hunt.routes.auth import router as auth_router
from treasure_hunt.routes.claims import router as claims_router
from treasure_hunt.routes.leaderboard import router as leaderboard_router
from treasure_hunt.routes.teams import router as teams_router
from treasure_hunt.routes.catalog import router as catalog_router
from treasure_hunt.routes.admin import router as admin_router
from treasure_hunt.services.roles import ensure_admin_role
import structlog

configure_logging()
log = structlog.get_logger()

async def bootstrap_admin() -> None:
    # a bad ADMIN_UID or an unreachable database must not keep the API from starting
    try:
        async with SessionLocal() as session:
            await ensure_admin_role(session, settings.admin_uid)
    except ConfigError as e:
        log.error("admin_bootstrap_failed", error=e.message)
    except Exception:
        log.exception("admin_bootstrap_failed")

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info("startup", env=settings.environment, version=settings.app_version, git_sha=settings.git_sha)
    await bootstrap_admin()
    yield
    # Shutdown
    log.info("shutdown")

app = FastAPI(
    title=f"{settings.app_display_name} API",
    version=settings.app_version,
    lifespan=lifespan,
    description=f"{settings.app_display_name} API for live scavenger-hunt claims and leaderboards"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.environment == "dev" else settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(HuntError)
async def hunt_error_handler(request: Request, exc: HuntError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{where}: {first.get('msg')}" if where else str(first.get("msg", "Invalid request."))
    return JSONResponse(status_code=400, content={"code": "invalid-argument", "message": message})

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    # rendered outside the request-id middleware, so the id is attached here
    rid = getattr(request.state, "request_id", None) or request.headers.get("x-request-id")
    log.exception("unhandled_error", path=request.url.path, request_id=rid)
    headers = {"X-Request-ID": rid} if rid else None
    return JSONResponse(
        status_code=500,
        content={"code": "internal", "message": "Internal server error."},
        headers=headers,
    )

# Include routers
app.include_router(system_router)
app.include_router(auth_router)
app.include_router(claims_router)
app.include_router(leaderboard_router)
app.include_router(teams_router)
app.include_router(catalog_router)
app.include_router(admin_router)

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = rid
    structlog.contextvars.bind_contextvars(request_id=rid)
    try:
        response: Response = await call_next(request)
    finally:
        structlog.contextvars.clear_contextvars()
    response.headers["X-Request-ID"] = rid
    return response
