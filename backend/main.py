import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

# Import all models first to ensure SQLAlchemy metadata is properly initialized
import noslimites.models  # noqa: F401
from noslimites import db_init
from noslimites.errors import NosLimitesError
from noslimites.frontend_url import get_allowed_origins

# Import routers after models
from noslimites.api.auth import router as auth_router
from noslimites.api.devices import router as devices_router
from noslimites.api.profile import router as profile_router
from noslimites.api.relationships import router as relationships_router
from noslimites.api.limits import router as limits_router
from noslimites.api.notifications import router as notifications_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tables, catalog seed and duplicate repair, once per process
    db_init.ensure_database_initialized()
    yield


app = FastAPI(title="Nos limites API", lifespan=lifespan)

ALLOWED_ORIGINS = get_allowed_origins()

# CORS middleware must be added before routes
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def make_cors_response(request: Request, status_code: int, content: dict):
    """JSONResponse carrying CORS headers for allowed origins."""
    headers = {}
    origin = request.headers.get("origin")
    if origin and origin.rstrip("/") in ALLOWED_ORIGINS:
        headers = {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Credentials": "true",
        }
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(NosLimitesError)
async def domain_exception_handler(request: Request, exc: NosLimitesError):
    if exc.status_code >= 500:
        logger.error(f"{exc.kind}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.kind}")
    return make_cors_response(request, exc.status_code, exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors (422) with CORS headers."""
    logger.warning(f"Validation error: {exc.errors()}")
    return make_cors_response(
        request,
        422,
        {"kind": "validation_error", "detail": "Données invalides.", "errors": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    kind = "not_found" if exc.status_code == 404 else "http_error"
    return make_cors_response(request, exc.status_code, {"kind": kind, "detail": exc.detail})


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    # Details stay in the logs, never in the response
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    return make_cors_response(
        request,
        500,
        {"kind": "internal_error", "detail": "Erreur interne du serveur."},
    )


@app.get("/health")
def health():
    return {"ok": True, "origins": ALLOWED_ORIGINS}


app.include_router(auth_router)
app.include_router(devices_router)
app.include_router(profile_router)
app.include_router(relationships_router)
app.include_router(limits_router)
app.include_router(notifications_router)
