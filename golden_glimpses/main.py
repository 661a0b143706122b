# golden_glimpses/main.py
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, get_settings
from .errors import CapsuleError
from .routers import auth, capsules, health, media, users
from .services.capsules import CapsuleService
from .services.users import UserService
from .store import CapsuleStore, UserStore, build_stores
from .utils.storage import LOCAL_URL_PREFIX, BlobStore, LocalBlobStore, build_blob_store

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="[%(asctime)s] %(levelname)s in %(name)s: %(message)s",
    )


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(CapsuleError)
    async def capsule_error(request: Request, exc: CapsuleError):
        return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": first, "errors": jsonable_encoder(errors)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


def create_app(
    settings: Optional[Settings] = None,
    capsule_store: Optional[CapsuleStore] = None,
    user_store: Optional[UserStore] = None,
    blob_store: Optional[BlobStore] = None,
) -> FastAPI:
    """
    Build the API. Storage and blob backends are chosen here, once, unless
    they are passed in.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    if capsule_store is None or user_store is None:
        default_capsules, default_users = build_stores(settings)
        capsule_store = capsule_store or default_capsules
        user_store = user_store or default_users
    blob_store = blob_store or build_blob_store(settings)

    app = FastAPI(title="Golden Glimpses")
    app.state.settings = settings
    app.state.capsules = CapsuleService(capsule_store, require_future_unsealing=settings.require_future_unsealing)
    app.state.users = UserService(user_store, bcrypt_rounds=settings.bcrypt_rounds)
    app.state.blobs = blob_store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(capsules.router)
    app.include_router(media.router)

    if isinstance(blob_store, LocalBlobStore):
        app.mount(LOCAL_URL_PREFIX, StaticFiles(directory=str(blob_store.root)), name="uploads")

    logger.info("Golden Glimpses ready (env=%s, storage=%s, blobs=%s)",
                settings.env, type(capsule_store).__name__, type(blob_store).__name__)
    return app
