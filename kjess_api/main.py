import logging
import os
import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from . import crud
from .auth import seed_admin
from .chat_service import ChatPipeline
from .config import Settings
from .db import Base, make_engine, make_session_factory
from .errors import AppError
from .images import ImagePipeline
from .llm_service import ChatResponder
from .routers import router
from .storage import build_storage

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


def _seed(session_factory, settings: Settings) -> None:
    with session_factory() as db:
        if not crud.get_chat_settings(db):
            logger.info("Initializing default chat settings")
            crud.upsert_chat_settings(db, {})
        seed_admin(db, settings)


def create_app(settings: Optional[Settings] = None, responder=None, storage=None) -> FastAPI:
    """Build the API. ``responder`` and ``storage`` override the configured backends."""
    settings = settings or Settings()
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)

    engine = make_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)
    session_factory = make_session_factory(engine)

    storage = storage or build_storage(settings)
    storage.ensure_bucket()

    app = FastAPI(title=settings.app_name)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.storage = storage
    app.state.images = ImagePipeline(
        storage,
        max_attempts=settings.upload_max_attempts,
        backoff_seconds=settings.upload_backoff_seconds,
    )
    app.state.chat = ChatPipeline(settings, responder or ChatResponder.from_settings(settings))

    _seed(session_factory, settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        if request.url.path.startswith("/api"):
            elapsed = (time.perf_counter() - start) * 1000
            logger.info("%s %s %s in %.0fms", request.method, request.url.path, response.status_code, elapsed)
        return response

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s: %s", request.method, request.url.path, type(exc).__name__, exc.detail)
        content = {"message": exc.message}
        if exc.expose_detail and exc.detail:
            content["error"] = exc.detail
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"message": "Please check your inputs", "errors": jsonable_encoder(exc.errors())},
        )

    app.include_router(router, prefix="/api")

    if storage.name == "local":
        os.makedirs(settings.upload_dir, exist_ok=True)
        app.mount(settings.upload_url_prefix, StaticFiles(directory=settings.upload_dir), name="uploads")

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("kjess_api.main:app", host="0.0.0.0", port=port, log_level="info")
