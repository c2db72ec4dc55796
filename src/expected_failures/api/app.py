import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..broker.redis_manager import RedisManager
from ..config import SECTION, ExpectedFailuresConfig
from ..exceptions import StorageError
from ..store.base import RecordStore
from ..store.redis_store import RedisRecordStore
from ..utils import settings
from ..utils.config_loader import ConfigLoader
from ..utils.logger import configure_logging
from .routers import failures

logger = logging.getLogger(__name__)


def _store_from_config(config_path: str) -> RecordStore:
    loader = ConfigLoader(config_path)
    failures_config = ExpectedFailuresConfig.from_mapping(loader.config.get(SECTION))
    redis_manager = RedisManager(config=loader.config.get("redis") or {})
    return RedisRecordStore(redis_manager, key_prefix=failures_config.key_prefix)


def create_app(
    store: Optional[RecordStore] = None, config_path: Optional[str] = None
) -> FastAPI:
    """Dashboard query API over a record store (Redis from config if none is given)."""
    app = FastAPI(title="Expected Failures")
    app.state.store = store or _store_from_config(config_path or settings.CONFIG_PATH)
    app.include_router(failures.router)

    # === Exception Handlers ===
    @app.exception_handler(StorageError)
    async def storage_exception_handler(request: Request, exc: StorageError):
        logger.error(f"Record store unavailable: {exc}")
        return JSONResponse(
            status_code=503, content={"detail": "Record store unavailable"}
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        return JSONResponse(status_code=422, content={"detail": exc.errors()})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    return app


def serve(host: str = "0.0.0.0", port: int = 8000) -> None:
    configure_logging()
    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    serve()
