import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from factory_ledger.api.v1.api import api_router
from factory_ledger.core.config import settings
from factory_ledger.core.errors import LedgerError
from factory_ledger.core.logging_config import configure_logging
from factory_ledger.db.mongo import close_mongo_connection, connect_to_mongo, get_db
from factory_ledger.repositories.catalog_repo import MongoProductCatalog, StaticProductCatalog
from factory_ledger.repositories.memory_repo import InMemoryTransactionStore
from factory_ledger.repositories.transaction_repo import TransactionRepository
from factory_ledger.schemas.common import ErrorEnvelope
from factory_ledger.services.renderer import PdfStatementRenderer

logger = logging.getLogger(__name__)


def _error_response(status_code: int, message: str, errors=None) -> JSONResponse:
    body = ErrorEnvelope(message=message, errors=errors or None)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            extra={"path": request.url.path, "error": type(exc).__name__, "detail": exc.message}
        )
    return _error_response(exc.status_code, exc.message, exc.errors)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    ]
    return _error_response(422, "Invalid request", errors)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(exc.status_code, str(exc.detail))


async def startup(application: FastAPI):
    """Pick storage and catalog backends from settings."""
    configure_logging()

    needs_mongo = settings.STORE_BACKEND == "mongo" or settings.CATALOG_BACKEND == "mongo"
    if needs_mongo:
        await connect_to_mongo()

    if settings.STORE_BACKEND == "memory":
        application.state.store = InMemoryTransactionStore()
    else:
        application.state.store = TransactionRepository(get_db())

    if settings.CATALOG_BACKEND == "mongo":
        application.state.catalog = MongoProductCatalog(get_db())
    else:
        application.state.catalog = StaticProductCatalog()

    application.state.renderer = PdfStatementRenderer()
    logger.info(
        "Factory ledger started",
        extra={"store": settings.STORE_BACKEND, "catalog": settings.CATALOG_BACKEND}
    )


@asynccontextmanager
async def lifespan(application: FastAPI):
    await startup(application)
    yield
    await close_mongo_connection()


def create_app() -> FastAPI:
    application = FastAPI(
        lifespan=lifespan,
        title=settings.PROJECT_NAME,
        version=settings.PROJECT_VERSION,
        description=settings.DESCRIPTION
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.add_exception_handler(LedgerError, ledger_error_handler)
    application.add_exception_handler(RequestValidationError, request_validation_handler)
    application.add_exception_handler(StarletteHTTPException, http_error_handler)

    @application.get("/")
    async def root():
        return {"success": True, "message": "Welcome to Factory Ledger API"}

    application.include_router(api_router, prefix=settings.API_V1_STR)
    return application


app = create_app()
