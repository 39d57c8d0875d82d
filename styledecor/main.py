from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
import logging

from .config import Settings, get_settings
from .db import create_client, ensure_indexes
from .errors import DomainError
from .gateways import PaymentGateway, get_gateway
from .routers import auth, users, services, decorators, bookings, payments

# Configurar logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    client = None
    if app.state.db is None:
        settings = app.state.settings
        client = create_client(settings)
        app.state.db = client[settings.db_name]
        await ensure_indexes(app.state.db)
        logger.info(f"Connected to MongoDB database '{settings.db_name}'")
    yield
    if client is not None:
        client.close()


def _fail(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, **extra})


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        return _fail(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        response = _fail(exc.status_code, str(exc.detail))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        # Mismo código que ValidationError del dominio: toda entrada inválida es 400
        return _fail(400, "Invalid request", errors=jsonable_encoder(exc.errors()))

    @app.exception_handler(PyMongoError)
    async def storage_error_handler(request: Request, exc: PyMongoError):
        logger.error(f"Storage error on {request.url.path}: {exc}", exc_info=True)
        return _fail(503, "Storage unavailable")

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(f"Unexpected error on {request.url.path}: {exc}", exc_info=True)
        return _fail(500, "Internal server error")


def create_app(
    settings: Optional[Settings] = None,
    db: Optional[AsyncIOMotorDatabase] = None,
    gateway: Optional[PaymentGateway] = None,
) -> FastAPI:
    """
    Construye la app. ``db`` y ``gateway`` se pueden inyectar (tests);
    si no, la conexión a Mongo se abre en el lifespan.
    """
    settings = settings or get_settings()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db
    app.state.gateway = gateway or get_gateway(settings)
    # Configurar rate limiting
    app.state.limiter = Limiter(key_func=get_remote_address)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    register_exception_handlers(app)

    # Configuración de CORS según entorno
    if settings.env == "dev":
        cors_origins = [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
        cors_regex = r"https?://(localhost|127\.0\.0\.1)(:\d+)?"
        cors_headers = ["Authorization", "Content-Type", "Accept", "Origin", "X-Requested-With"]
    else:
        # Producción: solo el front configurado
        frontend_url = settings.frontend_base_url
        cors_origins = [frontend_url] if frontend_url else []
        cors_regex = None
        cors_headers = ["Authorization", "Content-Type", "Accept"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_origin_regex=cors_regex,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=cors_headers,
        expose_headers=["Content-Type"],
    )

    @app.get("/health")
    async def health():
        return {"status": "ok", "env": settings.env, "payment_gateway": app.state.gateway.name}

    # Routers
    app.include_router(auth.router, prefix="/auth", tags=["auth"])
    app.include_router(users.router, prefix="/users", tags=["users"])
    app.include_router(decorators.router, prefix="/decorators", tags=["decorators"])
    app.include_router(services.router, prefix="/services", tags=["services"])
    app.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
    app.include_router(payments.router, prefix="/payments", tags=["payments"])

    # Endpoint de desarrollo (solo en dev)
    if settings.env == "dev":
        from .routers import dev
        app.include_router(dev.router, prefix="/dev", tags=["dev"])

    return app


app = create_app()
