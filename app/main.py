# app/main.py

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.db import init_models
from app.esign.client import ProviderClient
from app.esign.exceptions import SignatureBaseException
from app.utils.logger import setup_app_logging, get_logger
# Local application imports - Routes
from app.users.router import router as user_routes
from app.documents.router import router as document_routes
from app.signature_terms.router import router as signature_term_routes
from app.esign.router import router as esign_routes

ERROR_CODES_BY_STATUS = {
    400: "validation",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    422: "unprocessable",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create tables and the shared provider client on startup, release the
    client's connection pool on shutdown.
    """
    await init_models()
    app.state.provider_client = ProviderClient.from_settings(settings)
    logger.info("Provider client ready", base_url=settings.provider_base_url)
    yield
    await app.state.provider_client.close()


# Create the FastAPI app
signature_app = FastAPI(
    title=f"Signature Back Office - {settings.environment}",
    description="Back office for documents and auto signature terms sent to the signature provider",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Configure logging
if settings.environment.lower() != "production":
    setup_app_logging(
        signature_app,
        log_level=settings.log_level,
        use_json=False,
        log_file=settings.log_file,
        app_name="Signature Back Office",
        environment=settings.environment,
    )
else:
    setup_app_logging(
        signature_app,
        log_level=settings.log_level,
        use_json=True,
        log_file=settings.log_file,
        app_name="Signature Back Office",
        environment="production",
    )
logger = get_logger(__name__)

# Add CORS middleware
signature_app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_cors_urls.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Failure envelope: {"message": ..., "code": ...}
@signature_app.exception_handler(SignatureBaseException)
async def signature_exception_handler(request: Request, exc: SignatureBaseException):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message, "code": exc.code})


@signature_app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    if isinstance(detail, dict) and "message" in detail and "code" in detail:
        content = {"message": detail["message"], "code": detail["code"]}
    else:
        content = {"message": str(detail), "code": ERROR_CODES_BY_STATUS.get(exc.status_code, "http_error")}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@signature_app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}" for error in errors
    ) or "Invalid request"
    logger.info("Request validation failed", path=request.url.path, errors=len(errors))
    return JSONResponse(status_code=400, content={"message": message, "code": "validation"})


# Include routers
signature_app.include_router(user_routes)
signature_app.include_router(document_routes)
signature_app.include_router(signature_term_routes)
signature_app.include_router(esign_routes)


# Root API to check if the server is up
@signature_app.get("/", tags=["Base"])
async def health_check():
    """
    Root API to check if the server is up
    """
    logger.info("Calling root API for testing")
    return {"status": "ok"}
