"""
Day Book Ledger API Application Factory
"""

from typing import Optional

import uvicorn

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from .deps import LedgerSystem
from .auth import router as auth_router
from .users import router as users_router
from .day_book import router as day_book_router
from .personal import router as personal_router
from .banking import router as banking_router
from .. import __version__
from ..config import get_config
from ..errors import DaybookError
from ..file_store import LocalFileStore
from ..logging_config import get_logger, new_correlation_id, request_context, setup_logging


logger = get_logger("daybook.api")

REQUEST_ID_HEADER = "X-Request-ID"


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure as {"error": message}"""

    @app.exception_handler(DaybookError)
    async def daybook_error_handler(request: Request, exc: DaybookError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": _validation_message(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled error on {request.method} {request.url.path}: {exc}",
            exc_info=exc
        )
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(system: Optional[LedgerSystem] = None) -> FastAPI:
    """Create and configure the FastAPI application"""
    if system is None:
        system = LedgerSystem.from_config()
    setup_logging(system.config.log_level)

    app = FastAPI(
        title="Day Book Ledger API",
        description="Multi-tenant day book, personal ledger and bank ledger",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.system = system

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=system.config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next):
        """Tag every log line of a request with its correlation id"""
        correlation_id = request.headers.get(REQUEST_ID_HEADER) or new_correlation_id()
        with request_context(correlation_id, method=request.method, path=request.url.path):
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = correlation_id
        return response

    register_exception_handlers(app)

    # Include routers
    app.include_router(auth_router, prefix="/api/auth", tags=["Auth"])
    app.include_router(users_router, prefix="/api/users", tags=["Users"])
    app.include_router(day_book_router, prefix="/api/daybook", tags=["Day Book"])
    app.include_router(personal_router, prefix="/api/personal", tags=["Personal"])
    app.include_router(banking_router, prefix="/api/daybank", tags=["Bank Ledger"])

    # Serve receipts written by the local file store
    if isinstance(system.file_store, LocalFileStore) and system.file_store.base_url.startswith("/"):
        app.mount(
            system.file_store.base_url,
            StaticFiles(directory=str(system.file_store.root), check_dir=False),
            name="receipts"
        )

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "daybook_api",
            "version": __version__
        }

    # Root endpoint
    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Day Book Ledger API",
            "version": __version__,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "auth": "/api/auth",
                "users": "/api/users",
                "daybook": "/api/daybook",
                "personal": "/api/personal",
                "daybank": "/api/daybank",
            }
        }

    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
    """Run the FastAPI server"""
    config = get_config()
    uvicorn.run(
        "daybook.api:create_app",
        factory=True,
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level=config.log_level.lower()
    )
