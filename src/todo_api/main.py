import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import NotFoundError, StoreError, ValidationError
from .logging_setup import setup_logging
from .reconciler import DueDateReconciler
from .repositories import get_repository
from .routers import todos as todos_router
from .schemas import ApiResponse
from .service import TodoService
from .settings import get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "todos",
        "description": "CRUD operations for Todo items with priority/completion filtering.",
    },
]

_settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Configure logging and run the due-date reconciler for the lifetime of the app.
    """
    setup_logging(console_level=_settings.log_level, log_file=_settings.log_file)
    reconciler = None
    if _settings.reconciler_enabled:
        reconciler = DueDateReconciler(
            TodoService(get_repository()),
            interval_seconds=_settings.reconciler_interval_seconds,
        )
        reconciler.start()
    app.state.reconciler = reconciler
    try:
        yield
    finally:
        if reconciler is not None:
            await reconciler.stop()


app = FastAPI(
    title="Todo API",
    description="Task list service with filtering and automatic completion of overdue tasks.",
    version="0.1.0",
    openapi_tags=openapi_tags,
    lifespan=lifespan,
)

# Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
allow_all = (_settings.cors_allow_origins == ["*"]) or (len(_settings.cors_allow_origins) == 0)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all else _settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _envelope(status_code: int, message: str, data: Any = None) -> JSONResponse:
    body = ApiResponse[Any](status_code=status_code, message=message, data=data)
    return JSONResponse(status_code=status_code, content=body.to_content())


def _field_messages(errors: List[Dict[str, Any]]) -> List[str]:
    """
    Turn pydantic error entries into readable per-field messages.

    Errors raised by our own validators carry the message verbatim; built-in
    type errors are prefixed with the field name.
    """
    messages: List[str] = []
    for err in errors:
        cause = (err.get("ctx") or {}).get("error")
        if cause is not None:
            messages.append(str(cause))
            continue
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc)
        messages.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return messages


# Global exception handlers for consistent JSON envelopes
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return request validation failures as a 400 envelope.

    Response format:
        {
            "statusCode": 400,
            "message": "Validation failed for one or more fields",
            "data": ["Title is mandatory", ...]
        }
    """
    return _envelope(400, "Validation failed for one or more fields", _field_messages(exc.errors()))


@app.exception_handler(ValidationError)
async def domain_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return _envelope(400, exc.message)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return _envelope(404, exc.message)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc.message)
    return _envelope(500, "Storage failure")


# PUBLIC_INTERFACE
@app.get("/", summary="Health Check", tags=["health"])
def health_check():
    """
    Health check endpoint.

    Returns:
        A JSON object indicating service health.
    """
    return {"message": "Healthy", "backend": _settings.persistence_backend}


# Include routers
app.include_router(todos_router.router)
