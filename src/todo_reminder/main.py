import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import StorageError, TaskLogError
from .routers import reminders as reminders_router
from .routers import todos as todos_router
from .routers import view as view_router
from .services import get_services, reset_services
from .settings import get_settings

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Set up root logging once; later calls leave existing handlers alone."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


_settings = get_settings()
configure_logging(_settings.log_level)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "todos", "description": "Create, edit, complete and delete todos; set reminders; read the task log."},
    {"name": "view", "description": "Filtered, grouped view of the todos and its saved configuration."},
    {"name": "reminders", "description": "Fired reminders awaiting an answer and the overdue sweep."},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    get_services()
    yield
    reset_services()


app = FastAPI(
    title="Todo Reminder",
    description="Todos grouped into views, with reminders and a structured task log.",
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


# Global exception handlers for consistent JSON on validation errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return a consistent JSON structure for request validation errors.

    Response format:
        {
            "error": "ValidationError",
            "detail": [... pydantic/fastapi error details ...],
            "message": "Request validation failed"
        }
    """
    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry the original ValueError, which is not JSON serializable
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        errors.append(error)
    return errors


@app.exception_handler(StorageError)
@app.exception_handler(TaskLogError)
async def io_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Storage and task-log failures. The change has been applied in memory; it
    may not have been written out.
    """
    logger.error(f"{type(exc).__name__} while handling {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"error": type(exc).__name__, "message": str(exc)},
    )


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
app.include_router(view_router.router)
app.include_router(reminders_router.router)
