import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import engine
from app.exceptions import AppException, ValidationError
from app.middleware import RequestLogMiddleware
from app.routers import articles, profiles, tags, users
from app.schemas import BLANK

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting Conduit API (env=%s)", settings.APP_ENV)
    yield
    await engine.dispose()


app = FastAPI(
    title="Conduit API",
    description="Social blogging backend: articles, comments, tags, favorites and follows",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(RequestLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error mapping — the only place failure kinds become responses
# ---------------------------------------------------------------------------

def _field_errors(errors) -> dict[str, str]:
    """Collapse pydantic error entries into ``{field: message}``."""
    fields: dict[str, str] = {}
    for err in errors:
        # loc[0] is the request part, not a field
        names = [part for part in err["loc"][1:] if isinstance(part, str)]
        field = names[-1] if names else "body"
        if err["type"] == "missing":
            message = BLANK
        elif err["type"] == "value_error" and "error" in err.get("ctx", {}):
            message = str(err["ctx"]["error"])
        else:
            message = err["msg"]
        fields.setdefault(field, message)
    return fields


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=exc.status_code, content={"errors": exc.errors})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=422, content={"errors": _field_errors(exc.errors())})


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    logger.debug("%s %s rejected with %d: %s", request.method, request.url.path, exc.status_code, exc.message)
    return Response(status_code=exc.status_code)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return Response(status_code=500)


# Routers
app.include_router(users.router)
app.include_router(profiles.router)
app.include_router(articles.router)
app.include_router(tags.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
