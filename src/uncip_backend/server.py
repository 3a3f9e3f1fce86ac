import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from uncip_backend.api.alerts import alert_router
from uncip_backend.api.auth import auth_router
from uncip_backend.api.children import child_router
from uncip_backend.api.exceptions import BadRequestException, validation_error_fields
from uncip_backend.api.system import system_router
from uncip_backend.api.users import signup_router, user_router
from uncip_backend.context import build_context
from uncip_backend.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.validate_runtime()

    if getattr(app.state, "context", None) is None:
        app.state.context = build_context(settings)
        logger.info(f"Backend context ready (store: {settings.DOCUMENT_STORE})")

    yield


app = FastAPI(lifespan=lifespan)

origins = [
    "*"
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Total-Count"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    error = BadRequestException("Invalid payload", fields=validation_error_fields(exc.errors()))
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": error.detail})


app.include_router(
    system_router,
    tags=["system"]
)

app.include_router(
    auth_router,
    prefix="/auth",
    tags=["auth"]
)

app.include_router(
    signup_router,
    prefix="/signup",
    tags=["signup"]
)

app.include_router(
    user_router,
    prefix="/users",
    tags=["users"]
)

app.include_router(
    child_router,
    prefix="/children",
    tags=["children"]
)

app.include_router(
    alert_router,
    prefix="/alerts",
    tags=["alerts"]
)
