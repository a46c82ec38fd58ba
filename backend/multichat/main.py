import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from multichat.api.routes.chat import router as chat_router
from multichat.api.routes.models import router as models_router
from multichat.config.settings import get_settings
from multichat.core.container import AppContainer, get_container, set_container
from multichat.db.session import create_schema
from multichat.middleware.error_handler import (
    ServiceError,
    catch_all_handler,
    provider_error_handler,
    service_error_handler,
    validation_error_handler,
)
from multichat.providers.errors import ProviderConfigError, ProviderNotFoundError
from multichat.providers.http import HTTPClientProvider
from multichat.providers.registry import build_registry

logger = logging.getLogger(__name__)


def _configure_app_logging() -> None:
    """Ensure multichat.* logs are visible under the same sink as uvicorn error logs."""
    app_logger = logging.getLogger("multichat")
    uvicorn_error_logger = logging.getLogger("uvicorn.error")

    if uvicorn_error_logger.handlers:
        app_logger.handlers = list(uvicorn_error_logger.handlers)
        app_logger.setLevel(uvicorn_error_logger.level or logging.INFO)
        app_logger.propagate = False
        return

    if not app_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(levelname)s:     %(name)s - %(message)s")
        )
        app_logger.addHandler(handler)
    app_logger.setLevel(logging.INFO)
    app_logger.propagate = False


@asynccontextmanager
async def lifespan(app: FastAPI):
    _configure_app_logging()
    settings = get_settings()

    # Tests may install a container with fake providers before startup.
    container = get_container()
    owns_container = container is None
    if container is None:
        http = HTTPClientProvider(timeout=settings.request_timeout)
        container = AppContainer(registry=build_registry(settings, http), http=http)
        set_container(container)
    app.state.container = container

    create_schema()
    for name, configured in (
        ("Google", bool(settings.google_api_key)),
        ("HuggingFace", bool(settings.huggingface_api_token)),
        ("Nvidia", bool(settings.nvidia_api_key)),
    ):
        if not configured:
            logger.info("No %s API key configured - its models will fail on send", name)

    yield

    if owns_container:
        await container.http.aclose()
        set_container(None)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(ProviderConfigError, provider_error_handler)
    app.add_exception_handler(ProviderNotFoundError, provider_error_handler)
    app.add_exception_handler(Exception, catch_all_handler)

    app.include_router(models_router)
    app.include_router(chat_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
