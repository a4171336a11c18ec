import logging

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.responses import Response

from app.api.ai import router as ai_router
from app.api.auth import limiter as auth_limiter
from app.api.auth import router as auth_router
from app.api.billing import router as billing_router
from app.api.data import router as data_router
from app.api.domains import router as domains_router
from app.config import settings, warn_insecure_service_urls
from app.errors import register_error_handlers
from app.logging import configure_logging
from app.observability import ObservabilityMiddleware
from app.services.ai_helpers import GeminiTextModel, TextModel
from app.services.whmcs import BillingBackend, build_backend

logger = logging.getLogger(__name__)


def create_app(
    backend: BillingBackend | None = None,
    text_model: TextModel | None = None,
) -> FastAPI:
    """Build the portal API.

    ``backend`` and ``text_model`` default to the configured WHMCS backend
    and the Gemini model; tests pass fakes.
    """
    configure_logging()
    warn_insecure_service_urls(settings)

    app = FastAPI(title="Customer Portal API")
    app.state.billing = backend if backend is not None else build_backend(settings)
    app.state.text_model = text_model if text_model is not None else GeminiTextModel()
    app.state.limiter = auth_limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(ObservabilityMiddleware)
    register_error_handlers(app)

    for router in (auth_router, data_router, domains_router, billing_router, ai_router):
        app.include_router(router, prefix="/api")

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    @app.get("/metrics")
    def metrics():
        data = generate_latest()
        return Response(content=data, media_type=CONTENT_TYPE_LATEST)

    logger.info("Portal API ready (billing backend: %s)", type(app.state.billing).__name__)
    return app


app = create_app()
