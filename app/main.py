from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .api.alerts import router as alerts_router
from .api.cron import router as cron_router
from .api.prices import router as prices_router
from .api.users import router as users_router
from .config import Settings
from .errors import NotFound, StoreError, Unauthorized, ValidationFailed
from .logs import configure_logging
from .metrics import metrics_middleware, router as metrics_router
from .notify import EmailNotifier, Notifier
from .prices import PriceSource
from .services.evaluator import AlertEvaluator
from .store import AlertStore, build_store

logger = logging.getLogger(__name__)


def _install_error_handlers(application: FastAPI) -> None:
    @application.exception_handler(ValidationFailed)
    async def _validation(request: Request, exc: ValidationFailed) -> JSONResponse:
        return JSONResponse({"detail": str(exc)}, status_code=400)

    @application.exception_handler(Unauthorized)
    async def _unauthorized(request: Request, exc: Unauthorized) -> JSONResponse:
        return JSONResponse({"detail": str(exc)}, status_code=401)

    @application.exception_handler(NotFound)
    async def _not_found(request: Request, exc: NotFound) -> JSONResponse:
        return JSONResponse({"detail": str(exc)}, status_code=404)

    @application.exception_handler(StoreError)
    async def _store_error(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("storage failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse({"detail": "storage unavailable"}, status_code=503)


def create_app(
    settings: Settings | None = None,
    store: AlertStore | None = None,
    prices: PriceSource | None = None,
    notifier: Notifier | None = None,
) -> FastAPI:
    """Build the FastAPI application around explicitly constructed collaborators."""
    configure_logging()
    settings = settings or Settings.from_env()
    store = store if store is not None else build_store(settings)
    prices = prices or PriceSource.from_settings(settings)
    notifier = notifier or EmailNotifier.from_settings(settings)

    application = FastAPI(title="Crypto Price Alerts")
    application.state.settings = settings
    application.state.store = store
    application.state.prices = prices
    application.state.evaluator = AlertEvaluator(store, prices, notifier)

    # Attach Prometheus instrumentation to every HTTP request.
    application.middleware("http")(metrics_middleware)
    # Respect X-Forwarded-* from a fronting proxy to generate correct URLs (https)
    application.add_middleware(ProxyHeadersMiddleware)
    _install_error_handlers(application)

    if settings.metrics_endpoint:
        # Only expose /metrics when the deployment explicitly enables it.
        application.include_router(metrics_router)

    application.include_router(alerts_router)
    application.include_router(prices_router)
    application.include_router(cron_router)
    application.include_router(users_router)

    @application.get("/health")
    def _health() -> dict[str, str]:
        """Tiny health check used by Docker and uptime monitors."""
        return {"status": "ok"}

    return application
