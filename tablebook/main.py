"""
TableBook - restaurant booking engine API
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
import structlog

from tablebook.api import availability, payments, reservations, schedule, settings as settings_api, tables, waitlist
from tablebook.config import Settings, get_settings
from tablebook.database import build_engine, build_session_factory
from tablebook.engine.errors import BookingError
from tablebook.engine.notifier import CeleryNotifier
from tablebook.gateways.stripe_gateway import StripeGateway
from tablebook.jobs.celery_app import create_celery_app
from tablebook.webhooks import stripe as stripe_webhooks, twilio as twilio_webhooks


def configure_logging(settings: Settings) -> None:
    """Configure structured logging"""
    logging.basicConfig(format="%(message)s", level=settings.log_level.upper())
    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting TableBook API", version="1.0.0")
    yield
    logger.info("Shutting down TableBook API")
    await app.state.db_engine.dispose()


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Render engine errors as {"error", "detail", ...context}"""
    log = logger.error if exc.http_status >= 500 else logger.info
    log("request_rejected", path=request.url.path, error=exc.code, detail=exc.detail)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


def create_app(settings: Settings) -> FastAPI:
    configure_logging(settings)

    app = FastAPI(
        title="TableBook",
        description="Restaurant reservations, deposits and waitlist",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Collaborators are built once and handed to the engine through dependencies
    app.state.settings = settings
    app.state.db_engine = build_engine(settings)
    app.state.session_factory = build_session_factory(app.state.db_engine)
    app.state.celery = create_celery_app(settings)
    app.state.payment_gateway = StripeGateway(settings.stripe_secret_key, timeout=settings.stripe_timeout_seconds)
    app.state.notifier = CeleryNotifier(app.state.celery)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(BookingError, booking_error_handler)

    # Health check endpoints
    @app.get("/health")
    async def health():
        """Basic health check"""
        return {"status": "healthy", "service": "tablebook", "version": "1.0.0"}

    @app.get("/health/ready")
    async def ready():
        """Readiness check with dependency verification"""
        checks = {}

        # Check database
        try:
            async with app.state.session_factory() as db:
                await db.execute(text("SELECT 1"))
            checks["database"] = "ok"
        except Exception as e:
            checks["database"] = f"failed: {str(e)}"

        # Check Redis
        try:
            app.state.celery.control.ping(timeout=1)
            checks["redis"] = "ok"
        except Exception as e:
            checks["redis"] = f"failed: {str(e)}"

        all_ok = all(v == "ok" for v in checks.values())

        return {
            "status": "ready" if all_ok else "not_ready",
            "checks": checks,
        }

    # Include API routers
    app.include_router(availability.router, prefix="/availability", tags=["Availability"])
    app.include_router(reservations.router, prefix="/reservations", tags=["Reservations"])
    app.include_router(payments.router, prefix="/payments", tags=["Payments"])
    app.include_router(waitlist.router, prefix="/waitlist", tags=["Waitlist"])
    app.include_router(tables.router, prefix="/tables", tags=["Tables"])
    app.include_router(schedule.router, prefix="/day-overrides", tags=["Schedule"])
    app.include_router(settings_api.router, prefix="/settings", tags=["Settings"])

    # Include webhook routers
    app.include_router(stripe_webhooks.router, prefix="/webhooks", tags=["Webhooks"])
    app.include_router(twilio_webhooks.router, prefix="/webhooks", tags=["Webhooks"])

    return app


app = create_app(get_settings())


if __name__ == "__main__":
    import uvicorn

    settings = app.state.settings
    uvicorn.run(
        "tablebook.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
