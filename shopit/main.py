import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .clients.images import CloudinaryImageStore
from .clients.payments import StripeGateway
from .config import Settings, load_settings
from .consumers import start_consumer_thread
from .database import Base, build_engine, build_session_factory
from .errors import register_error_handlers
from .logging_setup import setup_logging
from .mailer import SMTPMailer
from .messaging.bus import EventBus
from .ratelimit import RateLimiter
from .routers import auth, orders, payment, products

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings = None,
    session_factory=None,
    image_store=None,
    payment_gateway=None,
    mailer=None,
    event_bus=None,
    rate_limiter=None,
) -> FastAPI:
    """
    Builds the application. Collaborators that are not passed in are built
    from `settings`; tests hand in their own.
    """
    settings = settings or load_settings()
    setup_logging(settings.log_level)

    if session_factory is None:
        engine = build_engine(settings.database_url, pool_pre_ping=True)
        session_factory = build_session_factory(engine, settings.db_statement_timeout_ms)
    if image_store is None:
        image_store = CloudinaryImageStore(
            settings.cloudinary_name, settings.cloudinary_key, settings.cloudinary_secret
        )
    if payment_gateway is None:
        payment_gateway = StripeGateway(settings.stripe_secret)
    if mailer is None:
        mailer = SMTPMailer(
            settings.smtp_host, settings.smtp_port, settings.smtp_username, settings.smtp_password
        )
    if event_bus is None and settings.events_enabled:
        event_bus = EventBus(settings.rabbitmq_host)
    if rate_limiter is None:
        rate_limiter = RateLimiter(
            settings.rate_limit_rps,
            settings.rate_limit_burst,
            settings.rate_limit_max_clients,
            settings.rate_limit_idle_seconds,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Create database tables on startup if they don't exist.
        Base.metadata.create_all(bind=session_factory.kw["bind"])
        if settings.events_enabled:
            start_consumer_thread(session_factory, settings.rabbitmq_host)
        logger.info("ShopIT service started")
        yield
        if event_bus is not None:
            event_bus.close()

    app = FastAPI(title="ShopIT", lifespan=lifespan)
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.image_store = image_store
    app.state.payment_gateway = payment_gateway
    app.state.mailer = mailer
    app.state.event_bus = event_bus
    app.state.rate_limiter = rate_limiter

    app.middleware("http")(rate_limiter.middleware)
    # Added last so it wraps the limiter and 429s still carry CORS headers.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    @app.get("/")
    def root():
        """Health check endpoint."""
        return {"message": "ShopIT service is running"}

    app.include_router(auth.router)
    app.include_router(products.router)
    app.include_router(orders.router)
    app.include_router(payment.router)
    return app


if __name__ == "__main__":
    uvicorn.run(create_app(), host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
