from fastapi import FastAPI

from app.posgate.api import api_router
from app.posgate.core.config import settings
from app.posgate.core.errors import setup_exception_handlers
from app.posgate.core.logging import configure_logging
from app.posgate.middleware.trace import TraceIdMiddleware


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME)
    app.add_middleware(TraceIdMiddleware)
    setup_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()
