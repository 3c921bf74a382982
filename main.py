from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException

from src.api.alerts.routes import alerts_router
from src.api.inventory.routes import inventory_router
from src.config.settings import settings
from src.dependencies.services import ServiceContainer
from src.middleware.error import http_exception_handler
from src.middleware.timing import add_process_time_header
from src.shared.error_handler import ServiceError
from src.shared.utils import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    container = await ServiceContainer.from_settings(settings)
    await container.start(create_tables=settings.ENVIRONMENT == "development")
    app.state.services = container
    try:
        yield
    finally:
        await container.shutdown()


def create_app(lifespan_handler=lifespan) -> FastAPI:
    app = FastAPI(
        title="Inventory Reservation API",
        description="Real-time stock reservations, availability and stock alerts.",
        version="1.0.0",
        lifespan=lifespan_handler,
    )

    app.include_router(inventory_router)
    app.include_router(alerts_router)

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(ServiceError, http_exception_handler)
    app.add_exception_handler(Exception, http_exception_handler)
    app.middleware("http")(add_process_time_header)

    @app.get("/", tags=["App"])
    async def read_root():
        return "Hello World!"

    return app


app = create_app()
