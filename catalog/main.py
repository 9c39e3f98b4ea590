from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from catalog.config import get_settings
from catalog.database import engine, Base
from catalog.exceptions import CatalogError
from catalog.api import health, products
from catalog.api.vocabulary import attributes_router, categories_router
from catalog.models import attribute, category, log, product  # noqa: F401  (register tables)
from catalog.utils.storage import StorageService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    logger.info("Starting up catalog service...")

    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)

    logger.info("Preparing asset storage directories...")
    StorageService().prepare_directories()

    yield

    logger.info("Shutting down catalog service...")


app = FastAPI(
    title="Product Catalog Administration",
    description="""
    Administrative backend for a product catalog:

    - **Products**: create, edit, activate/deactivate and delete products
    - **Categories & Attributes**: uniquely named vocabularies assigned to products
    - **Pricing**: prices presented in any currency via cached exchange rates
    - **Assets**: product icons and images with collision-free file names
    """,
    version="1.0.0",
    lifespan=lifespan
)


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    """Translate catalog errors into JSON responses."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} {exc.details}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Include API routers
app.include_router(health.router, prefix="/api/v1")
app.include_router(products.router, prefix="/api/v1")
app.include_router(categories_router, prefix="/api/v1")
app.include_router(attributes_router, prefix="/api/v1")


@app.get("/", tags=["Root"])
def root():
    """Root endpoint with API information."""
    return {
        "name": "Product Catalog Administration",
        "version": "1.0.0",
        "environment": settings.APP_ENV,
        "docs": "/docs",
        "health": "/api/v1/health"
    }
