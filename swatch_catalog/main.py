# swatch_catalog/main.py
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
import logging
from contextlib import asynccontextmanager

from swatch_catalog.config import settings
from swatch_catalog.core.errors import CatalogError, ProductValidationError
from swatch_catalog.database import db
from swatch_catalog.storage import storage
from swatch_catalog.api.routes import products as product_routes
from swatch_catalog.api.routes import export as export_routes
from swatch_catalog.api.routes import storage as storage_routes
from swatch_catalog.middleware.cors_config import configure_cors
from swatch_catalog.middleware.security_headers import add_security_headers


logger = logging.getLogger("uvicorn.error")

PLACEHOLDER_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="400" height="400" viewBox="0 0 400 400">'
    '<rect width="400" height="400" fill="#e5e7eb"/>'
    '<text x="200" y="205" font-family="sans-serif" font-size="20" fill="#9ca3af" '
    'text-anchor="middle">No image</text></svg>'
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context: run startup checks before the app starts serving,
    and allow for clean shutdown actions if needed later.
    """
    # --- startup logic ---
    products_path = db._file_path("products")
    if not products_path.exists():
        logger.warning(
            "Products table not found at %s; it will be created on first add (or run scripts/init_db.py).",
            products_path,
        )
    else:
        logger.info("Found products table: %s", products_path)

    try:
        storage.bucket_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Storage bucket %s at %s", storage.bucket, storage.bucket_dir)
    except OSError as e:
        logger.warning("Could not create storage bucket directory %s: %s", storage.bucket_dir, e)

    yield
    # --- shutdown logic (if needed) ---
    logger.info("Shutting down Swatch Catalog API")
app = FastAPI(title="Swatch Catalog API", version="0.1.0", lifespan=lifespan)
configure_cors(app)
add_security_headers(app)


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    body = {"detail": exc.message}
    if isinstance(exc, ProductValidationError):
        body["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=body)


# Include API routers
app.include_router(product_routes.router)
app.include_router(export_routes.router)
app.include_router(storage_routes.router)


@app.get("/", tags=["root"])
async def root():
    return {"status": "ok", "service": "Swatch Catalog API", "env": settings.ENV}


@app.get("/placeholder.svg", include_in_schema=False)
async def placeholder():
    """Fallback image used when a product image is missing."""
    return Response(content=PLACEHOLDER_SVG, media_type="image/svg+xml")
