"""
Cockpit Store API
FastAPI application entry point

- Configuration & pricing engine behind /api/products and /api/cart
- Shareable configuration links behind /api/shared-configs
- StorefrontError handler renders {code, message, details}
- Error sanitization middleware for anything unhandled
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from cockpit_store import __version__
from cockpit_store.api.routes import cart, products, shared_configs
from cockpit_store.core.config import settings
from cockpit_store.core.database import AsyncSessionLocal, Base, engine
from cockpit_store.core.error_handler import ErrorSanitizationMiddleware, storefront_error_handler
from cockpit_store.core.exceptions import StorefrontError

# Import models to register them with SQLAlchemy
from cockpit_store.models import Cart, CartItem, Coupon, Product, SharedConfig  # noqa: F401

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables for local runs; production schemas are managed by migrations."""
    if settings.ENVIRONMENT != "production":
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured (non-production)")

    logger.info(f"{settings.APP_NAME} {__version__} started ({settings.ENVIRONMENT})")

    yield

    await engine.dispose()
    logger.info("Database engine disposed")


app = FastAPI(
    lifespan=lifespan,
    title="Cockpit Store API",
    description="""
## Cockpit Store API

Configuration and pricing for modular cockpits.

### Features
- **Configurator**: product schemas, price previews and price ranges
- **Cart**: add configured products, change quantities, coupons, guest cart merge
- **Sharing**: save a configuration under a short code and open it from a link

### Cart ownership
Send `X-User-ID` (set by the auth layer) or `X-Session-ID` for guests.
`X-Region: us|eu` selects the display currency.
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints"},
        {"name": "Products", "description": "Product configuration and pricing"},
        {"name": "Cart", "description": "Shopping cart operations"},
        {"name": "Sharing", "description": "Shareable configuration links"},
    ],
)

app.add_exception_handler(StorefrontError, storefront_error_handler)

# Catches unhandled exceptions
app.add_middleware(ErrorSanitizationMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(products.router, prefix="/api/products", tags=["Products"])
app.include_router(cart.router, prefix="/api/cart", tags=["Cart"])
app.include_router(shared_configs.router, prefix="/api/shared-configs", tags=["Sharing"])


@app.get("/", tags=["Health"])
async def root():
    return {
        "message": "Cockpit Store API",
        "version": __version__,
        "status": "operational"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check with a database ping. Returns 503 if the database is unreachable."""
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    try:
        async with AsyncSessionLocal() as db:
            await db.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as e:
        logger.error(f"Health check database ping failed: {type(e).__name__}: {e}")
        health_status["database"] = f"error: {type(e).__name__}"
        health_status["status"] = "unhealthy"
        return JSONResponse(status_code=503, content=health_status)

    return health_status
