"""
Storefront - Application Entry Point
======================================
FastAPI app initialization, middleware, and router registration.
"""

import logging
import time as _time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings
from config.database import Base, engine
from common.exceptions import StorefrontError
from common.responses import (
    storefront_error_handler, http_error_handler, validation_error_handler, database_error_handler,
)

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
request_logger = logging.getLogger("storefront.request")

# ==========================================
# Import ALL models so Alembic/Base can see them
# ==========================================
from modules.user.models import User  # noqa: F401, E402
from modules.catalog.models import Product, ProductSize  # noqa: F401, E402
from modules.cart.models import Cart, CartItem  # noqa: F401, E402
from modules.coupon.models import Coupon  # noqa: F401, E402
from modules.order.models import Order, OrderItem, OrderStatusLog  # noqa: F401, E402
from modules.review.models import Review  # noqa: F401, E402

# ==========================================
# Import routers
# ==========================================
from modules.catalog.routes import router as catalog_router  # noqa: E402
from modules.catalog.admin_routes import router as catalog_admin_router  # noqa: E402
from modules.cart.routes import router as cart_router  # noqa: E402
from modules.coupon.routes import router as coupon_api_router  # noqa: E402
from modules.coupon.admin_routes import router as coupon_admin_router  # noqa: E402
from modules.order.routes import router as order_router  # noqa: E402
from modules.order.admin_routes import router as order_admin_router  # noqa: E402
from modules.review.routes import router as review_router  # noqa: E402


@asynccontextmanager
async def lifespan(app):
    # Auto-create any missing tables (safe for existing tables)
    Base.metadata.create_all(bind=engine)
    request_logger.info("Storefront started")
    yield
    request_logger.info("Storefront stopped")


# ==========================================
# Create App
# ==========================================
app = FastAPI(
    title="Storefront",
    description="Cart, checkout, coupons and reviews",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
    lifespan=lifespan,
)

app.add_exception_handler(StorefrontError, storefront_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)
app.add_exception_handler(SQLAlchemyError, database_error_handler)


# ==========================================
# Middleware: Request Log
# ==========================================
_SKIP_PATHS = ("/health", "/favicon.ico")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    path = request.url.path
    if any(path.startswith(p) for p in _SKIP_PATHS):
        return await call_next(request)

    start = _time.time()
    response = await call_next(request)
    elapsed_ms = int((_time.time() - start) * 1000)

    level = logging.WARNING if response.status_code >= 500 else logging.INFO
    request_logger.log(level, f"{request.method} {path} -> {response.status_code} ({elapsed_ms}ms)")
    return response


# ==========================================
# Register Routers
# ==========================================
app.include_router(catalog_router)
app.include_router(catalog_admin_router)
app.include_router(cart_router)
app.include_router(coupon_api_router)
app.include_router(coupon_admin_router)
app.include_router(order_router)
app.include_router(order_admin_router)
app.include_router(review_router)


# ==========================================
# Health check
# ==========================================
@app.get("/health")
async def health():
    return {"status": "ok", "version": "1.0.0"}
