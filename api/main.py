"""
SME Sales Platform API - Main Application.

FastAPI application with CORS enabled for the web and mobile clients.
"""

import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.errors import ERROR_RESPONSES, register_error_handlers
from config.logging import configure_logging

configure_logging()

# Create FastAPI application
app = FastAPI(
    title="SME Sales Platform API",
    description="REST API for recording sales and tracking stock for small businesses",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS - FRONTEND_URL may list several origins separated by commas
frontend_origins = [o.strip() for o in os.getenv("FRONTEND_URL", "http://localhost:3000").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=frontend_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Actor-Id", "X-Business-Id", "X-Actor-Role"],
)

register_error_handlers(app)


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "sme-sales-platform-api"
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "SME Sales Platform API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers
from api.routers import receipts, sales, stock  # noqa: E402

app.include_router(stock.router, prefix="/api/v1", tags=["Stock"], responses=ERROR_RESPONSES)
app.include_router(sales.router, prefix="/api/v1", tags=["Sales"], responses=ERROR_RESPONSES)
app.include_router(receipts.router, prefix="/api/v1", tags=["Receipts"], responses=ERROR_RESPONSES)
