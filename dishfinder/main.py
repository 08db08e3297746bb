"""
Main FastAPI application
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dishfinder.config import get_settings
from dishfinder.database import engine, Base
from dishfinder import models  # noqa: F401 - register tables on Base.metadata
from dishfinder.api import auth, users, restaurants, dishes, availability, reports
from dishfinder.api import wishlist, cities, feedback
from dishfinder.utils.logger import configure_logging

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")

    yield

    await engine.dispose()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
# Fixed /api/dishes/* paths must be registered before the /api/dishes/{dish_id} routes
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(restaurants.router, prefix="/api/restaurants", tags=["Restaurants"])
app.include_router(reports.router, prefix="/api/reports", tags=["Reports"])
app.add_api_route(
    "/api/dishes/report",
    reports.report_delivery_apps,
    methods=["POST"],
    tags=["Reports"],
)
app.include_router(availability.router, prefix="/api/dishes", tags=["Availability"])
app.include_router(dishes.router, prefix="/api/dishes", tags=["Dishes"])
app.include_router(wishlist.router, prefix="/api/wishlist", tags=["Wishlist"])
app.include_router(cities.router, prefix="/api/cities", tags=["Cities"])
app.include_router(feedback.router, prefix="/api/feedback", tags=["Feedback"])


@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "dishfinder.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
