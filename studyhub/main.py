import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studyhub.config import get_settings
from studyhub.database import Base, engine
from studyhub.errors import register_exception_handlers
from studyhub.courses.routes import router as courses_router
from studyhub.reviews.routes import router as reviews_router
from studyhub.memory_cards.routes import router as memory_cards_router

# Import models so SQLAlchemy can create tables
from studyhub.courses import models as course_models  # noqa: F401
from studyhub.reviews import models as review_models  # noqa: F401
from studyhub.memory_cards import models as memory_card_models  # noqa: F401

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    # Startup: Create database tables
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to create database tables: {e}")
        # Don't crash the app - let it start and handle errors per-request
    yield
    logger.info("Application shutting down")


app = FastAPI(
    title="StudyHub API",
    description="Spaced repetition memory cards and course reviews",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware - must be first to handle OPTIONS requests quickly
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL, "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include routers
app.include_router(courses_router)
app.include_router(reviews_router)
app.include_router(memory_cards_router)


@app.get("/")
async def root():
    return {"message": "StudyHub API", "status": "running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
