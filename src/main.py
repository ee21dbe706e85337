# src/main.py
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator
import logging
import uvicorn as uv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from core.config import settings
from db.database import check_db_connection, create_tables, disconnect_db
from utils.exception_handler import setup_exception_handlers
from utils.logger import add_file_handler, setup_logger
from routes import prescriptions_router

# Quiet noisy server loggers
for log in ["watchfiles", "uvicorn.error", "uvicorn.access", "uvicorn.asgi"]:
    logging.getLogger(log).setLevel(logging.WARNING)

if settings.LOG_FILE:
    add_file_handler(settings.LOG_FILE)

logger = setup_logger("SERVER")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("Starting Prescription Lifecycle Service...")

    try:
        if settings.CREATE_TABLES_ON_STARTUP:
            logger.info("Initializing database...")
            await create_tables()

        if await check_db_connection():
            logger.info("Database connection verified")
        else:
            logger.warning("Database connection could not be verified")

        logger.info("Application startup complete")
        yield

    except Exception as e:
        logger.error(f"Startup failed: {str(e)}")
        raise
    finally:
        logger.info("Closing database connection")
        await disconnect_db()
        logger.info("Shutting down application...")


app = FastAPI(
    title="Prescription Lifecycle Service",
    description="Prescription status, progress, refills and statistics for patient records",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
)

# Exception handling
setup_exception_handlers(app)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(prescriptions_router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    """Health check endpoint"""
    return {
        "message": "Prescription Lifecycle Service API",
        "status": "healthy",
        "version": app.version,
    }


@app.get("/health")
async def health_check():
    """Detailed health check endpoint"""
    db_healthy = await check_db_connection()
    return {
        "status": "healthy" if db_healthy else "degraded",
        "database": "connected" if db_healthy else "disconnected",
        "environment": settings.ENVIRONMENT,
    }


if __name__ == "__main__":
    watch_dirs = [
        os.path.join("core"),
        os.path.join("routes"),
        os.path.join("models"),
        os.path.join("schemas"),
        os.path.join("services"),
        os.path.join("repositories"),
        os.path.join("utils"),
        os.path.join("db"),
    ]

    uv.run(
        "main:app",
        host=settings.UVICORN_HOST,
        port=settings.UVICORN_PORT,
        reload=settings.RELOAD,
        reload_dirs=watch_dirs if settings.RELOAD else None,
        workers=1 if settings.RELOAD else settings.WORKERS_COUNT,
        log_level="info",
        access_log=True,
    )
