"""FastAPI main application."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .config import settings
from .services.pipeline import RelayPipeline
from .utils.logger import init_app_logger
from .api.errors import register_exception_handlers
from .api.v1 import conversations, tasks, failed_messages, settings as settings_api, maintenance


# Initialize logger
logger = init_app_logger(settings)

# Global pipeline instance
pipeline_instance: RelayPipeline = None

ROUTERS = (conversations, tasks, failed_messages, settings_api, maintenance)


def attach_pipeline(pipeline: RelayPipeline):
    """Set the pipeline in every API module."""
    for module in ROUTERS:
        module.pipeline = pipeline


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.

    Args:
        app: FastAPI application instance
    """
    # Startup
    logger.info("=" * 70)
    logger.info("Starting Conversation Relay...")
    logger.info("=" * 70)

    logger.info("")
    logger.info("📡 Server Configuration:")
    logger.info(f"  Host: {settings.host}")
    logger.info(f"  Port: {settings.port}")
    logger.info(f"  Debug: {settings.debug}")
    logger.info(f"  Log Level: {settings.log_level}")
    logger.info(f"  Log File: {settings.log_file}")

    logger.info("")
    logger.info("⚙️  Pipeline Configuration:")
    logger.info(f"  Database: {settings.database_path}")
    logger.info(f"  Max Concurrent Dispatches: {settings.max_concurrent_dispatches}")
    logger.info(f"  Timer Tick: {settings.aggregator_tick_seconds}s")
    logger.info(f"  Retention: {settings.retention_days} days")

    global pipeline_instance
    pipeline_instance = RelayPipeline(settings)
    attach_pipeline(pipeline_instance)
    await pipeline_instance.start()

    active = pipeline_instance.settings_provider.find_active()
    logger.info("")
    logger.info("🔌 Delivery Configuration:")
    if active:
        logger.info(f"  Name: {active.name}")
        logger.info(f"  Backend: {active.base_url}")
        logger.info(f"  Batch: {active.batch_threshold} messages / {active.batch_time_window}s")
        logger.info(f"  Request Timeout: {active.request_timeout}s")
        logger.info(f"  Max Retries: {active.max_retries}")
    else:
        logger.info("  Not configured")

    logger.info("")
    logger.info("=" * 70)
    logger.info("✅ Conversation Relay started successfully!")
    logger.info(f"📍 Access at: http://{settings.host}:{settings.port}")
    logger.info(f"📚 API Docs: http://{settings.host}:{settings.port}/docs")
    logger.info("=" * 70)

    yield

    # Shutdown
    logger.info("")
    logger.info("=" * 70)
    logger.info("Shutting down Conversation Relay...")
    logger.info("=" * 70)

    if pipeline_instance:
        await pipeline_instance.shutdown()
        attach_pipeline(None)

    logger.info("✅ Conversation Relay shut down successfully")


# Create FastAPI application
app = FastAPI(
    title="Conversation Relay",
    description="Batches conversation messages and relays them to a completion backend",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include API routers
for module in ROUTERS:
    app.include_router(module.router)


@app.get("/")
async def read_root():
    """Service information."""
    return {
        "message": "Conversation Relay API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health"
    }


@app.get("/health")
async def health():
    """
    Simple health check endpoint.

    Returns:
        Health status
    """
    return {
        "status": "healthy",
        "service": "Conversation Relay"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "relay.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
