from typing import Optional
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
import structlog
import uvicorn

from fundraising.api.analytics import router as analytics_router
from fundraising.api.campaign import router as campaigns_router
from fundraising.api.cause import router as causes_router
from fundraising.api.deps import get_totals_maintainer
from fundraising.api.donation import internal_router as internal_donations_router
from fundraising.api.donation import router as donations_router
from fundraising.api.error_handlers import register_error_handlers
from fundraising.api.feedback import router as feedback_router
from fundraising.api.organization import donor_router
from fundraising.api.organization import router as organizations_router
from fundraising.cache.redis import redis_cache
from fundraising.core.circuit_breaker import db_circuit_breaker
from fundraising.core.config import get_settings
from fundraising.core.logging import configure_logging
from fundraising.database.database import close_db, engine, init_db
from fundraising.kafka.consumer import PaymentEventConsumer
from fundraising.kafka.producer import event_publisher
from fundraising.middleware.logging import logging_middleware
from fundraising.middleware.metrics import MetricsMiddleware, metrics_endpoint
from fundraising.middleware.tracing import init_tracing

configure_logging()

logger = structlog.get_logger(__name__)
settings = get_settings()

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Causes, campaigns, donation totals and fundraising analytics",
    version="1.0.0",
    debug=settings.debug
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Must run before startup events
init_tracing(app)

app.add_middleware(MetricsMiddleware)

register_error_handlers(app)

payment_consumer: Optional[PaymentEventConsumer] = None


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Logging middleware with trace correlation"""
    return await logging_middleware(request, call_next)


@app.on_event("startup")
async def startup_event():
    """Initialize application on startup"""
    global payment_consumer
    logger.info("Starting Fundraising Service", service_name=settings.service_name)

    try:
        await init_db()

        await redis_cache.init_redis()

        if settings.kafka_enabled:
            try:
                await event_publisher.start()
                payment_consumer = PaymentEventConsumer(get_totals_maintainer())
                await payment_consumer.start()
            except Exception as kafka_error:
                logger.warning("Kafka unavailable, continuing without events", error=str(kafka_error))
        else:
            logger.info("Kafka disabled")

        logger.info("Application startup completed successfully")
    except Exception as e:
        logger.error("Failed to initialize application", error=str(e))
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on application shutdown"""
    logger.info("Shutting down Fundraising Service")

    try:
        if payment_consumer is not None:
            await payment_consumer.stop()
        await event_publisher.stop()
        await redis_cache.close()
        await close_db()
        logger.info("Application shutdown completed successfully")
    except Exception as e:
        logger.error("Error during application shutdown", error=str(e))


# Health check endpoints
@app.get("/health")
async def health_check():
    """Basic health check"""
    return {
        "status": "healthy",
        "service": settings.service_name,
        "timestamp": time.time()
    }


@app.get("/metrics")
async def metrics(request: Request):
    """Prometheus metrics endpoint"""
    return await metrics_endpoint(request)


@app.get("/health/ready")
async def readiness_check():
    """Readiness check with database, cache and circuit breaker status"""
    health_status = {
        "status": "ready",
        "service": settings.service_name,
        "timestamp": time.time(),
        "database": "disconnected",
        "cache": "connected" if await redis_cache.ping() else "not_initialized",
        "circuit_breaker": db_circuit_breaker.get_state()
    }

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as db_e:
        logger.warning("Database health check failed", error=str(db_e))
        health_status["database"] = f"error: {str(db_e)}"

    if health_status["database"] != "connected":
        health_status["status"] = "not ready"
        return JSONResponse(status_code=503, content=health_status)

    return health_status


# Include routers
app.include_router(organizations_router)
app.include_router(donor_router)
app.include_router(causes_router)
app.include_router(campaigns_router)
app.include_router(donations_router)
app.include_router(internal_donations_router)
app.include_router(feedback_router)
app.include_router(analytics_router)


if __name__ == "__main__":
    uvicorn.run(
        "fundraising.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="info" if not settings.debug else "debug"
    )
