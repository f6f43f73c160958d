"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tenantpay.config import settings
from tenantpay.database import async_session_maker, engine
from tenantpay.middleware import setup_rate_limiting
from tenantpay.notifications import routes as notification_routes
from tenantpay.obligations import routes as payment_routes
from tenantpay.reconciliation import routes as reconciliation_routes
from tenantpay.reminders import routes as reminder_routes
from tenantpay.reminders.scheduler import PaymentReminderScheduler

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = PaymentReminderScheduler(async_session_maker, settings)
    app.state.reminder_scheduler = scheduler
    if settings.SCHEDULER_ENABLED:
        scheduler.start()
    else:
        logger.info("Payment reminder scheduler disabled (SCHEDULER_ENABLED=false)")

    yield

    scheduler.stop()
    await engine.dispose()


# Create FastAPI app
app = FastAPI(
    title="TenantPay API",
    description="Rent payment tracking and reminders for managed properties",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_rate_limiting(app)

# Include routers
app.include_router(payment_routes.router, prefix=f"{settings.API_V1_PREFIX}/tenant-payments", tags=["Tenant Payments"])
app.include_router(reminder_routes.router, prefix=f"{settings.API_V1_PREFIX}/payment-reminders", tags=["Payment Reminders"])
app.include_router(reconciliation_routes.router, prefix=f"{settings.API_V1_PREFIX}/reconciliation", tags=["Reconciliation"])
app.include_router(notification_routes.router, prefix=f"{settings.API_V1_PREFIX}/notifications", tags=["Notifications"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    scheduler = getattr(app.state, "reminder_scheduler", None)
    return {
        "status": "healthy",
        "scheduler_running": bool(scheduler and scheduler.running),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "tenantpay.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
