"""
Gümrük360 - FastAPI Backend
Main application entry point with health check and API routing.
"""

import asyncio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from config import settings, validate_security_settings
from database import engine, Base
import models  # noqa: F401
from routers import (
    health,
    auth,
    admin_auth,
    dashboard,
    pricing,
    payments,
    questions,
    worker,
    content,
    contact,
    cron,
    admin_billing,
    admin_questions,
    admin_content,
    admin_people,
)
from services.sla import run_sla_reminders_service


async def _periodic_sla_reminders() -> None:
    interval_minutes = max(int(settings.SLA_REMINDER_INTERVAL_MINUTES), 0)
    if interval_minutes <= 0:
        return
    while True:
        await asyncio.sleep(interval_minutes * 60)
        try:
            result = await run_sla_reminders_service()
            sent = int(result.get("sent", 0) or 0)
            failed = int(result.get("failed", 0) or 0)
            if sent or failed:
                print(f"⏰ SLA reminder tick: sent={sent} failed={failed}")
        except Exception as exc:
            print(f"⚠️ SLA reminder tick failed: {exc}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting Gümrük360 API...")
    validate_security_settings()
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            print("🗄️ Database schema verified.")
        except Exception as e:
            print(f"⚠️ Database bootstrap skipped: {e}")
    sla_task = None
    if not settings.SLA_USE_QUEUE and int(settings.SLA_REMINDER_INTERVAL_MINUTES) > 0:
        sla_task = asyncio.create_task(_periodic_sla_reminders())
        print(f"📅 SLA reminder loop enabled (every {int(settings.SLA_REMINDER_INTERVAL_MINUTES)} min).")
    yield
    # Shutdown
    if sla_task is not None:
        sla_task.cancel()
        try:
            await sla_task
        except asyncio.CancelledError:
            pass
    print("👋 Shutting down API...")


app = FastAPI(
    title="Gümrük360 API",
    description="Multi-tenant customs consulting: questions, credits, payments and content",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(admin_auth.router, prefix="/admin", tags=["Admin"])
app.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
app.include_router(pricing.router, tags=["Pricing"])
app.include_router(payments.router, tags=["Payments"])
app.include_router(questions.router, prefix="/ask", tags=["Questions"])
app.include_router(worker.router, prefix="/worker", tags=["Worker"])
app.include_router(content.router, tags=["Content"])
app.include_router(contact.router, tags=["Contact"])
app.include_router(cron.router, prefix="/cron", tags=["Cron"])
app.include_router(admin_billing.router, prefix="/admin", tags=["Admin"])
app.include_router(admin_questions.router, prefix="/admin", tags=["Admin"])
app.include_router(admin_content.router, prefix="/admin", tags=["Admin"])
app.include_router(admin_people.router, prefix="/admin", tags=["Admin"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Gümrük360 API",
        "version": "0.1.0",
        "status": "running"
    }
