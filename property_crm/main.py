import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from property_crm.core.config import settings
from property_crm.core.database import SessionLocal
import property_crm.models.registry  # noqa: F401
from property_crm.api.routes.auth import router as auth_router
from property_crm.api.routes.settings import router as settings_router
from property_crm.api.routes.admin import router as admin_router
from property_crm.api.routes.properties import router as properties_router
from property_crm.api.routes.tenants import router as tenants_router
from property_crm.api.routes.tenant_portal import router as tenant_portal_router
from property_crm.api.routes.bookings import router as bookings_router
from property_crm.api.routes.integrations import router as integrations_router
from property_crm.api.routes.payments import router as payments_router
from property_crm.api.routes.expenses import router as expenses_router
from property_crm.api.routes.maintenance import router as maintenance_router
from property_crm.api.routes.tasks import router as tasks_router
from property_crm.api.routes.folders import router as folders_router
from property_crm.api.routes.documents import router as documents_router
from property_crm.api.routes.notifications import router as notifications_router
from property_crm.api.routes.messaging import router as messaging_router
from property_crm.api.routes.reports import router as reports_router
from property_crm.api.routes.dashboard import router as dashboard_router
from property_crm.api.routes.audit_logs import router as audit_logs_router
from property_crm.api.routes.contact import router as contact_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# 1) Create the app FIRST
app = FastAPI(title="Property CRM Backend")

# 2) Add CORS Middleware BEFORE routes
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 3) Include routers AFTER app is created
app.include_router(auth_router)
app.include_router(settings_router)
app.include_router(admin_router)
app.include_router(properties_router)
app.include_router(tenants_router)
app.include_router(tenant_portal_router)
app.include_router(bookings_router)
app.include_router(integrations_router)
app.include_router(payments_router)
app.include_router(expenses_router)
app.include_router(maintenance_router)
app.include_router(tasks_router)
app.include_router(folders_router)
app.include_router(documents_router)
app.include_router(notifications_router)
app.include_router(messaging_router)
app.include_router(reports_router)
app.include_router(dashboard_router)
app.include_router(audit_logs_router)
app.include_router(contact_router)


# 4) Health check endpoints
@app.get("/health")
def health():
    return {"ok": True, "service": "property-crm"}


@app.get("/db-health")
def db_health():
    db = SessionLocal()
    try:
        db.execute(text("select 1"))
        return {"ok": True, "db": "connected"}
    finally:
        db.close()
