from fastapi import FastAPI

from src.web.routers.reports import router as reports_router
from src.web.routers.audit import router as audit_router

def register_routers(app: FastAPI):
    """Register all routers with the application."""
    app.include_router(reports_router)
    app.include_router(audit_router)
