from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
import contextlib
import logging

from src.core.config import settings, LOG_FORMAT
from src.core.database import create_tables

logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Escrowise Admin Reports",
    description="Scheduled report management and delivery for the Escrowise admin backend",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Reporting", "description": "Scheduled reports, on-demand runs and ad-hoc generation"},
        {"name": "Audit", "description": "Audit trail of admin changes"},
    ]
)

from src.web.routers import register_routers
from src.web.scheduler import start_scheduler, stop_scheduler

register_routers(app)

@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize Database Tables
    await create_tables()

    # Start Scheduler
    if settings.scheduler_enabled:
        start_scheduler()
    else:
        logger.info("Report scheduler disabled (SCHEDULER_ENABLED=false)")

    yield

    # Stop Scheduler
    if settings.scheduler_enabled:
        await stop_scheduler()

app.router.lifespan_context = lifespan

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"], # Admin dashboard dev server
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/", include_in_schema=False)
async def root():
    return RedirectResponse(url="/docs")

@app.get("/health", include_in_schema=False)
async def health():
    return {"status": "ok", "app": settings.app_name, "environment": settings.environment}
