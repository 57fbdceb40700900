import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, status
from app.core.config import PROJECT_NAME, VERSION, require_settings
from app.core.db import init_db, close_db
from app.api.v1.orders import router as orders_router
from app.api.v1.payments import router as payments_router
from app.api.v1.webhooks import router as webhooks_router
from app.core.exception_handlers import setup_exception_handlers

log = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles startup and shutdown events."""
    log.info(f"Starting {PROJECT_NAME} v{VERSION}...")
    # Refuse to serve without the dispatcher secret and CRM credentials
    require_settings("DB_URL", "WEBHOOK_SECRET", "CRM_API_TOKEN")
    await init_db() # Connect to DB and generate schemas
    yield
    await close_db()
    log.info(f"{PROJECT_NAME} stopped.")

app = FastAPI(
    title=PROJECT_NAME,
    version=VERSION,
    lifespan=lifespan,
    # Configure API documentation and paths
    docs_url="/docs",
    redoc_url="/redoc"
)

# Include routers for modular API structure
app.include_router(orders_router, prefix="/api/v1/orders", tags=["Orders"])
app.include_router(payments_router, prefix="/api/v1/payments", tags=["Payments"])
app.include_router(webhooks_router, prefix="/api/v1/webhooks", tags=["Webhooks"])


setup_exception_handlers(app)

@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Simple health check endpoint."""
    return {"status": "ok", "app_name": PROJECT_NAME}
