import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Import all models to ensure they're registered with SQLAlchemy Base
from . import (
    models,  # noqa: F401
    models_invoice,  # noqa: F401
)
from .config import (
    ALLOWED_ORIGINS,
    MERCADOPAGO_ACCESS_TOKEN,
    MERCADOPAGO_API_URL,
    PAYMENT_LOOKUP_BASE_DELAY,
    PAYMENT_LOOKUP_MAX_ATTEMPTS,
)
from .database import Base, SessionLocal, engine
from .domain.appointments import router as appointments_router
from .domain.billing import router as payments_router
from .domain.billing.gateway import MercadoPagoGateway
from .domain.billing.reconciliation_service import SettlementReconciler
from .domain.catalog import router as catalog_router
from .domain.scheduling import availability_router, router as schedules_router
from .email_service import send_appointment_confirmation
from .exceptions import ClinicError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    # Shared collaborators, handed to request handlers through app.state
    gateway = MercadoPagoGateway(MERCADOPAGO_ACCESS_TOKEN, MERCADOPAGO_API_URL)
    app.state.payment_gateway = gateway
    app.state.reconciler = SettlementReconciler(
        session_factory=SessionLocal,
        gateway=gateway,
        notifier=send_appointment_confirmation,
        max_attempts=PAYMENT_LOOKUP_MAX_ATTEMPTS,
        base_delay=PAYMENT_LOOKUP_BASE_DELAY,
    )
    if not MERCADOPAGO_ACCESS_TOKEN:
        logger.warning("⚠️ MERCADOPAGO_ACCESS_TOKEN not set - payment orders and reconciliation will fail")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Clinic Scheduling API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(ClinicError)
async def clinic_error_handler(request: Request, exc: ClinicError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "detail": exc.message})


logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Routes
app.include_router(schedules_router)
app.include_router(availability_router)
app.include_router(appointments_router)
app.include_router(catalog_router)
app.include_router(payments_router)


@app.get("/")
def root():
    return {"message": "Clinic Scheduling API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
