import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic.db")

# Clinic identity
CLINIC_NAME = os.getenv("CLINIC_NAME", "Clinic")
# Timezone of the availability engine's clock ("today" and current minute)
CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "America/Santiago")

# MercadoPago Configuration
MERCADOPAGO_ACCESS_TOKEN = os.getenv("MERCADOPAGO_ACCESS_TOKEN")
MERCADOPAGO_API_URL = os.getenv("MERCADOPAGO_API_URL", "https://api.mercadopago.com")
# Secret from the MercadoPago dashboard used to sign webhook notifications
MERCADOPAGO_WEBHOOK_SECRET = os.getenv("MERCADOPAGO_WEBHOOK_SECRET")
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "CLP")

# Payment lookup retry policy: attempts, first delay in seconds (doubles each attempt)
PAYMENT_LOOKUP_MAX_ATTEMPTS = int(os.getenv("PAYMENT_LOOKUP_MAX_ATTEMPTS", "10"))
PAYMENT_LOOKUP_BASE_DELAY = float(os.getenv("PAYMENT_LOOKUP_BASE_DELAY", "5.0"))

# Public URLs
# PUBLIC_BACKEND_URL overrides BACKEND_URL for webhooks (e.g. a tunnel during development)
BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:8000")
PUBLIC_BACKEND_URL = os.getenv("PUBLIC_BACKEND_URL") or BACKEND_URL
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:4200")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", f"{CLINIC_NAME} <noreply@example.com>")

# CORS
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:4200,http://localhost:3000").split(",")
