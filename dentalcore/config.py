import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./dentalcore.db")

# Isolation level for server databases (ignored for SQLite, which serializes writers)
DB_ISOLATION_LEVEL = os.getenv("DB_ISOLATION_LEVEL", "SERIALIZABLE")

# Clinic hours used when a professional has no working hours of their own (HH:MM, UTC)
CLINIC_OPEN_TIME = os.getenv("CLINIC_OPEN_TIME", "08:00")
CLINIC_CLOSE_TIME = os.getenv("CLINIC_CLOSE_TIME", "20:00")

# Minimum distance between two offered slot starts, in minutes
DEFAULT_SLOT_CADENCE_MINUTES = int(os.getenv("DEFAULT_SLOT_CADENCE_MINUTES", "30"))

# Billing
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "EUR")
INVOICE_DUE_DAYS = int(os.getenv("INVOICE_DUE_DAYS", "15"))
DEFAULT_PAYMENT_METHOD = os.getenv("DEFAULT_PAYMENT_METHOD", "dodo")

# Frontend base URL for payment return links
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Dodo Payments Configuration
DODO_PAYMENTS_API_KEY = os.getenv("DODO_PAYMENTS_API_KEY")
# "test_mode" or "live_mode" - default to test for safety
DODO_PAYMENTS_ENVIRONMENT = os.getenv("DODO_PAYMENTS_ENVIRONMENT", "test_mode")
# Adhoc product used for patient-share checkouts (pay-what-you-want, amount set per invoice)
DODO_ADHOC_PRODUCT_ID = os.getenv("DODO_ADHOC_PRODUCT_ID")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Dental Practice <noreply@dentalcore.app>")

# CORS
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
