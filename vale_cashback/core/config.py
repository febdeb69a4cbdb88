# vale_cashback/core/config.py

import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()

DB_USER = os.getenv("DB_USER")
DB_PASSWORD = os.getenv("DB_PASSWORD")
DB_HOST = os.getenv("DB_HOST")
DB_PORT = os.getenv("DB_PORT")
DB_NAME = os.getenv("DB_NAME")
DATABASE_URL = os.getenv("DATABASE_URL") or (
    f"postgresql+psycopg2://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}?sslmode=require"
)
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql+psycopg2://", 1)

APP_ENV = os.getenv("APP_ENV", "development")
IS_PRODUCTION = APP_ENV == "production"
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me-before-deploying")
if IS_PRODUCTION and SECRET_KEY == "dev-secret-key-change-me-before-deploying":
    raise ValueError("SECRET_KEY must be set in production")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24
MAX_COOKIE_AGE = 60 * 60 * 24
SESSION_COOKIE_NAME = "session_token"
if IS_PRODUCTION:
    COOKIE_DOMAIN = os.getenv("COOKIE_DOMAIN")
else:
    COOKIE_DOMAIN = None
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5000,http://localhost:3000").split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")

# Seed values for the commission settings row (percentages)
DEFAULT_PLATFORM_FEE = Decimal(os.getenv("DEFAULT_PLATFORM_FEE", "5.0"))
DEFAULT_CLIENT_CASHBACK = Decimal(os.getenv("DEFAULT_CLIENT_CASHBACK", "2.0"))
DEFAULT_REFERRAL_BONUS = Decimal(os.getenv("DEFAULT_REFERRAL_BONUS", "1.0"))
DEFAULT_MAX_CASHBACK = Decimal(os.getenv("DEFAULT_MAX_CASHBACK", "10.0"))
DEFAULT_MIN_WITHDRAWAL = Decimal(os.getenv("DEFAULT_MIN_WITHDRAWAL", "20.0"))
DEFAULT_WITHDRAWAL_FEE = Decimal(os.getenv("DEFAULT_WITHDRAWAL_FEE", "5.0"))
DEFAULT_REFERRAL_MIN_AMOUNT = Decimal(os.getenv("DEFAULT_REFERRAL_MIN_AMOUNT", "0.0"))

SIGNUP_BONUS = Decimal(os.getenv("SIGNUP_BONUS", "10.00"))
QR_CODE_TTL_MINUTES = int(os.getenv("QR_CODE_TTL_MINUTES", "15"))
QR_MIN_PAYMENT_AMOUNT = Decimal(os.getenv("QR_MIN_PAYMENT_AMOUNT", "5.00"))

NOTIFICATION_WEBHOOK_URL = os.getenv("NOTIFICATION_WEBHOOK_URL")
WEBHOOK_TIMEOUT = 10
