from datetime import timedelta
import os
from dotenv import load_dotenv

load_dotenv()
class Config:
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///marketplace.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=24)

    MAIL_SERVER = 'smtp.gmail.com'
    MAIL_PORT = 587
    MAIL_USE_TLS = True
    MAIL_USERNAME = os.getenv("USERNAME_FOR_EMAIL")
    MAIL_PASSWORD = os.getenv("PASSWORD_FOR_EMAIL")
    MAIL_DEFAULT_SENDER = os.getenv("USERNAME_FOR_EMAIL")

    # public URL the gateways call back on, falls back to the request host
    BASE_URL = os.environ.get("BASE_URL")

    BANK_ACCOUNT_NO = os.environ.get("BANK_ACCOUNT_NO")
    BANK_ACCOUNT_NAME = os.environ.get("BANK_ACCOUNT_NAME")
    BANK_ACQ_ID = os.environ.get("BANK_ACQ_ID")
    VIETQR_CLIENT_ID = os.environ.get("VIETQR_CLIENT_ID")
    VIETQR_API_KEY = os.environ.get("VIETQR_API_KEY")
    VIETQR_API_URL = os.environ.get("VIETQR_API_URL", "https://api.vietqr.io/v2/generate")
    VIETQR_STATUS_API_URL = os.environ.get("VIETQR_STATUS_API_URL", "https://api.vietqr.io/v2/transactions")

    PAYOS_CLIENT_ID = os.environ.get("PAYOS_CLIENT_ID")
    PAYOS_API_KEY = os.environ.get("PAYOS_API_KEY")
    PAYOS_CHECKSUM_KEY = os.environ.get("PAYOS_CHECKSUM_KEY")
    PAYOS_API_URL = os.environ.get("PAYOS_API_URL", "https://api-merchant.payos.vn/v2/payment-requests")

    GATEWAY_TIMEOUT = float(os.environ.get("GATEWAY_TIMEOUT", 10))
    PAYMENT_VERIFY_INTERVAL = int(os.environ.get("PAYMENT_VERIFY_INTERVAL", 300))
    PAYMENT_VERIFY_WINDOW_HOURS = int(os.environ.get("PAYMENT_VERIFY_WINDOW_HOURS", 24))
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "false").lower() == "true"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
