"""
Runtime configuration

Values come from the environment (a local .env file is loaded first).
"""

import logging
import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Settings:
    def __init__(self):
        self.database_url = os.getenv("DATABASE_URL")
        self.database_name = os.getenv("DATABASE_NAME")
        self.port = _env_int("PORT", 8000)
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self.cors_origins: List[str] = [
            o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()
        ]

        # Order pricing, minor currency units (VND)
        self.shipping_fee = _env_int("SHIPPING_FEE", 15000)
        self.tax_percent = _env_int("TAX_PERCENT", 10)

        self.notify_on_status_change = _env_bool("NOTIFY_ON_STATUS_CHANGE", True)
        self.drone_exclusive_claims = _env_bool("DRONE_EXCLUSIVE_CLAIMS", False)

        # VNPay sandbox defaults
        self.vnpay_url = os.getenv("VNPAY_URL", "https://sandbox.vnpayment.vn/paymentv2/vpcpay.html")
        self.vnpay_tmn_code = os.getenv("VNPAY_TMN_CODE", "YOUR_TMN_CODE")
        self.vnpay_hash_secret = os.getenv("VNPAY_HASH_SECRET", "YOUR_HASH_SECRET")
        self.vnpay_return_url = os.getenv("VNPAY_RETURN_URL", "http://localhost:5173/payment-callback")
        self.vnpay_ip_addr = os.getenv("VNPAY_IP_ADDR", "127.0.0.1")


settings = Settings()


def get_settings() -> Settings:
    return settings


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
