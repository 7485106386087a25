"""
VNPay payment gateway helpers.

The secure hash is an HMAC-SHA512 over the sorted, *unencoded* k=v pairs;
the redirect query string carries the same pairs form-encoded. Both must be
built from the same parameter set in the same order or VNPay rejects the
signature.
"""

import hashlib
import hmac
import logging
from datetime import datetime
from typing import Dict, Optional
from urllib.parse import quote_plus

from config import Settings
from errors import InvalidInput

logger = logging.getLogger(__name__)

HASH_FIELDS_EXCLUDED = ("vnp_SecureHash", "vnp_SecureHashType")


def hmac_sha512(key: str, data: str) -> str:
    return hmac.new(key.encode("utf-8"), data.encode("utf-8"), hashlib.sha512).hexdigest()


def hash_data(params: Dict[str, str]) -> str:
    return "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k])


def query_string(params: Dict[str, str]) -> str:
    return "&".join(f"{quote_plus(k)}={quote_plus(params[k])}" for k in sorted(params) if params[k])


def sign(params: Dict[str, str], secret: str) -> str:
    return hmac_sha512(secret, hash_data(params))


def build_payment_params(
    amount: int,
    order_id: str,
    settings: Settings,
    order_info: Optional[str] = None,
    order_type: str = "other",
    locale: str = "vn",
    create_date: Optional[datetime] = None,
) -> Dict[str, str]:
    if amount is None or amount <= 0:
        raise InvalidInput(f"Invalid amount: {amount}")
    create_date = create_date or datetime.now()
    return {
        "vnp_Version": "2.1.0",
        "vnp_Command": "pay",
        "vnp_TmnCode": settings.vnpay_tmn_code,
        # VNPay expects the amount multiplied by 100
        "vnp_Amount": str(amount * 100),
        "vnp_CurrCode": "VND",
        "vnp_TxnRef": str(order_id),
        "vnp_OrderInfo": order_info or f"Thanh toan don hang {order_id}",
        "vnp_OrderType": order_type,
        "vnp_Locale": locale,
        "vnp_ReturnUrl": settings.vnpay_return_url,
        "vnp_IpAddr": settings.vnpay_ip_addr,
        "vnp_CreateDate": create_date.strftime("%Y%m%d%H%M%S"),
    }


def build_payment_url(amount: int, order_id: str, settings: Settings, **kwargs) -> str:
    params = build_payment_params(amount, order_id, settings, **kwargs)
    secure_hash = sign(params, settings.vnpay_hash_secret)
    if settings.vnpay_tmn_code == "YOUR_TMN_CODE" or settings.vnpay_hash_secret == "YOUR_HASH_SECRET":
        logger.warning("VNPay is using placeholder credentials; set VNPAY_TMN_CODE and VNPAY_HASH_SECRET")
    logger.info("Created VNPay payment URL for order %s, amount %s", order_id, amount)
    return f"{settings.vnpay_url}?{query_string(params)}&vnp_SecureHash={secure_hash}"


def verify_return(params: Dict[str, str], settings: Settings) -> bool:
    """Check the signature VNPay attaches to the browser redirect."""
    received = params.get("vnp_SecureHash", "")
    signed = {
        k: v for k, v in params.items()
        if k.startswith("vnp_") and k not in HASH_FIELDS_EXCLUDED
    }
    expected = sign(signed, settings.vnpay_hash_secret)
    return hmac.compare_digest(expected.lower().encode("utf-8"), received.lower().encode("utf-8"))
