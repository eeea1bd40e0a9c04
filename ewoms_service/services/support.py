"""
iOS in-app purchase support: receipt checks, Apple verification and
crediting the purchase to the user.
"""
import base64
import binascii
import logging
import time
from decimal import Decimal
from typing import Optional, Tuple

import httpx
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..models import SupportOrder, User, now_ts

logger = logging.getLogger(__name__)

# Keep in sync with the products configured in App Store Connect
IOS_PRODUCT_AMOUNTS = {
    "com.yourapp.support.1": 1,
    "com.yourapp.support.5": 5,
    "com.yourapp.support.10": 10,
    "com.yourapp.support.50": 50,
    "com.yourapp.support.100": 100,
    "com.yourapp.support.300": 300,
    "com.yourapp.support.500": 500,
    "com.yourapp.support.1000": 1000,
}

APPLE_STATUS_SANDBOX_RECEIPT = 21007


class ReceiptVerificationError(Exception):
    """Apple could not be asked, or answered with something unreadable"""


def ios_product_amount(product_id: str) -> Optional[float]:
    amount = IOS_PRODUCT_AMOUNTS.get(product_id)
    return float(amount) if amount is not None else None


def validate_receipt_shape(receipt_data: str) -> Optional[str]:
    """
    Reject receipts that are not an App Store base64 receipt.

    Returns:
        An error detail, or None when the receipt looks usable
    """
    if receipt_data.count(".") == 2:
        logger.warning("[VerifyIOSSupportPurchase] jws receipt detected, client should send base64 receipt")
        return "receipt_data 为 JWS 格式，请使用 base64 收据"

    trimmed = receipt_data.strip()
    if trimmed.startswith("{") or trimmed.startswith("["):
        logger.warning("[VerifyIOSSupportPurchase] json receipt detected")
        return "receipt_data 应为 App Store base64 收据"

    try:
        base64.b64decode(receipt_data, validate=True)
    except (binascii.Error, ValueError):
        return "receipt_data 格式错误"
    return None


def _post_receipt(client: httpx.Client, url: str, payload: dict) -> int:
    started = time.monotonic()
    try:
        resp = client.post(url, json=payload)
        result = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        raise ReceiptVerificationError(str(e)) from e

    status = result.get("status") if isinstance(result, dict) else None
    if not isinstance(status, int):
        raise ReceiptVerificationError(f"unexpected response from {url}")

    logger.info(
        "[verifyAppleReceipt] url=%s status=%d elapsed_ms=%d",
        url, status, int((time.monotonic() - started) * 1000)
    )
    return status


def verify_apple_receipt(receipt_data: str) -> bool:
    """
    Verify a receipt with Apple, retrying against the sandbox on 21007.

    Returns:
        True when the final status is 0

    Raises:
        ReceiptVerificationError: no shared secret, transport or decode failure
    """
    shared_secret = settings.IOS_IAP_SHARED_SECRET.strip()
    if not shared_secret:
        raise ReceiptVerificationError("IOS_IAP_SHARED_SECRET is empty")

    payload = {
        "receipt-data": receipt_data,
        "password": shared_secret,
        "exclude-old-transactions": True,
    }
    with httpx.Client(timeout=settings.IOS_VERIFY_TIMEOUT_SECONDS) as client:
        status = _post_receipt(client, settings.IOS_VERIFY_PRODUCTION_URL, payload)
        if status == APPLE_STATUS_SANDBOX_RECEIPT:
            logger.info("[verifyAppleReceipt] got 21007, fallback sandbox")
            status = _post_receipt(client, settings.IOS_VERIFY_SANDBOX_URL, payload)

    logger.info("[verifyAppleReceipt] final_status=%d", status)
    return status == 0


def resolve_support_level(total_amount) -> int:
    if total_amount >= 500:
        return 5
    if total_amount >= 300:
        return 4
    if total_amount >= 100:
        return 3
    if total_amount >= 50:
        return 2
    if total_amount >= 5:
        return 1
    return 0


def add_support_by_transaction(
    db: Session,
    user_id: int,
    platform: str,
    product_id: str,
    transaction_id: str,
    amount: float,
    receipt_data: str,
) -> Tuple[Optional[User], bool]:
    """
    Credit a verified purchase to the user, once per transaction_id.

    Returns:
        (user, created). created is False when the transaction was already
        recorded, in which case the user is returned unchanged. user is None
        when the account does not exist.
    """
    existing = db.query(SupportOrder).filter(SupportOrder.transaction_id == transaction_id).first()
    if existing:
        return db.query(User).filter(User.id == user_id).first(), False

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        return None, False

    try:
        amount_dec = Decimal(str(amount))
        db.add(SupportOrder(
            user_id=user_id,
            platform=platform,
            product_id=product_id,
            transaction_id=transaction_id,
            amount=amount_dec,
            receipt_data=receipt_data,
        ))
        total = Decimal(str(user.support_total_amount or 0)) + amount_dec
        user.support_total_amount = total
        user.support_level = resolve_support_level(total)
        if total > 0 and user.vip == 0:
            user.vip = 1
        user.updated_time = now_ts()
        db.commit()
    except IntegrityError:
        # Recorded concurrently by another request
        db.rollback()
        logger.info("[AddSupportByTransaction] transaction %s already recorded", transaction_id)
        return db.query(User).filter(User.id == user_id).first(), False
    except Exception:
        db.rollback()
        raise

    db.refresh(user)
    return user, True
