"""
iOS in-app purchase verification for supporter purchases.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import get_db
from ..dependencies import get_current_user_id
from ..errors import PARAMS_ERROR, SERVER_ERROR, UNAUTHORIZED, ApiError, success
from ..schemas import VerifyIOSSupportRequest
from ..services.support import (
    ReceiptVerificationError,
    add_support_by_transaction,
    ios_product_amount,
    validate_receipt_shape,
    verify_apple_receipt,
)

router = APIRouter(prefix="/api/backend/support", tags=["backend-support"])
logger = logging.getLogger(__name__)


@router.post("/ios/verify")
def verify_ios_support_purchase(
    req: VerifyIOSSupportRequest,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Verify an App Store receipt and add the purchase to the user's support total.

    Repeated calls with the same transaction_id credit the user only once.
    """
    if not req.product_id or not req.transaction_id or not req.receipt_data:
        raise ApiError(PARAMS_ERROR, "缺少必要参数")
    logger.info(
        "[VerifyIOSSupportPurchase] user=%s product=%s tx=%s receipt_len=%d",
        user_id, req.product_id, req.transaction_id, len(req.receipt_data)
    )

    shape_error = validate_receipt_shape(req.receipt_data)
    if shape_error:
        raise ApiError(PARAMS_ERROR, shape_error)

    amount = ios_product_amount(req.product_id)
    if amount is None:
        raise ApiError(PARAMS_ERROR, "未知商品")

    try:
        verified = verify_apple_receipt(req.receipt_data)
    except ReceiptVerificationError as e:
        logger.error("[VerifyIOSSupportPurchase] receipt verification failed: %s", e)
        raise ApiError(SERVER_ERROR, "验单失败") from e
    if not verified:
        logger.warning(
            "[VerifyIOSSupportPurchase] receipt not verified user=%s product=%s tx=%s",
            user_id, req.product_id, req.transaction_id
        )
        raise ApiError(PARAMS_ERROR, "验单未通过")

    try:
        user, created = add_support_by_transaction(
            db, user_id, "ios", req.product_id, req.transaction_id, amount, req.receipt_data,
        )
    except SQLAlchemyError as e:
        logger.error("[VerifyIOSSupportPurchase] failed to record support: %s", e)
        raise ApiError(SERVER_ERROR, "写入赞助失败") from e
    if user is None:
        raise ApiError(UNAUTHORIZED, "请先登录")

    if not created:
        logger.info("[VerifyIOSSupportPurchase] transaction reused: %s", req.transaction_id)
    total = float(user.support_total_amount or 0)
    logger.info(
        "[VerifyIOSSupportPurchase] success user=%s product=%s tx=%s amount=%.2f total=%.2f level=%d",
        user_id, req.product_id, req.transaction_id, amount, total, user.support_level
    )

    return success({
        "support_total_amount": total,
        "support_level": user.support_level,
        "amount": amount,
        "transaction_id": req.transaction_id,
    })
