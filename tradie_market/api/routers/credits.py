"""Credit ledger and auto-topup endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from tradie_market.api.deps import get_marketplace
from tradie_market.api.errors import to_http_exception
from tradie_market.core.security import get_current_admin, get_current_tradie, get_current_user
from tradie_market.modules.common.exceptions import MarketplaceError
from tradie_market.modules.credits.models import TransactionFilter
from tradie_market.schemas import (
    AutoTopupConfigureRequest,
    AutoTopupResponse,
    CreditAdjustmentRequest,
    CreditBalanceResponse,
    CreditPurchaseRequest,
    CreditTransactionListResponse,
    CreditTransactionResponse,
    TokenData,
)
from tradie_market.services.marketplace import MarketplaceCreditService

router = APIRouter()


def _transaction_filter(
    transaction_type: Optional[list[str]] = Query(default=None, alias="type"),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> TransactionFilter:
    return TransactionFilter(
        transaction_types=tuple(transaction_type) if transaction_type else None,
        status=status_filter,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )


@router.get("/balance", response_model=CreditBalanceResponse, summary="Current credit balance")
async def get_balance(
    user: TokenData = Depends(get_current_user),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> CreditBalanceResponse:
    try:
        balance = await marketplace.get_balance(user.user_id)
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return CreditBalanceResponse.model_validate(balance)


@router.get("/transactions", response_model=CreditTransactionListResponse, summary="Credit transaction history")
async def get_transactions(
    filters: TransactionFilter = Depends(_transaction_filter),
    user: TokenData = Depends(get_current_user),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> CreditTransactionListResponse:
    try:
        page = await marketplace.get_transaction_history(user.user_id, filters)
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return CreditTransactionListResponse(
        total=page.total,
        page=page.page,
        limit=page.limit,
        has_more=page.has_more,
        items=[CreditTransactionResponse.model_validate(item) for item in page.items],
    )


@router.get("/usage", response_model=CreditTransactionListResponse, summary="Credits spent on applications")
async def get_usage(
    filters: TransactionFilter = Depends(_transaction_filter),
    user: TokenData = Depends(get_current_user),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> CreditTransactionListResponse:
    try:
        page = await marketplace.get_usage_history(user.user_id, filters)
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return CreditTransactionListResponse(
        total=page.total,
        page=page.page,
        limit=page.limit,
        has_more=page.has_more,
        items=[CreditTransactionResponse.model_validate(item) for item in page.items],
    )


@router.post(
    "/purchases",
    response_model=CreditBalanceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a completed credit purchase",
)
async def purchase_credits(
    payload: CreditPurchaseRequest,
    admin: TokenData = Depends(get_current_admin),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> CreditBalanceResponse:
    try:
        posting = await marketplace.purchase_credits(
            payload.user_id,
            payload.credits,
            reference_id=payload.reference_id,
            description=payload.description,
            expires_at=payload.expires_at,
        )
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return CreditBalanceResponse.model_validate(posting.balance)


@router.post("/bonus", response_model=CreditBalanceResponse, status_code=status.HTTP_201_CREATED, summary="Grant bonus credits")
async def grant_bonus(
    payload: CreditAdjustmentRequest,
    admin: TokenData = Depends(get_current_admin),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> CreditBalanceResponse:
    try:
        posting = await marketplace.grant_bonus(payload.user_id, payload.credits, description=payload.description)
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return CreditBalanceResponse.model_validate(posting.balance)


@router.post("/trial", response_model=CreditBalanceResponse, summary="Claim welcome trial credits")
async def claim_trial_credits(
    tradie: TokenData = Depends(get_current_tradie),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> CreditBalanceResponse:
    try:
        posting = await marketplace.grant_trial_credits(tradie.user_id)
        balance = posting.balance if posting else await marketplace.get_balance(tradie.user_id)
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return CreditBalanceResponse.model_validate(balance)


@router.post("/expiry", response_model=CreditBalanceResponse, summary="Expire credits")
async def expire_credits(
    payload: CreditAdjustmentRequest,
    admin: TokenData = Depends(get_current_admin),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> CreditBalanceResponse:
    try:
        posting = await marketplace.expire_credits(payload.user_id, payload.credits, description=payload.description)
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return CreditBalanceResponse.model_validate(posting.balance)


@router.get("/auto-topup", response_model=Optional[AutoTopupResponse], summary="Auto-topup settings")
async def get_auto_topup(
    user: TokenData = Depends(get_current_user),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> Optional[AutoTopupResponse]:
    try:
        settings = await marketplace.get_auto_topup_settings(user.user_id)
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return AutoTopupResponse.model_validate(settings) if settings else None


@router.put("/auto-topup", response_model=AutoTopupResponse, summary="Configure auto-topup")
async def configure_auto_topup(
    payload: AutoTopupConfigureRequest,
    user: TokenData = Depends(get_current_user),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> AutoTopupResponse:
    try:
        settings = await marketplace.configure_auto_topup(
            user.user_id,
            trigger_balance=payload.trigger_balance,
            topup_amount=payload.topup_amount,
            package_type=payload.package_type,
            payment_method_id=payload.payment_method_id,
            enabled=payload.enabled,
        )
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return AutoTopupResponse.model_validate(settings)


@router.post("/auto-topup/enable", response_model=AutoTopupResponse, summary="Re-enable auto-topup")
async def enable_auto_topup(
    user: TokenData = Depends(get_current_user),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> AutoTopupResponse:
    try:
        settings = await marketplace.enable_auto_topup(user.user_id)
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return AutoTopupResponse.model_validate(settings)


@router.post("/auto-topup/disable", response_model=AutoTopupResponse, summary="Disable auto-topup")
async def disable_auto_topup(
    user: TokenData = Depends(get_current_user),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> AutoTopupResponse:
    try:
        settings = await marketplace.disable_auto_topup(user.user_id)
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return AutoTopupResponse.model_validate(settings)
