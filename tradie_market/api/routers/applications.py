"""Application endpoints: review, selection, withdrawal and history."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from tradie_market.api.deps import get_marketplace
from tradie_market.api.errors import to_http_exception
from tradie_market.core.security import get_current_tradie, get_current_user
from tradie_market.modules.applications.models import WithdrawalRequest
from tradie_market.modules.common.exceptions import MarketplaceError
from tradie_market.schemas import (
    ApplicationListResponse,
    ApplicationResponse,
    ApplicationStatusUpdateRequest,
    ApplicationWithdrawRequest,
    TimelineEntryResponse,
    TokenData,
)
from tradie_market.services.marketplace import MarketplaceCreditService

router = APIRouter()


@router.get("/mine", response_model=ApplicationListResponse, summary="Current tradie's applications")
async def list_my_applications(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    tradie: TokenData = Depends(get_current_tradie),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> ApplicationListResponse:
    result = await _call(
        marketplace.list_tradie_applications(tradie.user_id, status=status_filter, page=page, limit=limit)
    )
    return ApplicationListResponse.model_validate(result)


@router.get("/{application_id}", response_model=ApplicationResponse, summary="Get an application")
async def get_application(
    application_id: str = Path(...),
    user: TokenData = Depends(get_current_user),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> ApplicationResponse:
    application = await _call(marketplace.get_application(application_id))
    await _ensure_can_view(marketplace, user, application.tradie_id, application.marketplace_job_id)
    return ApplicationResponse.model_validate(application)


@router.patch("/{application_id}/status", response_model=ApplicationResponse, summary="Review, select or reject")
async def update_application_status(
    payload: ApplicationStatusUpdateRequest,
    application_id: str = Path(...),
    user: TokenData = Depends(get_current_user),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> ApplicationResponse:
    application = await _call(
        marketplace.update_application_status(
            application_id,
            payload.status,
            reason=payload.reason,
            actor_id=user.user_id,
            actor_is_admin=user.is_admin,
        )
    )
    return ApplicationResponse.model_validate(application)


@router.post("/{application_id}/withdraw", response_model=ApplicationResponse, summary="Withdraw an application")
async def withdraw_application(
    payload: ApplicationWithdrawRequest,
    application_id: str = Path(...),
    tradie: TokenData = Depends(get_current_tradie),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> ApplicationResponse:
    request = WithdrawalRequest(reason=payload.reason, refund_credits=payload.refund_credits)
    application = await _call(marketplace.withdraw_application(application_id, tradie.user_id, request))
    return ApplicationResponse.model_validate(application)


@router.get("/{application_id}/timeline", response_model=list[TimelineEntryResponse], summary="Application history")
async def get_application_timeline(
    application_id: str = Path(...),
    user: TokenData = Depends(get_current_user),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> list[TimelineEntryResponse]:
    application = await _call(marketplace.get_application(application_id))
    await _ensure_can_view(marketplace, user, application.tradie_id, application.marketplace_job_id)
    entries = await _call(marketplace.get_application_timeline(application_id))
    return [TimelineEntryResponse.model_validate(entry) for entry in entries]


async def _call(awaitable):
    try:
        return await awaitable
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc


async def _ensure_can_view(marketplace: MarketplaceCreditService, user: TokenData, tradie_id: str, job_id: str) -> None:
    if user.is_admin or user.user_id == tradie_id:
        return
    job = await _call(marketplace.get_job(job_id))
    if job.client_id != user.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to view this application")
