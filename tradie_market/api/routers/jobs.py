"""Job endpoints: posting, cost quotes and applying."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Path, status

from tradie_market.api.deps import get_marketplace
from tradie_market.api.errors import to_http_exception
from tradie_market.core.security import get_current_tradie, get_current_user
from tradie_market.modules.applications.models import ApplicationDraft
from tradie_market.modules.common.exceptions import MarketplaceError
from tradie_market.schemas import (
    ApplicationCreateRequest,
    ApplicationResponse,
    CreditCostQuoteResponse,
    JobCreateRequest,
    JobResponse,
    TokenData,
)
from tradie_market.services.marketplace import MarketplaceCreditService

router = APIRouter()


@router.post("", response_model=JobResponse, status_code=status.HTTP_201_CREATED, summary="Post a job")
async def create_job(
    payload: JobCreateRequest,
    user: TokenData = Depends(get_current_user),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> JobResponse:
    if user.role != "client" and not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Client account required")
    try:
        job = await marketplace.create_job(
            client_id=user.user_id,
            title=payload.title,
            job_type=payload.job_type,
            urgency_level=payload.urgency_level,
            expires_at=payload.expires_at,
        )
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return JobResponse.model_validate(job)


@router.get("/{job_id}", response_model=JobResponse, summary="Get a job")
async def get_job(
    job_id: str = Path(...),
    user: TokenData = Depends(get_current_user),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> JobResponse:
    try:
        job = await marketplace.get_job(job_id)
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return JobResponse.model_validate(job)


@router.get("/{job_id}/quote", response_model=CreditCostQuoteResponse, summary="Credits needed to apply")
async def quote_application_cost(
    job_id: str = Path(...),
    user: TokenData = Depends(get_current_user),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> CreditCostQuoteResponse:
    try:
        quote = await marketplace.quote_application_cost(job_id)
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return CreditCostQuoteResponse(
        job_type=quote.job_type,
        urgency_level=quote.urgency_level,
        base_cost=quote.base_cost,
        urgency_multiplier=float(quote.urgency_multiplier),
        job_type_multiplier=float(quote.job_type_multiplier),
        final_cost=quote.final_cost,
    )


@router.post(
    "/{job_id}/applications",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Apply to a job",
)
async def create_application(
    payload: ApplicationCreateRequest,
    job_id: str = Path(...),
    tradie: TokenData = Depends(get_current_tradie),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> ApplicationResponse:
    draft = ApplicationDraft(
        custom_quote_cents=payload.custom_quote_cents,
        proposed_timeline=payload.proposed_timeline,
        cover_message=payload.cover_message,
    )
    try:
        application = await marketplace.create_application(job_id, tradie.user_id, draft)
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return ApplicationResponse.model_validate(application)


@router.get("/{job_id}/applications", response_model=list[ApplicationResponse], summary="Applications for a job")
async def list_job_applications(
    job_id: str = Path(...),
    open_only: bool = False,
    user: TokenData = Depends(get_current_user),
    marketplace: MarketplaceCreditService = Depends(get_marketplace),
) -> list[ApplicationResponse]:
    try:
        job = await marketplace.get_job(job_id)
        if job.client_id != user.user_id and not user.is_admin:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the job's client can list applications")
        applications = await marketplace.list_job_applications(job_id, open_only=open_only)
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return [ApplicationResponse.model_validate(item) for item in applications]
