"""Pydantic schemas used across the project."""
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class TokenData(BaseModel):
    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role in {"admin", "super_admin"}


class ErrorDetail(BaseModel):
    code: str
    message: str
    category: str


class JobCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    job_type: str = Field(..., min_length=1, max_length=30)
    urgency_level: Literal["low", "medium", "high", "urgent"] = "medium"
    expires_at: Optional[datetime] = None


class JobResponse(BaseModel):
    id: str
    client_id: str
    title: str
    job_type: str
    urgency_level: str
    status: str
    application_count: int
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CreditCostQuoteResponse(BaseModel):
    job_type: str
    urgency_level: str
    base_cost: int
    urgency_multiplier: float
    job_type_multiplier: float
    final_cost: int

    model_config = ConfigDict(from_attributes=True)


class ApplicationCreateRequest(BaseModel):
    custom_quote_cents: Optional[int] = Field(default=None, ge=0)
    proposed_timeline: Optional[str] = Field(default=None, max_length=500)
    cover_message: Optional[str] = Field(default=None, max_length=2000)


class ApplicationStatusUpdateRequest(BaseModel):
    status: Literal["under_review", "selected", "rejected"]
    reason: Optional[str] = Field(default=None, max_length=500)


class ApplicationWithdrawRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)
    refund_credits: bool = True


class ApplicationResponse(BaseModel):
    id: str
    marketplace_job_id: str
    tradie_id: str
    status: str
    credits_used: int
    application_timestamp: datetime
    custom_quote_cents: Optional[int] = None
    proposed_timeline: Optional[str] = None
    cover_message: Optional[str] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ApplicationListResponse(BaseModel):
    total: int
    page: int
    limit: int
    has_more: bool
    items: list[ApplicationResponse]

    model_config = ConfigDict(from_attributes=True)


class TimelineEntryResponse(BaseModel):
    activity_type: str
    description: str
    metadata: dict[str, Any]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CreditBalanceResponse(BaseModel):
    user_id: str
    current_balance: int
    total_purchased: int
    total_used: int
    total_refunded: int
    last_purchase_at: Optional[datetime] = None
    last_usage_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CreditTransactionResponse(BaseModel):
    id: str
    transaction_type: str
    credits: int
    signed_credits: int
    status: str
    description: Optional[str] = None
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CreditTransactionListResponse(BaseModel):
    total: int
    page: int
    limit: int
    has_more: bool
    items: list[CreditTransactionResponse]

    model_config = ConfigDict(from_attributes=True)


class CreditPurchaseRequest(BaseModel):
    user_id: str
    credits: int = Field(..., gt=0)
    reference_id: Optional[str] = Field(default=None, max_length=64)
    description: Optional[str] = Field(default=None, max_length=255)
    expires_at: Optional[datetime] = None


class CreditAdjustmentRequest(BaseModel):
    user_id: str
    credits: int = Field(..., gt=0)
    description: Optional[str] = Field(default=None, max_length=255)


class AutoTopupConfigureRequest(BaseModel):
    trigger_balance: int
    topup_amount: int
    package_type: str
    payment_method_id: Optional[str] = Field(default=None, max_length=100)
    enabled: bool = True


class AutoTopupResponse(BaseModel):
    user_id: str
    status: str
    trigger_balance: int
    topup_amount: int
    package_type: str
    failure_count: int
    payment_method_id: Optional[str] = None
    last_failure_reason: Optional[str] = None
    last_triggered_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
