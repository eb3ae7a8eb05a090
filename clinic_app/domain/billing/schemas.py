"""Billing domain schemas - Pydantic models for payment orders and notifications"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict


class CreateOrderRequest(BaseModel):
    appointmentId: int
    motive: Optional[str] = None


class CreateOrderResponse(BaseModel):
    orderId: str
    approvalUrl: Optional[str] = None
    sandboxApprovalUrl: Optional[str] = None
    originalPrice: float
    finalPrice: float
    discountAmount: float
    discountPercent: float
    insuranceTier: str
    requiresInsuranceVerification: bool


class NotificationData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[Union[int, str]] = None


class WebhookNotification(BaseModel):
    """Gateway notification body: {"type": "payment", "data": {"id": "123"}}"""

    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    action: Optional[str] = None
    data: Optional[NotificationData] = None
