from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class GatewayTransactionInfo(BaseModel):
    """Card transaction metadata reported by the gateway."""
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    ApprovalNumber: Optional[str] = None
    Last4CardDigits: Optional[str] = None
    CardOwnerName: Optional[str] = None
    NumberOfPayments: Optional[int] = None


class GatewayDocumentInfo(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    DocumentUrl: Optional[str] = None
    DocumentNumber: Optional[int] = None


class GatewayWebhookPayload(BaseModel):
    """Payment confirmation body posted by the gateway (field names are the gateway's)."""
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    ResponseCode: int = Field(..., description="0 means the payment succeeded.")
    Description: Optional[str] = None
    ReturnValue: str = Field(..., description="Internal order id passed to the gateway at checkout.")
    TranzactionId: Optional[int] = None
    LowProfileId: Optional[str] = None
    TranzactionInfo: Optional[GatewayTransactionInfo] = None
    DocumentInfo: Optional[GatewayDocumentInfo] = None
