from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PaymentMethod(str, Enum):
    bank_transfer = "bank_transfer"
    easypaisa = "easypaisa"
    jazzcash = "jazzcash"
    card = "card"


class PaymentStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    verified = "verified"


class PaymentRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    user_id: str
    amount: float
    currency: str
    method: PaymentMethod
    status: PaymentStatus
    external_id: Optional[str] = None
    transaction_reference: Optional[str] = None
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "PaymentRecord":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        data["user_id"] = str(data["user_id"])
        if data.get("verified_by") is not None:
            data["verified_by"] = str(data["verified_by"])
        return cls.model_validate(data)


class ManualPaymentRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    method: PaymentMethod
    amount: float = Field(gt=0)
    currency: str = "PKR"
    transaction_reference: str = Field(min_length=3)


class PaymentRejectionRequest(BaseModel):
    reason: str = Field(min_length=1)


class CheckoutSessionResponse(BaseModel):
    url: str
    payment_id: str
