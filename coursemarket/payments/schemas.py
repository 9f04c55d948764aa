from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PaymentIntentIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: Decimal = Field(gt=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    description: Optional[str] = Field(default=None, max_length=500)
    course_ids: List[str] = Field(default_factory=list, alias="courseIds")
    full_name: Optional[str] = Field(default=None, alias="fullName", max_length=200)
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber", max_length=40)
    postal_code: Optional[str] = Field(default=None, alias="postalCode", max_length=20)
    idempotency_key: Optional[str] = Field(default=None, alias="idempotencyKey", max_length=200)

    @field_validator("course_ids", mode="before")
    @classmethod
    def _ids_as_str(cls, v):
        return [str(x) for x in (v or [])]


class ConfirmPaymentIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    intent_id: str = Field(alias="intentId", min_length=1)


class CheckoutSessionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    return_url: str = Field(alias="returnUrl", min_length=1)
