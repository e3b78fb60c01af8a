from pydantic import BaseModel, Field, field_validator
import uuid
from decimal import Decimal
from brickbook.payments.models import PaymentMethod
from datetime import datetime
from typing import List, Optional

class Payment(BaseModel):
    id: uuid.UUID
    sale_id: uuid.UUID
    customer_id: uuid.UUID
    amount: Decimal
    method: PaymentMethod
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    advance_payment_id: Optional[uuid.UUID] = None
    created_at: datetime

class PaymentInput(BaseModel):
    sale_id: uuid.UUID
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    method: PaymentMethod = PaymentMethod.CASH
    reference_number: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("method")
    @classmethod
    def reject_advance_deduction(cls, value: PaymentMethod):
        if value == PaymentMethod.ADVANCE_DEDUCTION:
            raise ValueError("use /api/dues/advance-deduction to pay from advance balance")
        return value

class PaymentResponse(BaseModel):
    success: bool
    message: str
    data: Payment

class PaymentListResponse(BaseModel):
    success: bool
    message: str
    data: List[Payment]
