from pydantic import BaseModel, Field, field_validator
import uuid
from decimal import Decimal
from brickbook.sales.models import SaleStatus, DeliveryStatus
from brickbook.payments.models import PaymentMethod
from datetime import datetime, date
from typing import Optional, List


class SaleItemInput(BaseModel):
    product_type: str = Field(min_length=1)
    quantity: Decimal = Field(ge=0, max_digits=12, decimal_places=3)
    unit_price: Decimal = Field(ge=0, max_digits=14, decimal_places=2)


class SaleItem(SaleItemInput):
    total: Decimal


class Sale(BaseModel):
    id: uuid.UUID
    invoice_no: str
    customer_id: uuid.UUID
    items: List[SaleItem] = []
    subtotal: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    due_amount: Decimal
    status: SaleStatus
    payment_method: PaymentMethod
    notes: Optional[str] = None
    due_date: Optional[date] = None
    delivery_status: DeliveryStatus
    delivery_address: Optional[str] = None
    delivery_date: Optional[date] = None
    sale_date: datetime
    created_at: datetime


class SaleInput(BaseModel):
    customer_id: uuid.UUID
    items: List[SaleItemInput] = Field(min_length=1)
    discount_amount: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=14, decimal_places=2)

    # cash (or other method) received at the counter
    paid_amount: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=14, decimal_places=2)
    payment_method: PaymentMethod = PaymentMethod.CASH
    # taken from the customer's advance balance
    advance_used: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=14, decimal_places=2)
    # extra received now and parked as advance for later sales
    advance_payment: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=14, decimal_places=2)

    notes: Optional[str] = None
    due_date: Optional[date] = None
    sale_date: Optional[datetime] = None
    delivery_status: DeliveryStatus = DeliveryStatus.PENDING
    delivery_address: Optional[str] = None
    delivery_date: Optional[date] = None

    @field_validator("payment_method")
    @classmethod
    def reject_advance_deduction(cls, value: PaymentMethod):
        if value == PaymentMethod.ADVANCE_DEDUCTION:
            raise ValueError("pass advance_used to pay from advance balance")
        return value


class DeliveryUpdate(BaseModel):
    delivery_status: DeliveryStatus
    delivery_address: Optional[str] = None
    delivery_date: Optional[date] = None


class PaymentSummary(BaseModel):
    total_amount: Decimal
    paid_amount: Decimal
    advance_used: Decimal
    advance_payment: Decimal
    due_amount: Decimal
    new_advance_balance: Decimal


class SaleCreated(BaseModel):
    sale: Sale
    payment_summary: PaymentSummary


class SaleCreateResponse(BaseModel):
    success: bool
    message: str
    data: SaleCreated


class SaleResponse(BaseModel):
    success: bool
    message: str
    data: Sale


class SaleListResponse(BaseModel):
    success: bool
    message: str
    data: List[Sale]
