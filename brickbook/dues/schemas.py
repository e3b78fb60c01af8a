from pydantic import BaseModel, Field
import uuid
from decimal import Decimal
from datetime import datetime, date
from typing import List, Optional
from brickbook.sales.models import SaleStatus
from brickbook.advance.schemas import AdvancePayment
from brickbook.customers.schemas import CustomerInfo
from brickbook.sales.schemas import Sale
from brickbook.payments.schemas import Payment


class Due(BaseModel):
    sale_id: uuid.UUID
    invoice_no: str
    customer_id: uuid.UUID
    customer_name: str
    customer_phone: Optional[str] = None
    total_amount: Decimal
    paid_amount: Decimal
    due_amount: Decimal
    status: SaleStatus
    due_date: Optional[date] = None
    sale_date: datetime
    days_overdue: int


class DueListResponse(BaseModel):
    success: bool
    message: str
    data: List[Due]


class AdvanceDeductionInput(BaseModel):
    sale_id: uuid.UUID
    customer_id: uuid.UUID
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    description: Optional[str] = None
    date: Optional[datetime] = None


class SettlementData(BaseModel):
    advance_payment: AdvancePayment
    customer: CustomerInfo
    sale: Sale
    payment: Payment


class SettlementSummary(BaseModel):
    amount_deducted: Decimal
    remaining_advance: Decimal
    remaining_due: Decimal
    new_status: SaleStatus


class SettlementResponse(BaseModel):
    success: bool
    message: str
    data: SettlementData
    summary: SettlementSummary
