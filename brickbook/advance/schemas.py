from pydantic import BaseModel, Field
import uuid
from decimal import Decimal
from datetime import datetime
from typing import List, Optional
from brickbook.advance.models import AdvanceType
from brickbook.customers.schemas import CustomerInfo


class AdvancePayment(BaseModel):
    id: uuid.UUID
    customer_id: uuid.UUID
    amount: Decimal
    type: AdvanceType
    description: str
    reference: Optional[str] = None
    notes: Optional[str] = None
    sale_id: Optional[uuid.UUID] = None
    date: datetime
    created_at: datetime


class AdvanceInput(BaseModel):
    customer_id: uuid.UUID
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    description: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
    date: Optional[datetime] = None


class AdvanceCustomer(BaseModel):
    id: uuid.UUID
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    advance_balance: Decimal
    last_purchase_date: Optional[datetime] = None
    created_at: datetime


class AdvanceSummary(BaseModel):
    total_advance: Decimal
    total_customers: int


class AdvanceBalanceData(BaseModel):
    customers: List[AdvanceCustomer]
    summary: AdvanceSummary


class AdvanceBalanceResponse(BaseModel):
    success: bool
    message: str
    data: AdvanceBalanceData


class AdvanceAdded(BaseModel):
    advance_payment: AdvancePayment
    customer: CustomerInfo


class AdvanceAddedResponse(BaseModel):
    success: bool
    message: str
    data: AdvanceAdded


class AdvanceTransaction(AdvancePayment):
    customer_name: str
    invoice_no: Optional[str] = None


class AdvanceTransactionListResponse(BaseModel):
    success: bool
    message: str
    data: List[AdvanceTransaction]


class ReconciliationLine(BaseModel):
    customer_id: uuid.UUID
    customer_name: str
    advance_balance: Decimal
    ledger_total: Decimal
    difference: Decimal


class ReconciliationReport(BaseModel):
    consistent: bool
    checked_customers: int
    discrepancies: List[ReconciliationLine]


class ReconciliationResponse(BaseModel):
    success: bool
    message: str
    data: ReconciliationReport
