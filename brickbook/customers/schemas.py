from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from decimal import Decimal
import uuid
from datetime import datetime
from brickbook.sales.models import SaleStatus

class CustomerCreate(BaseModel):
    name: str = Field(min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None

class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_cannot_be_cleared(cls, value: Optional[str]):
        if value is None:
            raise ValueError("name cannot be empty")
        return value

class CustomerInfo(BaseModel):
    id: uuid.UUID
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    advance_balance: Decimal
    last_purchase_date: Optional[datetime] = None
    created_at: datetime

class CustomerWithDue(CustomerInfo):
    due_amount: Decimal

class CustomerResponse(BaseModel):
    success: bool
    message: str
    data: CustomerInfo

class CustomerListResponse(BaseModel):
    success: bool
    message: str
    data: List[CustomerWithDue]


class RecentPurchase(BaseModel):
    id: uuid.UUID
    invoice_no: str
    total_amount: Decimal
    paid_amount: Decimal
    due_amount: Decimal
    status: SaleStatus
    created_at: datetime

class CustomerStats(BaseModel):
    total_sales: int
    total_amount: Decimal
    total_paid: Decimal
    due_amount: Decimal
    recent_purchases: List[RecentPurchase]

class CustomerStatsResponse(BaseModel):
    success: bool
    message: str
    data: CustomerStats


class ProductTypeShare(BaseModel):
    product_type: str
    quantity: Decimal
    percentage: float

class CustomerStatistics(BaseModel):
    total_sales: int
    total_sale_amount: Decimal
    total_paid_amount: Decimal
    total_due_amount: Decimal
    total_quantity: Decimal
    payment_completion_rate: int
    average_sale_value: Decimal

class SaleStatusBreakdown(BaseModel):
    fully_paid_sales: int
    partial_sales: int
    pending_sales: int

class CustomerOverview(BaseModel):
    customer: CustomerInfo
    statistics: CustomerStatistics
    product_types: List[ProductTypeShare]
    recent_sales: List[RecentPurchase]
    summary: SaleStatusBreakdown

class CustomerOverviewResponse(BaseModel):
    success: bool
    message: str
    data: CustomerOverview
