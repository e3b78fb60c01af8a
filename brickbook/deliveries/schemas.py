from pydantic import BaseModel
import uuid
from decimal import Decimal
from datetime import datetime, date
from typing import List, Optional
from brickbook.sales.models import DeliveryStatus
from brickbook.sales.schemas import SaleItem


class Delivery(BaseModel):
    sale_id: uuid.UUID
    invoice_no: str
    customer_id: uuid.UUID
    customer_name: str
    customer_phone: Optional[str] = None
    delivery_address: Optional[str] = None
    delivery_date: Optional[date] = None
    delivery_status: DeliveryStatus
    items: List[SaleItem] = []
    total_amount: Decimal
    notes: Optional[str] = None
    sale_date: datetime


class DeliveryListResponse(BaseModel):
    success: bool
    message: str
    data: List[Delivery]


class DeliveryStats(BaseModel):
    pending_count: int
    scheduled_count: int
    total_notifications: int


class DeliveryStatsResponse(BaseModel):
    success: bool
    message: str
    data: DeliveryStats
