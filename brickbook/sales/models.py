from sqlmodel import SQLModel, Field, Column
from typing import List, Optional
from decimal import Decimal
import uuid
import sqlalchemy as sa
import sqlalchemy.dialects.postgresql as pg
from datetime import datetime, date, timezone
from enum import Enum
from brickbook.payments.models import PaymentMethod
from brickbook.utils.errors import ExcessPayment

def utc_now():
    return datetime.now(timezone.utc)

class SaleStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"

class DeliveryStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


def derive_status(paid_amount: Decimal, due_amount: Decimal) -> SaleStatus:
    if due_amount == 0:
        return SaleStatus.PAID
    if paid_amount > 0:
        return SaleStatus.PARTIAL
    return SaleStatus.PENDING


class Sale(SQLModel, table=True):
    __tablename__ = "sales"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    invoice_no: str = Field(unique=True, index=True)
    customer_id: uuid.UUID = Field(foreign_key="customers.id", index=True)
    user_id: uuid.UUID = Field(foreign_key="users.user_id", index=True)

    # Validated SaleItemInput dicts, in entry order
    items: List[dict] = Field(default_factory=list, sa_column=Column(sa.JSON, nullable=False))

    subtotal: Decimal = Field(default=Decimal("0.00"), max_digits=14, decimal_places=2)
    discount_amount: Decimal = Field(default=Decimal("0.00"), max_digits=14, decimal_places=2)
    total_amount: Decimal = Field(default=Decimal("0.00"), max_digits=14, decimal_places=2)
    paid_amount: Decimal = Field(default=Decimal("0.00"), max_digits=14, decimal_places=2)
    due_amount: Decimal = Field(default=Decimal("0.00"), max_digits=14, decimal_places=2)
    status: SaleStatus = Field(default=SaleStatus.PENDING, index=True)
    payment_method: PaymentMethod = Field(default=PaymentMethod.CASH)

    notes: Optional[str] = None
    due_date: Optional[date] = None

    delivery_status: DeliveryStatus = Field(default=DeliveryStatus.PENDING, index=True)
    delivery_address: Optional[str] = None
    delivery_date: Optional[date] = None

    sale_date: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(pg.TIMESTAMP(timezone=True))
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(pg.TIMESTAMP(timezone=True))
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(pg.TIMESTAMP(timezone=True))
    )

    def apply_payment(self, amount: Decimal) -> SaleStatus:
        """Move ``amount`` from due to paid and re-derive the status.

        Every receipt against a sale goes through here, whatever its source,
        so ``paid_amount + due_amount == total_amount`` always holds.
        """
        if amount > self.due_amount:
            raise ExcessPayment(due_amount=self.due_amount, payment_amount=amount)

        self.paid_amount += amount
        self.due_amount -= amount
        self.status = derive_status(self.paid_amount, self.due_amount)
        self.updated_at = utc_now()
        return self.status
