from sqlmodel import SQLModel, Field, Column
import uuid
from decimal import Decimal
import sqlalchemy.dialects.postgresql as pg
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

def utc_now():
    return datetime.now(timezone.utc)


class PaymentMethod(str, Enum):
    CASH = "cash"
    UPI = "upi"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    ADVANCE_DEDUCTION = "advance_deduction"


class Payment(SQLModel, table=True):
    """A receipt against one sale. Never updated or deleted once written."""
    __tablename__ = "payments"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    sale_id: uuid.UUID = Field(foreign_key="sales.id", index=True)
    customer_id: uuid.UUID = Field(foreign_key="customers.id", index=True)
    user_id: uuid.UUID = Field(foreign_key="users.user_id", index=True)
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    method: PaymentMethod
    reference_number: Optional[str] = None
    notes: Optional[str] = None

    # Set for advance_deduction receipts: the ledger entry that funded it
    advance_payment_id: Optional[uuid.UUID] = Field(default=None, foreign_key="advance_payments.id", index=True)

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(pg.TIMESTAMP(timezone=True))
    )
