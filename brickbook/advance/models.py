from sqlmodel import SQLModel, Field, Column
import uuid
from decimal import Decimal
import sqlalchemy.dialects.postgresql as pg
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

def utc_now():
    return datetime.now(timezone.utc)


class AdvanceType(str, Enum):
    ADVANCE_ADDED = "ADVANCE_ADDED"      # manual top-up
    ADVANCE_PAYMENT = "ADVANCE_PAYMENT"  # extra cash taken at sale time
    ADVANCE_USED = "ADVANCE_USED"        # spent against a sale


class AdvancePayment(SQLModel, table=True):
    """One change to a customer's advance balance.

    ``amount`` is signed: positive adds funds, negative uses them. Entries are
    append-only, so the sum of a customer's entries must always equal
    ``Customer.advance_balance``.
    """
    __tablename__ = "advance_payments"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    customer_id: uuid.UUID = Field(foreign_key="customers.id", index=True)
    user_id: uuid.UUID = Field(foreign_key="users.user_id", index=True)
    amount: Decimal = Field(max_digits=14, decimal_places=2)
    type: AdvanceType = Field(index=True)
    description: str
    reference: Optional[str] = None
    notes: Optional[str] = None
    sale_id: Optional[uuid.UUID] = Field(default=None, foreign_key="sales.id", index=True)

    # "<user_id>:<client key>" for settlement requests sent with an Idempotency-Key
    idempotency_key: Optional[str] = Field(default=None, unique=True, index=True)

    date: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(pg.TIMESTAMP(timezone=True))
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(pg.TIMESTAMP(timezone=True))
    )
