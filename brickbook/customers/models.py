from sqlmodel import SQLModel, Field, Column
import uuid
from decimal import Decimal
from typing import Optional
import sqlalchemy.dialects.postgresql as pg
from datetime import datetime, timezone

def utc_now():
    return datetime.now(timezone.utc)

class Customer(SQLModel, table=True):
    __tablename__ = "customers"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.user_id", index=True)
    name: str = Field(index=True)
    phone: Optional[str] = Field(default=None, index=True)
    email: Optional[str] = None
    address: Optional[str] = None

    # advance_balance: prepaid credit. Cached running total of the customer's
    # ledger entries; only brickbook.advance.services.post_ledger_entry writes it.
    advance_balance: Decimal = Field(default=Decimal("0.00"), max_digits=14, decimal_places=2)

    last_purchase_date: Optional[datetime] = Field(
        default=None,
        sa_column=Column(pg.TIMESTAMP(timezone=True), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(pg.TIMESTAMP(timezone=True))
    )
