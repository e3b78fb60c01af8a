from sqlmodel import SQLModel, Field, Column
import uuid
from datetime import datetime, timezone
from typing import Optional
import sqlalchemy.dialects.postgresql as pg


def utc_now():

    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    __tablename__ = "users"

    user_id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    email: str = Field(unique=True, index=True)
    name: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    password_hash: str = Field(exclude=True)
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(pg.TIMESTAMP(timezone=True))
    )
