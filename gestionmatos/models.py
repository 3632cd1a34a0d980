from typing import Optional
from decimal import Decimal
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field
from datetime import datetime, date, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str = Field(default="user", index=True)  # user / manager / admin
    qr_code: str = Field(unique=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class Category(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True)
    description: Optional[str] = None
    color: str = Field(default="#3B82F6")
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class Material(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, index=True)
    serial_number: Optional[str] = Field(default=None, unique=True)
    qr_code: str = Field(unique=True)
    status: str = Field(default="available", index=True)  # available / borrowed / maintenance / lost
    location: Optional[str] = None
    purchase_date: Optional[date] = None
    purchase_price: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)
    created_by: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class Movement(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    material_id: int = Field(foreign_key="material.id", index=True)
    # null once the borrower's account is deleted
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)

    movement_type: str = Field(index=True)  # out / in
    movement_date: datetime = Field(default_factory=utcnow, index=True, sa_type=DateTime(timezone=True))
    expected_return_date: Optional[date] = None
    # set once, by the matching checkin
    actual_return_date: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))

    notes: Optional[str] = None
    processed_by: Optional[int] = Field(default=None, foreign_key="user.id")

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
