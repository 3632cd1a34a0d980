from typing import Optional
from enum import Enum
from decimal import Decimal
from pydantic import BaseModel, Field, field_validator
from datetime import datetime, date


class Role(str, Enum):
    USER = "user"
    MANAGER = "manager"
    ADMIN = "admin"


class MaterialStatus(str, Enum):
    AVAILABLE = "available"
    BORROWED = "borrowed"
    MAINTENANCE = "maintenance"
    LOST = "lost"


class MovementType(str, Enum):
    OUT = "out"
    IN = "in"


# ---------- auth / users ----------

class UserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=6, max_length=128)
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def email_has_at(cls, v: str) -> str:
        v = v.strip()
        if "@" not in v:
            raise ValueError("email must contain '@'")
        return v

    @field_validator("username")
    @classmethod
    def username_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("username must not be blank")
        return v


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, description="username or email")
    password: str = Field(..., min_length=1)


class UserRead(BaseModel):
    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Role
    qr_code: str
    created_at: datetime


class AuthResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserRead


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class RoleUpdate(BaseModel):
    role: Role


# ---------- materials ----------

class MaterialCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = None
    serial_number: Optional[str] = None
    location: Optional[str] = None
    purchase_date: Optional[date] = None
    purchase_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

    @field_validator("serial_number")
    @classmethod
    def blank_serial_is_none(cls, v: Optional[str]) -> Optional[str]:
        # several materials without serial must not collide on ""
        if v is None:
            return None
        v = v.strip()
        return v or None


class MaterialUpdate(MaterialCreate):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    status: Optional[MaterialStatus] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class MaterialRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    serial_number: Optional[str] = None
    qr_code: str
    status: MaterialStatus
    location: Optional[str] = None
    purchase_date: Optional[date] = None
    purchase_price: Optional[Decimal] = None
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class MaterialDetail(MaterialRead):
    category_color: Optional[str] = None
    created_by_username: Optional[str] = None


class MaterialSort(str, Enum):
    created_desc = "created_desc"
    created_asc = "created_asc"
    name_asc = "name_asc"
    name_desc = "name_desc"
    id_desc = "id_desc"
    id_asc = "id_asc"


class MaterialListResponse(BaseModel):
    items: list[MaterialDetail]
    total: int
    limit: int
    offset: int
    q: Optional[str] = None


class CategoryRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    color: str


class StatusCounts(BaseModel):
    total: int = 0
    available: int = 0
    borrowed: int = 0
    maintenance: int = 0
    lost: int = 0


class CategoryStats(StatusCounts):
    category: Optional[str] = None


class MaterialStats(BaseModel):
    overall: StatusCounts
    by_category: list[CategoryStats]


# ---------- movements ----------

class CheckoutRequest(BaseModel):
    material_id: int = Field(..., ge=1)
    user_id: int = Field(..., ge=1)
    expected_return_date: Optional[date] = None
    note: Optional[str] = None


class CheckinRequest(BaseModel):
    material_id: int = Field(..., ge=1)
    user_id: int = Field(..., ge=1)
    note: Optional[str] = None


class MovementResult(BaseModel):
    message: str
    movement_id: int


class MovementRead(BaseModel):
    id: int
    material_id: int
    user_id: Optional[int] = None
    movement_type: MovementType
    movement_date: datetime
    expected_return_date: Optional[date] = None
    actual_return_date: Optional[datetime] = None
    notes: Optional[str] = None
    processed_by: Optional[int] = None

    material_name: Optional[str] = None
    material_qr: Optional[str] = None
    user_username: Optional[str] = None
    processed_by_username: Optional[str] = None


class MovementListResponse(BaseModel):
    items: list[MovementRead]
    total: int
    limit: int
    offset: int


class DailyMovementCount(BaseModel):
    date: date
    movement_type: MovementType
    count: int


# ---------- qr ----------

class ScanRequest(BaseModel):
    qr_data: str = Field(..., min_length=1)


class MaterialQR(BaseModel):
    qr_code: str  # data:image/png;base64,...
    data: str
    material: MaterialRead


class UserQR(BaseModel):
    qr_code: str
    data: str
    user: UserRead


class ScanResult(BaseModel):
    type: str
    data: dict
