# schemas.py
"""
Request schemas for the delivery API.

Each model validates one JSON body. Field names are snake_case in Python and
camelCase on the wire (``firstName``, ``deliveryFee``); both spellings are
accepted on input.
"""
from decimal import Decimal
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


MAX_LINE_QUANTITY = 1000

Money = Annotated[Decimal, Field(ge=0, max_digits=10, decimal_places=2)]


class InsertUser(ApiModel):
    username: str = Field(min_length=3, max_length=80)
    password: str = Field(min_length=6, max_length=128)
    email: EmailStr
    first_name: str = Field(min_length=1, max_length=80)
    last_name: str = Field(min_length=1, max_length=80)
    # admin accounts come from /api/system/init, never self-registration
    role: Literal["customer", "driver", "vendor"] = "customer"
    phone: Optional[str] = Field(None, max_length=40)
    address: Optional[str] = None


class LoginRequest(ApiModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class InsertVendor(ApiModel):
    name: str = Field(min_length=1, max_length=160)
    description: Optional[str] = None
    cuisine: str = Field(min_length=1, max_length=80)
    address: str = Field(min_length=1)
    phone: Optional[str] = Field(None, max_length=40)
    image_url: Optional[str] = None
    delivery_fee: Money
    minimum_order: Money = Decimal("0.00")
    delivery_time: int = Field(gt=0, description="Minutes")
    is_open: bool = True


class UpdateVendor(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=160)
    description: Optional[str] = None
    cuisine: Optional[str] = Field(None, min_length=1, max_length=80)
    address: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = Field(None, max_length=40)
    image_url: Optional[str] = None
    delivery_fee: Optional[Money] = None
    minimum_order: Optional[Money] = None
    delivery_time: Optional[int] = Field(None, gt=0)


class VendorStatusUpdate(ApiModel):
    is_open: bool


class InsertMenuItem(ApiModel):
    name: str = Field(min_length=1, max_length=160)
    description: Optional[str] = None
    price: Money
    category: str = Field(min_length=1, max_length=80)
    image_url: Optional[str] = None
    is_available: bool = True


class MenuItemAvailabilityUpdate(ApiModel):
    is_available: bool


class OrderLineItem(ApiModel):
    item_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    price: Money
    quantity: int = Field(ge=1, le=MAX_LINE_QUANTITY)


class InsertOrder(ApiModel):
    vendor_id: str = Field(min_length=1)
    items: List[OrderLineItem] = Field(min_length=1)
    delivery_address: str = Field(min_length=1)
    customer_notes: Optional[str] = None


class OrderStatusUpdate(ApiModel):
    status: str


class InsertDriver(ApiModel):
    vehicle_type: str = Field(min_length=1, max_length=40)
    license_number: str = Field(min_length=1, max_length=80)
    is_online: bool = False
    current_location_lat: Optional[Decimal] = Field(None, ge=-90, le=90)
    current_location_lng: Optional[Decimal] = Field(None, ge=-180, le=180)


class DriverStatusUpdate(ApiModel):
    is_online: bool
