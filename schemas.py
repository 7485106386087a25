"""
Database Schemas

Pydantic models for every collection plus the request bodies that write to
them. Fields are snake_case in Python and in MongoDB; over HTTP they are
camelCase (both spellings are accepted on input).

Model name is converted to lowercase for the collection name:
- Order -> "order" (OrderItem entries are embedded)
- Notification -> "notification"
- CartItem -> "cartitem"
"""

from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PatchModel(ApiModel):
    """Partial update body; unknown keys are kept aside so callers can report them."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def ignored_fields(self) -> List[str]:
        return sorted((self.model_extra or {}).keys())


# Enumerations

class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERING = "delivering"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, token) -> Optional["OrderStatus"]:
        if token is None:
            return None
        key = str(token).strip().lower().replace("-", "_")
        if key in ("in progress", "in_progress"):
            return cls.PREPARING
        for status in cls:
            if status.value == key:
                return status
        return None


class DroneStatus(str, Enum):
    IDLE = "Idle"
    DELIVERING = "Delivering"
    CHARGING = "Charging"
    MAINTENANCE = "Maintenance"


class UserRole(str, Enum):
    ADMIN = "admin"
    CUSTOMER = "customer"
    RESTAURANT = "restaurant"
    SUSPENDED = "suspended"


# Catalog

class Product(ApiModel):
    id: str
    name: str = Field(..., description="Product name")
    description: Optional[str] = Field(None, description="Short description")
    price: int = Field(0, ge=0, description="Unit price in VND")
    category: Optional[str] = Field(None, description="Menu category")
    image_url: Optional[str] = Field(None, description="Product image")
    restaurant: Optional[str] = Field(None, description="Restaurant code the product belongs to")
    available: bool = Field(True, description="Whether the product can be ordered")


class ProductPatch(PatchModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[int] = Field(None, ge=0)
    category: Optional[str] = None
    image_url: Optional[str] = Field(None, validation_alias=AliasChoices("imageUrl", "image", "image_url"))
    restaurant: Optional[str] = None
    available: Optional[bool] = None


class Restaurant(ApiModel):
    id: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    rating: float = Field(0.0, ge=0, le=5)
    owner_id: Optional[str] = None
    is_active: bool = Field(True, description="Active restaurants are visible to customers")
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    accent_color: Optional[str] = None
    created_at: Optional[int] = None


class RestaurantStatusUpdate(ApiModel):
    is_active: Optional[bool] = None


class CartItem(ApiModel):
    id: int
    product_id: str
    product_name: str
    unit_price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    restaurant_code: str


class CartItemCreate(ApiModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    product_id: str
    product_name: str = Field(..., min_length=1)
    unit_price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    restaurant_code: str = Field(..., min_length=1)


# Users

class User(ApiModel):
    id: str
    username: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: UserRole = UserRole.CUSTOMER
    restaurant_id: Optional[str] = None
    order_count: int = 0
    created_at: Optional[int] = None


class LoginRequest(ApiModel):
    username: Optional[str] = None
    password: Optional[str] = None


class RegisterRequest(ApiModel):
    username: Optional[str] = None
    password: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


# Drones

def clamp_battery(value: int) -> int:
    return max(0, min(100, int(value)))


class Position(ApiModel):
    lat: float
    lng: float


DEFAULT_POSITION = Position(lat=10.762622, lng=106.660172)


class Drone(ApiModel):
    id: str
    drone_code: Optional[str] = None
    restaurant_id: Optional[str] = None
    restaurant_name: Optional[str] = None
    status: DroneStatus = DroneStatus.IDLE
    battery: int = 100
    current_order_id: Optional[str] = None
    position: Position = Field(default_factory=lambda: DEFAULT_POSITION.model_copy())
    speed_mps: float = 0.0
    last_maintenance: Optional[int] = None
    flagged_for_issue: bool = False
    issue_description: Optional[str] = None
    updated_at: Optional[int] = None

    @field_validator("battery", mode="before")
    @classmethod
    def _clamp_battery(cls, v):
        return clamp_battery(v) if v is not None else 100

    @computed_field(alias="flightStatus")
    @property
    def flight_status(self) -> str:
        # map clients only know delivering / returning
        return "delivering" if self.status == DroneStatus.DELIVERING else "returning"


class DronePatch(PatchModel):
    status: Optional[str] = None
    battery: Optional[int] = None
    battery_level: Optional[int] = None
    current_order_id: Optional[str] = None
    order_id: Optional[str] = None
    drone_code: Optional[str] = None
    position: Optional[Position] = None
    speed_mps: Optional[float] = None
    updated_at: Optional[int] = None
    restaurant_id: Optional[str] = None
    restaurant_name: Optional[str] = None
    last_maintenance: Optional[int] = None
    flagged_for_issue: Optional[bool] = None
    issue_description: Optional[str] = None


class DroneClaim(ApiModel):
    order_id: Optional[str] = None


# Orders

class OrderItem(ApiModel):
    product_id: Optional[str] = None
    name: str = ""
    price: int = Field(0, ge=0)
    qty: int = Field(1, ge=0)

    def line_total(self) -> int:
        if self.qty > 0 and self.price > 0:
            return self.qty * self.price
        return 0


class OrderItemIn(ApiModel):
    """Item as sent by the web and mobile clients (either quantity field name)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    product_id: Optional[str] = None
    name: Optional[str] = None
    quantity: Optional[int] = None
    qty: Optional[int] = None
    price: float = 0

    def resolved_qty(self) -> int:
        if self.quantity is not None and self.quantity > 0:
            return self.quantity
        if self.qty is not None and self.qty > 0:
            return self.qty
        if self.quantity is None and self.qty is None:
            return 1
        return 0


class CreateOrderRequest(ApiModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    id: Optional[str] = None
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    address: Optional[str] = None
    restaurant_id: Optional[str] = None
    user_id: Optional[str] = None
    payment_session_id: Optional[str] = None
    payment_method: Optional[str] = None
    payment_status: Optional[str] = None
    note: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    items: List[OrderItemIn] = Field(default_factory=list)


class Order(ApiModel):
    id: str
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    address: Optional[str] = None
    restaurant_id: Optional[str] = None
    user_id: Optional[str] = None
    payment_session_id: Optional[str] = None
    payment_method: Optional[str] = None
    payment_status: Optional[str] = None
    note: Optional[str] = None
    internal_notes: Optional[str] = None
    drone_id: Optional[str] = None
    drone_path: List[str] = Field(default_factory=list)
    vnpay_transaction_id: Optional[str] = None
    confirmed_at: Optional[int] = None
    cancelled_at: Optional[int] = None
    confirmed_by: Optional[str] = None
    status: OrderStatus = OrderStatus.PENDING
    total: int = Field(0, ge=0)
    items: List[OrderItem] = Field(default_factory=list)
    created_at: int
    updated_at: int
    version: int = 0


class OrderPatch(PatchModel):
    status: Optional[str] = None
    confirmed_at: Optional[int] = None
    cancelled_at: Optional[int] = None
    internal_notes: Optional[str] = None
    confirmed_by: Optional[str] = None
    drone_path: Optional[List[str]] = None
    vnpay_transaction_id: Optional[str] = None
    expected_version: Optional[int] = None


ORDER_PATCH_FIELDS = (
    "confirmed_at",
    "cancelled_at",
    "internal_notes",
    "confirmed_by",
    "drone_path",
    "vnpay_transaction_id",
)


# Notifications & analytics

class Notification(ApiModel):
    id: str
    restaurant_id: Optional[str] = None
    order_id: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    total: int = 0
    status: str
    timestamp: int
    is_read: bool = False


class Analytics(ApiModel):
    restaurant_id: str
    period: str
    revenue: int
    orders: int
    avg_order_value: int
    delivery_time: int


# Payments

class PaymentCreateRequest(ApiModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    amount: int
    order_id: str


class VnpayCreateRequest(ApiModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    amount: int = 0
    order_id: Optional[str] = None
    order_info: str = "Thanh toan don hang"
    order_type: str = "other"
    locale: str = "vn"
