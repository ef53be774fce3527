from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str
    data: Optional[T] = None


class CustomerData(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    delivery_address: Optional[str] = None


# Numeric checkout fields are taken as sent and checked by the checkout
# validator, so type problems are reported together with rule violations.
class StlLineItem(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    stl_file: Optional[str] = Field(
        default=None, description="Storage file id or URL of the uploaded model"
    )
    name: Optional[str] = None
    material: Optional[str] = None
    colour: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("colour", "color")
    )
    scale: Any = Field(default=None, description="Percent, 100 = 1.0x")
    cost: Any = Field(default=None, description="Client-quoted cost in currency units")
    quantity: Any = None
    infill: Any = None
    quality: Optional[str] = None
    shipping: Optional[str] = None
    file_size: Any = Field(default=0, description="File size in bytes")
    weight: Any = None


class OrderDetails(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    price: Any = Field(default=None, description="Declared checkout total in currency units")
    delivery_type: Optional[str] = None
    drop_off_location: Optional[str] = None
    payment_method: Optional[str] = None


class CheckoutRequest(BaseModel):
    customerData: Optional[CustomerData] = None
    stlFiles: List[StlLineItem] = []
    orderDetails: Optional[OrderDetails] = None


class LineFailure(BaseModel):
    index: Optional[int]
    stage: str
    message: str


class LinkedStl(BaseModel):
    metadata_id: str
    stl_id: str


class OrderReceipt(BaseModel):
    id: str
    order_id: str
    customer_id: str
    customer_name: str
    customer_email: str
    total: float
    status: str
    delivery_type: str
    created_at: datetime
    order_count: int
    stl_files: List[LinkedStl]
    failures: List[LineFailure] = []
    partial: bool = False


class OrderLine(BaseModel):
    id: str
    order_id: str
    customer_id: str
    stl_id: str
    status: str
    price: float
    delivery_type: Optional[str]
    drop_off_location: Optional[str]
    payment_method: Optional[str]
    time_of_placement: Optional[datetime]
    line_number: Optional[int] = None


class CustomerSummary(BaseModel):
    id: str
    first_name: Optional[str]
    last_name: Optional[str]
    email: str
    phone: Optional[str] = None
    delivery_address: Optional[str] = None


class StlSummary(BaseModel):
    id: str
    stl_id: Optional[str]
    stl_file: Optional[str]
    material: Optional[str]
    colour: Optional[str]
    scale: Optional[float]
    quantity: Optional[int]
    infill: Optional[int]
    quality: Optional[str]
    shipping: Optional[str]
    price: Optional[float]
    stl_order: Optional[str]


class OrderLineDetail(OrderLine):
    customer: Optional[CustomerSummary] = None
    stl: Optional[StlSummary] = None


class OrderGroup(BaseModel):
    order_id: str
    lines: List[OrderLineDetail]
    total: float
    line_count: int


class CustomerOrders(BaseModel):
    customer: CustomerSummary
    orders: List[OrderLineDetail]
    total: int


class OrderList(BaseModel):
    items: List[OrderLine]
    total: int
    limit: int
    offset: int


class StatusUpdateRequest(BaseModel):
    status: str


class PrintOptions(BaseModel):
    material: str
    color: str
    scale: float
    quantity: int
    infill: int
    quality: str
    shipping: str


class PrintOptionsUpdate(BaseModel):
    material: Optional[str] = None
    color: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("color", "colour")
    )
    scale: Optional[float] = None
    quantity: Optional[int] = None
    infill: Optional[int] = None
    quality: Optional[str] = None
    shipping: Optional[str] = None


class UploadedStl(BaseModel):
    file_id: str
    metadata_id: Optional[str]
    name: str
    url: str
    price: float
    size: int
    size_mb: str
    print_options: PrintOptions


class UploadFailure(BaseModel):
    name: str
    message: str


class UploadResult(BaseModel):
    files: List[UploadedStl]
    file_ids: List[str]
    total: float
    failures: List[UploadFailure] = []


class StlInfo(BaseModel):
    id: Optional[str]
    metadata_id: str
    name: Optional[str]
    url: Optional[str]
    price: float
    file_size: Optional[int]
    print_options: PrintOptions
    stl_order: Optional[str]
    created_at: Optional[datetime] = None


class QuoteRequest(BaseModel):
    file_size: int = 0
    material: str = "PLA"
    scale: Optional[float] = None
    quantity: Optional[int] = None
    infill: Optional[int] = None
    quality: str = "Standard"
    shipping: str = "Standard"


class QuoteResponse(BaseModel):
    price_cents: int
    price: float
    print_options: PrintOptions


class RegisterRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[Union[str, int]] = None
    delivery_address: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class CheckEmailRequest(BaseModel):
    email: str


class CheckEmailResponse(BaseModel):
    email: str
    exists: bool


class AuthUser(BaseModel):
    id: str
    email: Optional[str]
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    customer_id: Optional[str] = None
    metadata: Dict[str, Any] = {}


class AuthSession(BaseModel):
    user: AuthUser
    expires_in: Optional[int] = None


class ApiInfoResponse(BaseModel):
    name: str
    materials: List[str]
    colours: List[str]
    qualities: List[str]
    shipping_tiers: List[str]
    drop_off_locations: List[str]
    order_statuses: List[str]
    strict_pricing: bool
