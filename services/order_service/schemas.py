from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from services.payment_service.schemas import StkPushResponse


class OrderItemCreate(BaseModel):
    product: int
    quantity: int = Field(ge=1)


class ShippingInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    full_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class OrderCreate(BaseModel):
    items: List[OrderItemCreate] = Field(min_length=1)
    payment_method: str = Field(min_length=1)
    phone_number: Optional[str] = None
    shipping_info: Optional[ShippingInfo] = None
    buyer: Optional[int] = None # only used when the caller is not authenticated


class StatusUpdate(BaseModel):
    status: str = Field(min_length=1)


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: Optional[int]
    name: str
    price: float
    quantity: int
    image: Optional[str] = None


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    buyer_id: int
    seller_id: Optional[int] = None
    items: List[OrderItemResponse]
    payment_method: str
    phone_number: Optional[str] = None
    shipping_info: Optional[dict] = None
    subtotal: float
    shipping: float
    total: float
    payment_status: str
    status: str
    mpesa_checkout_request_id: Optional[str] = None
    mpesa_receipt_number: Optional[str] = None
    actual_delivery: Optional[datetime] = None
    created_at: Optional[datetime] = None


class OrderEnvelope(BaseModel):
    success: bool = True
    order: OrderResponse


class OrderCreatedResponse(OrderEnvelope):
    mpesa: Optional[StkPushResponse] = None
    message: Optional[str] = None


class OrderListResponse(BaseModel):
    success: bool = True
    orders: List[OrderResponse]
