from pydantic import BaseModel, Field, AliasChoices
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import datetime
from models.order import OrderStatus, DeliveryStatus


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# Response schemas
class OrderLineResponse(CamelModel):
    product_name: str
    unit: Optional[str] = None
    quantity: int
    unit_price_minor_units: int


class CourierSummary(CamelModel):
    id: str
    name: str
    phone: Optional[str] = None


class OrderResponse(CamelModel):
    id: str
    status: OrderStatus
    delivery_status: DeliveryStatus
    assigned_to_id: Optional[str] = None
    assigned_to: Optional[CourierSummary] = None
    total_minor_units: int
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    shipping_address: Optional[str] = None
    items: List[OrderLineResponse] = []
    created_at: datetime
    updated_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None


class PendingCountResponse(CamelModel):
    pending_count: int


class OrderStatsResponse(CamelModel):
    total_orders: int
    pending_deliveries: int
    delivered_orders: int
    active_delivery_agents: int


# Request schemas
class AssignOrderRequest(CamelModel):
    courier_id: str = Field(validation_alias=AliasChoices("courierId", "courier_id", "deliveryUserId"))


class SelfAssignRequest(CamelModel):
    order_id: str


class DeliveryStatusUpdateRequest(CamelModel):
    # Kept as a plain string so unknown values surface as a domain ValidationError
    delivery_status: str


class OrderStatusUpdateRequest(CamelModel):
    status: str
