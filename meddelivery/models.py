"""
Immutable snapshots handed out by the Order Store and Tracking Ledger, plus the write
shapes the orchestrator passes into them.
"""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from meddelivery.order_state import OrderStatus


class Order(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    patient_id: int
    medication_details: str
    status: OrderStatus
    created_by: int
    assigned_courier_id: int | None = None
    delivery_distance: float | None = Field(default=None, ge=0, description="km, two decimals")
    delivery_fee: int | None = Field(default=None, ge=0, description="whole rupiah")
    created_at: datetime
    updated_at: datetime


class TrackingEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    order_id: int
    status: OrderStatus
    latitude: float | None = None
    longitude: float | None = None
    notes: str | None = None
    updated_by: int
    created_at: datetime


class NewTrackingEntry(BaseModel):
    """Ledger input: id and created_at are assigned on append."""
    model_config = ConfigDict(frozen=True)

    order_id: int
    status: OrderStatus
    latitude: float | None = None
    longitude: float | None = None
    notes: str | None = None
    updated_by: int


class OrderMutation(BaseModel):
    """
    A validated status change. Applied only while the stored status still equals
    expected_status. None for the courier / fee fields means "leave unchanged".
    """
    model_config = ConfigDict(frozen=True)

    expected_status: OrderStatus
    status: OrderStatus
    assigned_courier_id: int | None = None
    delivery_distance: float | None = None
    delivery_fee: int | None = None
    updated_at: datetime
