from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from meddelivery.models import Order, TrackingEntry
from meddelivery.orchestrator import OrderLifecycle
from meddelivery.order_state import OrderStatus

router = APIRouter(prefix="/orders", tags=["orders"])


def get_lifecycle(request: Request) -> OrderLifecycle:
    return request.app.state.lifecycle


class CreateOrderBody(BaseModel):
    patient_id: int
    medication_details: str = Field(..., min_length=1, description="Medication to deliver")
    created_by: int = Field(..., description="Admin user creating the order")


class UpdateStatusBody(BaseModel):
    status: OrderStatus = Field(..., description="Target status")
    updated_by: int = Field(..., description="User recording this change")
    assigned_courier_id: int | None = Field(default=None, description="Required with assigned_courier")
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    notes: str | None = None


@router.post("", status_code=201)
async def create_order(body: CreateOrderBody, lifecycle: OrderLifecycle = Depends(get_lifecycle)) -> Order:
    return await lifecycle.create_order(body.patient_id, body.medication_details, body.created_by)


@router.get("/{order_id}")
async def get_order(order_id: int, lifecycle: OrderLifecycle = Depends(get_lifecycle)) -> Order:
    return await lifecycle.db.orders.get(order_id)


@router.post("/{order_id}/status")
async def update_status(
    order_id: int,
    body: UpdateStatusBody,
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> Order:
    """
    Apply one lifecycle transition. Who may request which status is decided before this
    point; conflicting concurrent updates return 409 concurrent_modification.
    """
    return await lifecycle.transition(
        order_id,
        body.status,
        body.updated_by,
        assigned_courier_id=body.assigned_courier_id,
        latitude=body.latitude,
        longitude=body.longitude,
        notes=body.notes,
    )


@router.get("/{order_id}/tracking")
async def get_tracking(order_id: int, lifecycle: OrderLifecycle = Depends(get_lifecycle)) -> list[TrackingEntry]:
    """Tracking history, newest first."""
    await lifecycle.db.orders.get(order_id)
    return [entry async for entry in lifecycle.db.tracking.list_by_order(order_id)]
