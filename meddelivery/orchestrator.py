"""
Order lifecycle orchestrator: the only component that changes an order.

transition(): read order -> validate edge -> (assigning a courier: resolve courier, price the
delivery from patient coordinates) -> one transaction { conditional order update, ledger append }.

Callers are expected to have authorized the actor for the requested status already; the
orchestrator records the actor as given. Conflicting writers surface as
ConcurrentModification and are never retried here.
"""
import logging
from datetime import datetime, timezone

from meddelivery.db import Database
from meddelivery.directory import PatientDirectory, UserDirectory
from meddelivery.errors import (
    CreationNotAllowed,
    DeliveryError,
    InvalidAssignment,
    InvalidTransition,
    PatientNotFound,
    UnknownStatus,
    UserNotFound,
)
from meddelivery.fees import Coordinates, FeeQuote, hospital_origin, quote
from meddelivery.metrics import (
    delivery_fee_rupiah,
    order_transitions_rejected_total,
    order_transitions_total,
    orders_created_total,
)
from meddelivery.models import NewTrackingEntry, Order, OrderMutation
from meddelivery.order_state import (
    COURIER_ROLES,
    ORDER_CREATOR_ROLES,
    OrderStatus,
    is_valid_transition,
)

logger = logging.getLogger(__name__)


def _parse_status(value: OrderStatus | str) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise UnknownStatus(value) from None


class OrderLifecycle:
    def __init__(
        self,
        db: Database,
        users: UserDirectory,
        patients: PatientDirectory,
        origin: Coordinates | None = None,
    ):
        self.db = db
        self.users = users
        self.patients = patients
        self.origin = origin or hospital_origin()

    async def create_order(self, patient_id: int, medication_details: str, created_by: int) -> Order:
        """Insert a pending order together with its initial pending tracking entry."""
        creator = await self.users.resolve(created_by)
        if creator is None:
            raise UserNotFound(created_by)
        if creator.role not in ORDER_CREATOR_ROLES:
            raise CreationNotAllowed(created_by)
        if await self.patients.get(patient_id) is None:
            raise PatientNotFound(patient_id)

        async with self.db.transaction() as (orders, ledger):
            order = await orders.insert(patient_id, medication_details, created_by)
            await ledger.append(
                NewTrackingEntry(order_id=order.id, status=order.status, updated_by=created_by)
            )
        orders_created_total.inc()
        logger.info("Created order_id=%s patient_id=%s by user_id=%s", order.id, patient_id, created_by)
        return order

    async def transition(
        self,
        order_id: int,
        target_status: OrderStatus | str,
        actor: int,
        assigned_courier_id: int | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
        notes: str | None = None,
    ) -> Order:
        """
        Move an order to target_status and record it in the tracking ledger.
        Raises OrderNotFound, InvalidTransition (UnknownStatus for a status outside
        OrderStatus), InvalidAssignment or ConcurrentModification; on any of them neither
        the order nor the ledger has changed.
        """
        try:
            target = _parse_status(target_status)
            order = await self.db.orders.get(order_id)
            if not is_valid_transition(order.status, target):
                raise InvalidTransition(order.status, target)

            courier_id, fee_quote = await self._assignment(order, target, assigned_courier_id)
            mutation = OrderMutation(
                expected_status=order.status,
                status=target,
                assigned_courier_id=courier_id,
                delivery_distance=fee_quote.distance_km if fee_quote else None,
                delivery_fee=fee_quote.fee if fee_quote else None,
                updated_at=datetime.now(timezone.utc),
            )
            entry = NewTrackingEntry(
                order_id=order_id,
                status=target,
                latitude=latitude,
                longitude=longitude,
                notes=notes,
                updated_by=actor,
            )
            async with self.db.transaction() as (orders, ledger):
                updated = await orders.apply(order_id, mutation)
                await ledger.append(entry)
        except DeliveryError as e:
            order_transitions_rejected_total.labels(reason=e.code).inc()
            logger.warning(
                "Rejected order_id=%s -> %s by user_id=%s: %s",
                order_id,
                getattr(target_status, "value", target_status),
                actor,
                e,
            )
            raise

        order_transitions_total.labels(to_status=target.value).inc()
        if fee_quote:
            delivery_fee_rupiah.observe(fee_quote.fee)
        logger.info(
            "Order order_id=%s %s -> %s by user_id=%s",
            order_id,
            order.status.value,
            target.value,
            actor,
        )
        return updated

    async def _assignment(
        self,
        order: Order,
        target: OrderStatus,
        assigned_courier_id: int | None,
    ) -> tuple[int | None, FeeQuote | None]:
        """Courier to attach and delivery quote, both None unless target is assigned_courier."""
        if target is not OrderStatus.ASSIGNED_COURIER:
            if assigned_courier_id is not None:
                raise InvalidAssignment(
                    f"assigned_courier_id is only accepted with status {OrderStatus.ASSIGNED_COURIER.value}"
                )
            return None, None

        if assigned_courier_id is None:
            raise InvalidAssignment("assigned_courier_id is required to assign a courier")
        courier = await self.users.resolve(assigned_courier_id)
        if courier is None:
            raise InvalidAssignment(f"Courier {assigned_courier_id} not found")
        if courier.role not in COURIER_ROLES:
            raise InvalidAssignment(f"User {assigned_courier_id} is not a courier")

        coordinates = await self.patients.get_coordinates(order.patient_id)
        if coordinates is None:
            logger.info("Patient %s has no coordinates, order_id=%s left unpriced", order.patient_id, order.id)
            return courier.id, None
        return courier.id, quote(coordinates, self.origin)
