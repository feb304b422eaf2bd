"""
Order lifecycle state machine. Valid transitions enforce the delivery workflow:
pending -> obat_siap -> assigned_courier -> in_transit -> delivered,
with cancelled reachable from any non-terminal state.
"""
import enum


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    OBAT_SIAP = "obat_siap"  # medication ready for pickup
    ASSIGNED_COURIER = "assigned_courier"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    HOSPITAL_STAFF = "hospital_staff"
    COURIER = "courier"
    PATIENT = "patient"


INITIAL_STATUS = OrderStatus.PENDING

# Current status -> allowed next statuses
VALID_TRANSITIONS: dict[OrderStatus, tuple[OrderStatus, ...]] = {
    OrderStatus.PENDING: (OrderStatus.OBAT_SIAP, OrderStatus.CANCELLED),
    OrderStatus.OBAT_SIAP: (OrderStatus.ASSIGNED_COURIER, OrderStatus.CANCELLED),
    OrderStatus.ASSIGNED_COURIER: (OrderStatus.IN_TRANSIT, OrderStatus.CANCELLED),
    OrderStatus.IN_TRANSIT: (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
    OrderStatus.DELIVERED: (),  # terminal
    OrderStatus.CANCELLED: (),  # terminal
}

# Roles allowed to take a delivery / create an order
COURIER_ROLES = frozenset({UserRole.COURIER})
ORDER_CREATOR_ROLES = frozenset({UserRole.ADMIN})


def is_valid_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """True if target is allowed after current."""
    return target in VALID_TRANSITIONS[current]


def is_terminal(status: OrderStatus) -> bool:
    return not VALID_TRANSITIONS[status]


def is_valid_walk(statuses: list[OrderStatus]) -> bool:
    """True if statuses (oldest first) start at pending and follow only allowed edges."""
    if not statuses or statuses[0] is not INITIAL_STATUS:
        return False
    return all(is_valid_transition(a, b) for a, b in zip(statuses, statuses[1:]))
