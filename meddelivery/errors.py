"""
Error taxonomy for the delivery core. Each kind carries a stable `code` the HTTP layer
surfaces as-is. Raised inside a transaction, every one of them rolls it back.
"""
from meddelivery.order_state import OrderStatus, is_terminal


class DeliveryError(Exception):
    code = "delivery_error"


class NotFound(DeliveryError):
    code = "not_found"


class OrderNotFound(NotFound):
    code = "order_not_found"

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class UserNotFound(NotFound):
    code = "user_not_found"

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class PatientNotFound(NotFound):
    code = "patient_not_found"

    def __init__(self, patient_id: int):
        self.patient_id = patient_id
        super().__init__(f"Patient {patient_id} not found")


class InvalidTransition(DeliveryError):
    """Raised when the target status is not reachable from the current one."""
    code = "invalid_transition"

    def __init__(self, current_status: OrderStatus, target_status: OrderStatus):
        self.current_status = current_status
        self.target_status = target_status
        if is_terminal(current_status):
            message = f"Order is already {current_status.value} and can no longer change"
        else:
            message = f"Cannot move order from {current_status.value} to {target_status.value}"
        super().__init__(message)


class UnknownStatus(InvalidTransition):
    """Raised when the requested status is not one of OrderStatus."""
    code = "unknown_status"

    def __init__(self, value: object):
        self.current_status = None
        self.target_status = value
        DeliveryError.__init__(self, f"Unknown order status {value!r}")


class InvalidAssignment(DeliveryError):
    """Raised when the courier reference is missing, unknown, or not a courier."""
    code = "invalid_assignment"


class InvalidDistance(DeliveryError):
    code = "invalid_distance"

    def __init__(self, distance_km: float):
        self.distance_km = distance_km
        super().__init__(f"Distance must be a non-negative number, got {distance_km}")


class ConcurrentModification(DeliveryError):
    """Raised when the order status changed between validation and write. Caller may retry."""
    code = "concurrent_modification"

    def __init__(self, order_id: int, expected_status: OrderStatus):
        self.order_id = order_id
        self.expected_status = expected_status
        super().__init__(f"Order {order_id} is no longer {expected_status.value}")


class CreationNotAllowed(DeliveryError):
    code = "creation_not_allowed"

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User {user_id} may not create orders")
