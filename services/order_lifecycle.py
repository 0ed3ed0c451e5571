"""
Order lifecycle engine.

An order moves on two axes: the commercial ``OrderStatus`` and the physical
``DeliveryStatus``. This module owns the transition tables for both.
Concurrent delivery status writes resolve as last commit wins; the UPDATE
only re-checks what keeps the order consistent (DELIVERED is terminal,
assigned iff not PENDING, a courier still holds the order).

Delivery status has no forward-only rule: any value may follow any other
as long as those invariants hold.
"""
from datetime import datetime
from typing import Callable, Dict, FrozenSet, Optional
import logging

from core.exceptions import ConflictError, NotFoundError, ValidationError
from models.order import Order, OrderStatus, DeliveryStatus
from models.user import UserRole
from services.authorization import ADMIN_ONLY, DELIVERY_UPDATE_GUARD
from services.order_store import OrderStore

logger = logging.getLogger(__name__)

# Commercial axis; CANCELED is reachable from every non-terminal state
COMMERCIAL_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELED: frozenset(),
}

# Statuses an admin may set directly; DELIVERED only comes from the delivery axis
ADMIN_SETTABLE_STATUSES = frozenset({OrderStatus.CONFIRMED, OrderStatus.SHIPPED})

ASSIGNED_DELIVERY_STATUSES = frozenset({
    DeliveryStatus.ASSIGNED,
    DeliveryStatus.PICKED_UP,
    DeliveryStatus.IN_TRANSIT,
    DeliveryStatus.DELIVERED,
})

ACTIVE_DELIVERY_STATUSES = frozenset({
    DeliveryStatus.ASSIGNED,
    DeliveryStatus.PICKED_UP,
    DeliveryStatus.IN_TRANSIT,
})


def _role_label(role) -> str:
    return getattr(role, "value", str(role)).lower()


def parse_delivery_status(value) -> DeliveryStatus:
    if isinstance(value, DeliveryStatus):
        return value
    try:
        return DeliveryStatus(str(value).strip().upper())
    except ValueError:
        valid = ", ".join(s.value for s in DeliveryStatus)
        raise ValidationError(
            f"Invalid delivery status: {value}. Must be one of: {valid}",
            field="deliveryStatus"
        )


def parse_order_status(value) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).strip().upper())
    except ValueError:
        valid = ", ".join(s.value for s in OrderStatus)
        raise ValidationError(f"Invalid order status: {value}. Must be one of: {valid}", field="status")


def validate_delivery_transition(order: Order, target: DeliveryStatus) -> None:
    """Reject delivery status changes that would break an order invariant."""
    current = order.delivery_status

    if current == DeliveryStatus.DELIVERED and target != DeliveryStatus.DELIVERED:
        raise ValidationError("Delivered orders cannot change delivery status", field="deliveryStatus")

    if order.status == OrderStatus.CANCELED and target != current:
        raise ValidationError("Canceled orders cannot change delivery status", field="deliveryStatus")

    if target == DeliveryStatus.PENDING and order.assigned_to_id is not None:
        raise ValidationError(
            "An assigned order cannot return to PENDING; reassign it instead",
            field="deliveryStatus"
        )

    if target in ASSIGNED_DELIVERY_STATUSES and order.assigned_to_id is None:
        raise ValidationError(
            "Order must be assigned to a delivery agent first",
            field="deliveryStatus"
        )


def validate_status_transition(current: OrderStatus, target: OrderStatus) -> None:
    if target == current:
        return
    if target not in COMMERCIAL_TRANSITIONS[current]:
        raise ValidationError(
            f"Cannot move order from {current.value} to {target.value}",
            field="status"
        )


class OrderLifecycleEngine:
    def __init__(self, store: OrderStore, clock: Callable[[], datetime] = datetime.utcnow):
        self.store = store
        self.clock = clock

    def _load(self, order_id: str) -> Order:
        order = self.store.find_order(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    def set_delivery_status(self, order_id: str, new_delivery_status, caller_role, caller_id: str) -> Order:
        """Set the physical delivery status of an order.

        Admins may update any order; couriers only orders assigned to them.
        Setting DELIVERED also closes the commercial order and stamps
        ``delivered_at`` in the same write.
        """
        DELIVERY_UPDATE_GUARD.authorize(caller_role, caller_id)
        target = parse_delivery_status(new_delivery_status)

        order = self._load(order_id)
        DELIVERY_UPDATE_GUARD.authorize(caller_role, caller_id, order)
        validate_delivery_transition(order, target)
        previous = order.delivery_status

        if target == DeliveryStatus.DELIVERED and order.delivery_status == DeliveryStatus.DELIVERED:
            # Repeat completion keeps the original delivery timestamp
            return order

        patch = {"delivery_status": target}
        if target == DeliveryStatus.DELIVERED:
            patch["status"] = OrderStatus.DELIVERED
            patch["delivered_at"] = self.clock()

        # Last commit wins; the predicate only keeps the invariants true at write time
        predicate = [Order.delivery_status != DeliveryStatus.DELIVERED]
        if target == DeliveryStatus.PENDING:
            predicate.append(Order.assigned_to_id.is_(None))
        else:
            predicate.append(Order.assigned_to_id.isnot(None))
        if UserRole(caller_role) == UserRole.DELIVERY:
            # A courier cannot advance an order that was reassigned away from them
            predicate.append(Order.assigned_to_id == caller_id)

        updated = self.store.update_order_if_matches(order_id, predicate, patch)
        if updated is None:
            current = self.store.find_order(order_id)
            if current is None:
                raise NotFoundError("Order", order_id)
            if target == DeliveryStatus.DELIVERED and current.delivery_status == DeliveryStatus.DELIVERED:
                # Someone else completed it first; keep their timestamp
                return current
            logger.warning(f"Delivery status update on order {order_id} lost to a concurrent change")
            raise ConflictError(
                "This order was updated by someone else. Please refresh and try again.",
                details={"order_id": order_id}
            )

        logger.info(
            f"Order {order_id} delivery status {previous.value} -> {target.value} "
            f"by {_role_label(caller_role)} {caller_id}"
        )
        return updated

    def mark_delivered(self, order_id: str, caller_role, caller_id: str) -> Order:
        return self.set_delivery_status(order_id, DeliveryStatus.DELIVERED, caller_role, caller_id)

    def set_order_status(self, order_id: str, new_status, caller_role, caller_id: Optional[str] = None) -> Order:
        """Advance the commercial status (admin only, CONFIRMED/SHIPPED)."""
        ADMIN_ONLY.authorize(caller_role, caller_id)
        target = parse_order_status(new_status)
        if target not in ADMIN_SETTABLE_STATUSES:
            raise ValidationError(
                f"Order status {target.value} cannot be set directly",
                field="status"
            )

        order = self._load(order_id)
        validate_status_transition(order.status, target)
        previous = order.status
        if order.status == target:
            return order

        updated = self.store.update_order_if_matches(
            order_id,
            [Order.status == order.status],
            {"status": target}
        )
        if updated is None:
            raise ConflictError(
                "This order was updated by someone else. Please refresh and try again.",
                details={"order_id": order_id}
            )

        logger.info(f"Order {order_id} status {previous.value} -> {target.value} by admin {caller_id}")
        return updated
