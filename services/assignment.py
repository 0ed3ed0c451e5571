"""
Assignment coordinator: binds exactly one courier to an order.

Two entry points with different rules:

* ``admin_assign`` is an authoritative override. It replaces whatever
  courier the order had (last write wins) but refuses delivered or
  canceled orders and inactive couriers.
* ``courier_self_assign`` is the contended path. Several couriers may race
  for the same order from their "available orders" lists, so the claim is a
  single conditional UPDATE on ``assigned_to_id IS NULL``; whoever commits
  second gets a ConflictError.
"""
from typing import List, Optional
import logging

from core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from models.order import Order, OrderStatus, DeliveryStatus
from models.user import UserRole
from services.authorization import ASSIGN_GUARD, SELF_ASSIGN_GUARD
from services.order_store import OrderStore, CourierDirectory

logger = logging.getLogger(__name__)

ORDER_TAKEN_MESSAGE = "Order already assigned"


class AssignmentCoordinator:
    def __init__(self, store: OrderStore, directory: CourierDirectory):
        self.store = store
        self.directory = directory

    def admin_assign(self, order_id: str, courier_id: str, caller_role, caller_id: Optional[str] = None) -> Order:
        ASSIGN_GUARD.authorize(caller_role, caller_id)

        courier = self.directory.find_user(courier_id) if courier_id else None
        if courier is None or courier.role != UserRole.DELIVERY:
            raise ValidationError("Invalid delivery user", field="courierId")
        if not courier.is_active:
            raise ValidationError("This delivery agent is inactive and cannot receive new orders", field="courierId")

        # Overwrites any previous courier; only closed orders are off limits
        predicate = [
            Order.delivery_status != DeliveryStatus.DELIVERED,
            Order.status != OrderStatus.CANCELED,
        ]
        updated = self.store.update_order_if_matches(
            order_id,
            predicate,
            {"assigned_to_id": courier_id, "delivery_status": DeliveryStatus.ASSIGNED}
        )
        if updated is None:
            order = self.store.find_order(order_id)
            if order is None:
                raise NotFoundError("Order", order_id)
            if order.status == OrderStatus.CANCELED:
                raise ValidationError("Canceled orders cannot be assigned")
            raise ValidationError("Delivered orders cannot be reassigned")

        logger.info(f"Order {order_id} assigned to courier {courier_id} by admin {caller_id}")
        return updated

    def courier_self_assign(self, order_id: str, caller_id: str, caller_role) -> Order:
        SELF_ASSIGN_GUARD.authorize(caller_role, caller_id)

        courier = self.directory.find_user(caller_id)
        if courier is None or courier.role != UserRole.DELIVERY:
            raise ForbiddenError("You do not have permission to perform this action")
        if not courier.is_active:
            raise ForbiddenError("Your account is inactive. You cannot take new orders.")

        # One statement: the claim only commits if the order is still free
        claimed = self.store.update_order_if_matches(
            order_id,
            [
                Order.assigned_to_id.is_(None),
                Order.delivery_status == DeliveryStatus.PENDING,
                Order.status != OrderStatus.CANCELED,
            ],
            {"assigned_to_id": caller_id, "delivery_status": DeliveryStatus.ASSIGNED}
        )
        if claimed is not None:
            logger.info(f"Order {order_id} self-assigned by courier {caller_id}")
            return claimed

        order = self.store.find_order(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)

        if order.status == OrderStatus.CANCELED:
            raise ValidationError("This order has been canceled")

        logger.warning(
            f"Courier {caller_id} lost self-assign race on order {order_id} "
            f"(held by {order.assigned_to_id})"
        )
        raise ConflictError(
            ORDER_TAKEN_MESSAGE,
            details={
                "order_id": order_id,
                "hint": "This order was just picked up by another delivery agent"
            }
        )

    def list_unassigned_orders(self) -> List[Order]:
        return self.store.list_orders(
            Order.assigned_to_id.is_(None),
            Order.delivery_status == DeliveryStatus.PENDING,
            Order.status != OrderStatus.CANCELED
        )

    def list_assigned_orders(self, courier_id: str) -> List[Order]:
        return self.store.list_orders(
            Order.assigned_to_id == courier_id,
            Order.delivery_status != DeliveryStatus.DELIVERED
        )

    def list_all_assigned_orders(self, courier_id: str) -> List[Order]:
        return self.store.list_orders(Order.assigned_to_id == courier_id)

    def list_delivery_history(self, courier_id: str) -> List[Order]:
        return self.store.list_orders(
            Order.assigned_to_id == courier_id,
            Order.delivery_status == DeliveryStatus.DELIVERED,
            order_by=[Order.delivered_at.desc(), Order.created_at.desc()]
        )
