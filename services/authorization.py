"""
Role and ownership guards for order operations.

Each operation declares its guard once; services call ``authorize`` before
touching the store and routers reuse the same guard for read endpoints.
"""
from typing import Callable, Iterable, Optional
import logging

from core.exceptions import ForbiddenError
from models.order import Order
from models.user import UserRole

logger = logging.getLogger(__name__)

OwnershipCheck = Callable[[UserRole, str, Order], bool]


def assigned_courier_only(role: UserRole, caller_id: str, order: Order) -> bool:
    """Admins act on any order; couriers only on orders assigned to them."""
    if role == UserRole.DELIVERY:
        return order.assigned_to_id == caller_id
    return True


def assigned_courier_or_unassigned(role: UserRole, caller_id: str, order: Order) -> bool:
    if role == UserRole.DELIVERY:
        return order.assigned_to_id is None or order.assigned_to_id == caller_id
    return True


class AccessGuard:
    def __init__(
        self,
        name: str,
        allowed_roles: Iterable[UserRole],
        ownership_check: Optional[OwnershipCheck] = None,
        ownership_message: str = "You are not assigned to this order"
    ):
        self.name = name
        self.allowed_roles = frozenset(UserRole(r) for r in allowed_roles)
        self.ownership_check = ownership_check
        self.ownership_message = ownership_message

    def allows_role(self, role) -> bool:
        try:
            return UserRole(role) in self.allowed_roles
        except ValueError:
            return False

    def authorize(self, role, caller_id: Optional[str], order: Optional[Order] = None) -> None:
        """Raise ForbiddenError unless the caller may perform this operation."""
        if not self.allows_role(role):
            logger.warning(f"{self.name}: role {role} denied for caller {caller_id}")
            raise ForbiddenError("You do not have permission to perform this action")

        if order is not None and self.ownership_check is not None:
            if not self.ownership_check(UserRole(role), caller_id, order):
                logger.warning(f"{self.name}: caller {caller_id} does not own order {order.id}")
                raise ForbiddenError(self.ownership_message, details={"order_id": order.id})

    def __repr__(self) -> str:
        roles = ",".join(sorted(r.value for r in self.allowed_roles))
        return f"AccessGuard({self.name}: {roles})"


ADMIN_ONLY = AccessGuard("admin", [UserRole.ADMIN])
COURIER_ONLY = AccessGuard("courier", [UserRole.DELIVERY])
STAFF = AccessGuard("staff", [UserRole.ADMIN, UserRole.DELIVERY])

ASSIGN_GUARD = AccessGuard("assign", [UserRole.ADMIN])
SELF_ASSIGN_GUARD = AccessGuard("self-assign", [UserRole.DELIVERY])
DELIVERY_UPDATE_GUARD = AccessGuard(
    "delivery-update",
    [UserRole.ADMIN, UserRole.DELIVERY],
    ownership_check=assigned_courier_only
)
ORDER_VIEW_GUARD = AccessGuard(
    "order-view",
    [UserRole.ADMIN, UserRole.DELIVERY],
    ownership_check=assigned_courier_or_unassigned,
    ownership_message="You can only view orders assigned to you"
)
