"""
Order store: the data-access seam for the coordination services.

Every mutation goes through ``update_order`` or ``update_order_if_matches``;
the latter is a single ``UPDATE ... WHERE id = :id AND <predicate>`` so the
database decides races, not the application.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from models.order import Order, DeliveryStatus
from models.user import User, UserRole

logger = logging.getLogger(__name__)


class OrderStore:
    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(Order).options(
            selectinload(Order.items),
            selectinload(Order.assigned_to)
        )

    def find_order(self, order_id: str) -> Optional[Order]:
        return self._query().filter(Order.id == order_id).first()

    def list_orders(self, *criteria, order_by: Iterable = None) -> List[Order]:
        query = self._query().filter(*criteria)
        if order_by is None:
            order_by = [Order.created_at.desc()]
        return query.order_by(*order_by).all()

    def count_orders(self, *criteria) -> int:
        return self.db.query(func.count(Order.id)).filter(*criteria).scalar() or 0

    def update_order_if_matches(self, order_id: str, predicate: Iterable, patch: Dict[str, Any]) -> Optional[Order]:
        """Apply ``patch`` only if the row still satisfies ``predicate``.

        Returns the refreshed order, or None when no row matched (missing id
        or predicate no longer true). The caller tells those apart.
        """
        values = dict(patch)
        values.setdefault("updated_at", datetime.utcnow())
        try:
            matched = (
                self.db.query(Order)
                .filter(Order.id == order_id, *predicate)
                .update(values, synchronize_session=False)
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        # Drop stale copies from the identity map; callers re-read after a miss too
        self.db.expire_all()
        if matched == 0:
            return None

        return self.find_order(order_id)

    def update_order(self, order_id: str, patch: Dict[str, Any]) -> Optional[Order]:
        """Unconditional write; last commit wins."""
        return self.update_order_if_matches(order_id, [], patch)

    def pending_count(self) -> int:
        return self.count_orders(Order.delivery_status == DeliveryStatus.PENDING)


class CourierDirectory:
    """Lookup and activation of DELIVERY-role users."""

    def __init__(self, db: Session):
        self.db = db

    def find_user(self, user_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def list_couriers(self) -> List[User]:
        return (
            self.db.query(User)
            .filter(User.role == UserRole.DELIVERY)
            .order_by(User.created_at.desc())
            .all()
        )

    def open_assignment_counts(self) -> Dict[str, int]:
        rows = (
            self.db.query(Order.assigned_to_id, func.count(Order.id))
            .filter(
                Order.assigned_to_id.isnot(None),
                Order.delivery_status != DeliveryStatus.DELIVERED
            )
            .group_by(Order.assigned_to_id)
            .all()
        )
        return {courier_id: count for courier_id, count in rows}

    def count_active_couriers(self) -> int:
        return (
            self.db.query(func.count(User.id))
            .filter(User.role == UserRole.DELIVERY, User.is_active.is_(True))
            .scalar()
        ) or 0

    def set_active(self, user_id: str, is_active: bool) -> Optional[User]:
        user = self.find_user(user_id)
        if user is None or user.role != UserRole.DELIVERY:
            return None
        try:
            user.is_active = is_active
            user.updated_at = datetime.utcnow()
            self.db.commit()
            self.db.refresh(user)
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Courier {user_id} active flag set to {is_active}")
        return user
