from datetime import timedelta

import pytest
from jose import jwt

from core.config import settings
from core.exceptions import ForbiddenError
from models.order import Order, DeliveryStatus
from models.user import UserRole
from services.auth import create_access_token, verify_token
from services.authorization import (
    AccessGuard,
    ADMIN_ONLY,
    STAFF,
    DELIVERY_UPDATE_GUARD,
    ORDER_VIEW_GUARD,
    assigned_courier_only,
)


def order_held_by(courier_id):
    return Order(
        id="order-1",
        assigned_to_id=courier_id,
        delivery_status=DeliveryStatus.ASSIGNED if courier_id else DeliveryStatus.PENDING
    )


class TestAccessGuard:
    def test_role_check(self):
        assert ADMIN_ONLY.allows_role(UserRole.ADMIN)
        assert ADMIN_ONLY.allows_role("ADMIN")
        assert not ADMIN_ONLY.allows_role(UserRole.DELIVERY)
        assert not ADMIN_ONLY.allows_role("SUPERUSER")
        assert STAFF.allows_role(UserRole.DELIVERY)
        assert not STAFF.allows_role(UserRole.CUSTOMER)

    def test_forbidden_role_raises(self):
        with pytest.raises(ForbiddenError):
            STAFF.authorize(UserRole.CUSTOMER, "customer-1")

    def test_ownership_applies_to_couriers_only(self):
        order = order_held_by("courier-1")

        DELIVERY_UPDATE_GUARD.authorize(UserRole.ADMIN, "admin-1", order)
        DELIVERY_UPDATE_GUARD.authorize(UserRole.DELIVERY, "courier-1", order)
        with pytest.raises(ForbiddenError) as exc_info:
            DELIVERY_UPDATE_GUARD.authorize(UserRole.DELIVERY, "courier-2", order)

        assert exc_info.value.details == {"order_id": "order-1"}

    def test_couriers_may_view_unassigned_orders(self):
        ORDER_VIEW_GUARD.authorize(UserRole.DELIVERY, "courier-2", order_held_by(None))
        with pytest.raises(ForbiddenError) as exc_info:
            ORDER_VIEW_GUARD.authorize(UserRole.DELIVERY, "courier-2", order_held_by("courier-1"))

        assert exc_info.value.message == "You can only view orders assigned to you"

    def test_custom_guard(self):
        guard = AccessGuard("dispatch", ["ADMIN", "DELIVERY"], ownership_check=assigned_courier_only)

        assert repr(guard) == "AccessGuard(dispatch: ADMIN,DELIVERY)"
        assert guard.allows_role(UserRole.DELIVERY)


class TestTokens:
    def test_round_trip(self):
        token = create_access_token("user-42", UserRole.DELIVERY)

        data = verify_token(token)

        assert data.user_id == "user-42"
        assert data.role == UserRole.DELIVERY

    def test_expired_token(self):
        token = create_access_token("user-42", UserRole.ADMIN, expires_delta=timedelta(minutes=-5))

        assert verify_token(token) is None

    def test_wrong_signature(self):
        token = jwt.encode(
            {"sub": "user-42", "role": "ADMIN", "type": "access", "iss": "order-dispatch"},
            "some-other-key",
            algorithm=settings.JWT_ALGORITHM
        )

        assert verify_token(token) is None

    def test_unknown_role_is_rejected(self):
        token = jwt.encode(
            {"sub": "user-42", "role": "ROOT", "type": "access", "iss": "order-dispatch"},
            settings.SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM
        )

        assert verify_token(token) is None

    def test_garbage(self):
        assert verify_token("not-a-jwt") is None
