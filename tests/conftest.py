import itertools
import os
from datetime import datetime, timedelta

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from database.base import Base
from database.connection import build_engine, create_tables, get_db
from models.order import Order, OrderItem, OrderStatus, DeliveryStatus
from models.user import User, UserRole
from services.auth import create_access_token


@pytest.fixture()
def db_engine():
    engine = build_engine("sqlite://")
    create_tables(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def make_user(db):
    counter = itertools.count(1)

    def _make(role=UserRole.DELIVERY, is_active=True, name=None):
        n = next(counter)
        user = User(
            email=f"user{n}@example.com",
            name=name or f"User {n}",
            phone=f"98000000{n:02d}",
            role=role,
            is_active=is_active
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def make_order(db):
    base_time = datetime(2026, 1, 1, 9, 0, 0)
    counter = itertools.count(0)

    def _make(
        delivery_status=DeliveryStatus.PENDING,
        status=OrderStatus.PENDING,
        assigned_to=None,
        created_at=None,
        delivered_at=None,
        items=None
    ):
        n = next(counter)
        items = items or [("Basmati Rice", "5 kg", 1, 95000), ("Mustard Oil", "1 L", 2, 32000)]
        lines = [
            OrderItem(position=i, product_name=name, unit=unit, quantity=qty, unit_price_minor_units=price)
            for i, (name, unit, qty, price) in enumerate(items)
        ]
        order = Order(
            customer_name=f"Customer {n}",
            customer_phone="9811111111",
            shipping_address="Ward 4, Lakeside Road",
            total_minor_units=sum(line.quantity * line.unit_price_minor_units for line in lines),
            status=status,
            delivery_status=delivery_status,
            assigned_to_id=assigned_to.id if assigned_to is not None else None,
            created_at=created_at or base_time + timedelta(minutes=n),
            delivered_at=delivered_at,
            items=lines
        )
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    return _make


@pytest.fixture()
def admin(make_user):
    return make_user(role=UserRole.ADMIN, name="Store Admin")


@pytest.fixture()
def courier(make_user):
    return make_user(role=UserRole.DELIVERY, name="Ram Courier")


@pytest.fixture()
def other_courier(make_user):
    return make_user(role=UserRole.DELIVERY, name="Sita Courier")


@pytest.fixture()
def customer(make_user):
    return make_user(role=UserRole.CUSTOMER, name="Hari Customer")


@pytest.fixture()
def app(session_factory):
    from main import app as fastapi_app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app):
    return TestClient(app)


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


def reload(db, order_id):
    db.expire_all()
    return db.get(Order, order_id)


def assert_order_invariants(order):
    if order.delivery_status in (DeliveryStatus.ASSIGNED, DeliveryStatus.PICKED_UP, DeliveryStatus.IN_TRANSIT):
        assert order.assigned_to_id is not None
    if order.delivery_status == DeliveryStatus.DELIVERED:
        assert order.status == OrderStatus.DELIVERED
        assert order.delivered_at is not None
    assert (order.assigned_to_id is not None) == (order.delivery_status != DeliveryStatus.PENDING)
