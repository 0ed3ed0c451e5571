#!/usr/bin/env python3
"""
Seed an admin, a few delivery agents and some pending orders, then print a
bearer token for each seeded user.
"""
import os
import sys
sys.path.insert(0, os.path.dirname(__file__))

from database.connection import SessionLocal, create_tables
from models.user import User, UserRole
from models.order import Order, OrderItem
from services.auth import create_access_token

USERS = [
    {"email": "admin@example.com", "name": "Store Admin", "phone": "9800000001", "role": UserRole.ADMIN},
    {"email": "ram@example.com", "name": "Ram Courier", "phone": "9800000002", "role": UserRole.DELIVERY},
    {"email": "sita@example.com", "name": "Sita Courier", "phone": "9800000003", "role": UserRole.DELIVERY},
]

ORDERS = [
    {
        "customer_name": "Hari Customer",
        "customer_phone": "9811111111",
        "shipping_address": "Ward 4, Lakeside Road",
        "items": [("Basmati Rice", "5 kg", 1, 95000), ("Mustard Oil", "1 L", 2, 32000)],
    },
    {
        "customer_name": "Gita Customer",
        "customer_phone": "9822222222",
        "shipping_address": "Ward 9, Temple Lane",
        "items": [("Red Lentils", "1 kg", 3, 18000)],
    },
    {
        "customer_name": "Mohan Customer",
        "customer_phone": "9833333333",
        "shipping_address": "Ward 2, Market Street",
        "items": [("Black Tea", "500 g", 1, 45000), ("Sugar", "1 kg", 2, 11000)],
    },
]

def get_or_create_user(db, data):
    user = db.query(User).filter(User.email == data["email"]).first()
    if user:
        return user, False
    user = User(**data)
    db.add(user)
    db.flush()
    return user, True

def create_order(db, data):
    lines = [
        OrderItem(position=i, product_name=name, unit=unit, quantity=qty, unit_price_minor_units=price)
        for i, (name, unit, qty, price) in enumerate(data["items"])
    ]
    order = Order(
        customer_name=data["customer_name"],
        customer_phone=data["customer_phone"],
        shipping_address=data["shipping_address"],
        total_minor_units=sum(line.quantity * line.unit_price_minor_units for line in lines),
        items=lines
    )
    db.add(order)
    return order

def seed():
    create_tables()
    db = SessionLocal()
    try:
        users = []
        for data in USERS:
            user, created = get_or_create_user(db, data)
            users.append(user)
            print(f"{'✅ Created' if created else 'ℹ️  Exists '} {user.role.value:<8} {user.email}")

        for data in ORDERS:
            create_order(db, data)
            print(f"✅ Created pending order for {data['customer_name']}")

        db.commit()

        print("\nBearer tokens:")
        for user in users:
            print(f"  {user.email}: {create_access_token(user.id, user.role)}")
    except Exception as e:
        db.rollback()
        print(f"❌ Error seeding data: {e}")
        raise
    finally:
        db.close()

if __name__ == "__main__":
    seed()
