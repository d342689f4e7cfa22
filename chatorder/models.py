# chatorder/models.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .db import Base

ORDER_STATUSES = ("pending", "preparing", "ready", "completed", "cancelled")
PAYMENT_METHODS = ("cash", "gcash", "paymaya")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")
MENU_CATEGORIES = ("main", "beverage", "snack", "dessert")


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String, nullable=True)
    password_hash = Column(String, nullable=False)


class MenuItem(Base):
    __tablename__ = "menu_items"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(Text, default="")
    category = Column(String, nullable=False, default="main")  # main | beverage | snack | dessert
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String, default="default.jpg")
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class Order(Base):
    __tablename__ = "orders"
    id = Column(Integer, primary_key=True)
    order_number = Column(String, unique=True, index=True, nullable=False)
    queue_number = Column(String, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    status = Column(String, default="pending")  # see ORDER_STATUSES
    total_amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String, default="cash")
    payment_status = Column(String, default="pending")
    # "<session id>:<session version>" of the chat checkout that created this order
    checkout_key = Column(String, unique=True, index=True, nullable=True)
    special_instructions = Column(Text, default="")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    lines = relationship("OrderLine", back_populates="order", cascade="all, delete-orphan", order_by="OrderLine.id")


class OrderLine(Base):
    __tablename__ = "order_lines"
    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=False)
    name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)

    order = relationship("Order", back_populates="lines")
