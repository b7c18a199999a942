"""
Database Models - Shop Schema

Tables owned by the shop's sales, product and customer modules. The
reporting engine only reads them:

- products: catalog with inventory thresholds and prices
- customers: customer master data
- sales: point-of-sale transactions with their totals
- sale_items: line items of each sale
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


class Product(Base):
    """
    Product Table

    Catalog entry plus its current inventory snapshot. ``max_stock`` is
    optional; reports derive it from ``min_stock`` when missing.
    """
    __tablename__ = "products"

    product_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), index=True)

    # Pricing
    cost_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    selling_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)

    # Inventory
    quantity: Mapped[int] = mapped_column(Integer, default=0)
    min_stock: Mapped[int] = mapped_column(Integer, default=10)
    max_stock: Mapped[Optional[int]] = mapped_column(Integer)
    daily_usage: Mapped[Optional[float]] = mapped_column(Float)

    # Audit
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )


class Customer(Base):
    """
    Customer Table

    Cached lifetime statistics live here but reports recompute their own.
    """
    __tablename__ = "customers"

    customer_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), default="")
    email: Mapped[Optional[str]] = mapped_column(String(255))

    total_spent: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total_orders: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    sales: Mapped[List["Sale"]] = relationship(back_populates="customer")


class Sale(Base):
    """
    Sale Table

    ``total == subtotal + tax - discount``. Only completed sales count
    towards revenue.
    """
    __tablename__ = "sales"

    sale_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    transaction_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    customer_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("customers.customer_id"), index=True
    )
    staff_id: Mapped[Optional[str]] = mapped_column(String(36))

    status: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(30), nullable=False)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    customer: Mapped[Optional["Customer"]] = relationship(back_populates="sales")
    items: Mapped[List["SaleItem"]] = relationship(back_populates="sale")

    __table_args__ = (
        Index("ix_sales_status_created", "status", "created_at"),
    )


class SaleItem(Base):
    """Sale Item Table - one product line of a sale"""
    __tablename__ = "sale_items"

    sale_item_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sale_id: Mapped[str] = mapped_column(ForeignKey("sales.sale_id"), nullable=False, index=True)
    product_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    discount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)

    sale: Mapped["Sale"] = relationship(back_populates="items")
