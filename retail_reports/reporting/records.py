"""
Source Records

Read-only views of the records the reporting engine consumes. The store
collaborator owns these; reports never mutate them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class TransactionStatus(str, Enum):
    """Sale status enumeration"""
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    """Payment method enumeration"""
    CASH = "cash"
    CARD = "card"
    DIGITAL = "digital"
    BANK_TRANSFER = "bank_transfer"


@dataclass
class LineItem:
    """One product line of a sale"""
    product_id: str
    quantity: int
    unit_price: float
    discount: float = 0.0

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_price - self.discount


@dataclass
class TransactionRecord:
    """
    A point-of-sale transaction.

    ``total == subtotal + tax - discount``. Only completed transactions
    count towards revenue.
    """
    transaction_id: str
    timestamp: datetime
    status: TransactionStatus
    items: List[LineItem] = field(default_factory=list)
    payment_method: str = PaymentMethod.CASH.value
    subtotal: float = 0.0
    tax: float = 0.0
    discount: float = 0.0
    total: float = 0.0
    customer_id: Optional[str] = None
    staff_id: Optional[str] = None

    @classmethod
    def from_items(
        cls,
        transaction_id: str,
        timestamp: datetime,
        items: List[LineItem],
        status: TransactionStatus = TransactionStatus.COMPLETED,
        tax_rate: float = 0.0,
        discount: float = 0.0,
        **kwargs,
    ) -> "TransactionRecord":
        """Build a transaction whose totals are computed from its lines"""
        subtotal = round(sum(item.line_total for item in items), 2)
        tax = round(subtotal * tax_rate, 2)
        return cls(
            transaction_id=transaction_id,
            timestamp=timestamp,
            status=status,
            items=items,
            subtotal=subtotal,
            tax=tax,
            discount=discount,
            total=round(subtotal + tax - discount, 2),
            **kwargs,
        )

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)


@dataclass
class StockItem:
    """Current inventory snapshot for one product"""
    product_id: str
    name: str
    sku: str
    category: str
    quantity: int
    min_threshold: int = 10
    max_threshold: Optional[int] = None
    unit_cost: float = 0.0
    unit_price: float = 0.0
    daily_usage: Optional[float] = None

    def __post_init__(self):
        if self.quantity < 0:
            raise ValueError(f"Stock quantity cannot be negative: {self.product_id}")


@dataclass
class CustomerRecord:
    """Customer master data. Spending figures are computed from transactions."""
    customer_id: str
    name: str
    email: Optional[str] = None
