"""
Inventory Classifier

Point-in-time stock health: status against thresholds, utilization,
days until stockout and reorder suggestions. Pure functions of the
snapshot; there is no memory of earlier classifications.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from retail_reports.config import ReportingSettings, get_settings
from retail_reports.reporting.records import StockItem


class StockLevel(str, Enum):
    """Stock status, in priority order"""
    CRITICAL = "critical"  # out of stock
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    OVERSTOCK = "overstock"


class Urgency(str, Enum):
    """Low-stock urgency tier"""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


LOW_LEVELS = frozenset({StockLevel.CRITICAL, StockLevel.LOW})


@dataclass(frozen=True)
class StockStatus:
    """Classification of one stock item"""
    item: StockItem
    level: StockLevel
    max_threshold: int
    utilization: float
    daily_usage: float
    days_until_stockout: float
    reorder_quantity: int
    urgency: Optional[Urgency] = None

    @property
    def is_low(self) -> bool:
        return self.level in LOW_LEVELS

    @property
    def is_overstocked(self) -> bool:
        return self.level == StockLevel.OVERSTOCK

    @property
    def stock_value(self) -> float:
        """Stock valued at cost"""
        return self.item.quantity * self.item.unit_cost

    @property
    def retail_value(self) -> float:
        return self.item.quantity * self.item.unit_price


class InventoryClassifier:
    """
    Classifies stock items against their thresholds.

    Example:
        classifier = InventoryClassifier()
        status = classifier.classify(StockItem(..., quantity=5, min_threshold=10))
        status.level  # StockLevel.LOW
    """

    def __init__(self, settings: Optional[ReportingSettings] = None):
        self.settings = settings or get_settings().reporting

    def effective_max(self, item: StockItem) -> int:
        """Explicit max threshold, or a multiple of the min threshold"""
        if item.max_threshold is not None and item.max_threshold > 0:
            return item.max_threshold
        return item.min_threshold * self.settings.max_multiplier

    def level(self, quantity: int, min_threshold: int, max_threshold: int) -> StockLevel:
        if quantity == 0:
            return StockLevel.CRITICAL
        if quantity <= min_threshold:
            return StockLevel.LOW
        if quantity > max_threshold:
            return StockLevel.OVERSTOCK
        if quantity <= max_threshold * self.settings.high_utilization_ratio:
            return StockLevel.NORMAL
        return StockLevel.HIGH

    def urgency(self, days_until_stockout: float) -> Urgency:
        if days_until_stockout <= self.settings.critical_days:
            return Urgency.CRITICAL
        if days_until_stockout <= self.settings.high_days:
            return Urgency.HIGH
        return Urgency.MEDIUM

    def classify(self, item: StockItem, observed_usage: Optional[float] = None) -> StockStatus:
        """
        Classify one item.

        Args:
            item: Stock snapshot
            observed_usage: Daily usage measured from sales, used when the
                item carries no usage figure of its own

        Returns:
            StockStatus; ``urgency`` is set only for low or critical items
        """
        max_threshold = self.effective_max(item)
        utilization = (item.quantity / max_threshold * 100) if max_threshold > 0 else 0.0

        usage = item.daily_usage if item.daily_usage is not None else observed_usage
        usage = usage or 0.0
        days_until_stockout = item.quantity / max(usage, 1)

        level = self.level(item.quantity, item.min_threshold, max_threshold)

        return StockStatus(
            item=item,
            level=level,
            max_threshold=max_threshold,
            utilization=utilization,
            daily_usage=usage,
            days_until_stockout=days_until_stockout,
            reorder_quantity=max(0, max_threshold - item.quantity),
            urgency=self.urgency(days_until_stockout) if level in LOW_LEVELS else None,
        )
