"""
Recommendation Generator

Threshold rules over classified stock, trends and rankings. Output is an
ordered list of advisories: critical stock advisories, then trend
advisories, then general strategy advisories. Groups are concatenated,
never re-sorted.
"""

from typing import List, Optional, Sequence

from retail_reports.config import ReportingSettings, get_settings
from retail_reports.reporting.inventory import StockStatus, Urgency
from retail_reports.reporting.ranking import Ranking
from retail_reports.reporting.trends import TrendClassification, TrendResult

BALANCED_MESSAGE = "Stock levels are well balanced"

LEAD_TIME_MESSAGE = "Review supplier lead times and safety stock levels"
ABC_ANALYSIS_MESSAGE = "Consider implementing ABC analysis for inventory management"
REORDER_NOTIFICATION_MESSAGE = "Implement automated reorder notifications"

MOVEMENT_RATIO = 1.5


class RecommendationGenerator:
    """
    Pure rule evaluation producing human-readable advisories.

    Example:
        generator = RecommendationGenerator()
        generator.generate(stock=statuses)
        # ['Review 3 low stock items and consider reordering', ...]
    """

    def __init__(self, settings: Optional[ReportingSettings] = None):
        self.settings = settings or get_settings().reporting

    def generate(
        self,
        stock: Optional[Sequence[StockStatus]] = None,
        low_stock: Optional[Sequence[StockStatus]] = None,
        trend: Optional[TrendResult] = None,
        top_products: Optional[Ranking] = None,
    ) -> List[str]:
        """
        Evaluate every rule whose input was supplied.

        Args:
            stock: Classification of the whole catalog
            low_stock: Low or critical items with their urgency
            trend: Revenue trend of the period
            top_products: Product revenue ranking of the period

        Returns:
            Advisories; a single neutral message when no rule fires
        """
        recommendations = (
            self._critical_advisories(stock, low_stock)
            + self._trend_advisories(trend, top_products)
            + self._general_advisories(stock, low_stock)
        )
        return recommendations or [BALANCED_MESSAGE]

    def _critical_advisories(self, stock, low_stock) -> List[str]:
        advisories = []

        if low_stock:
            critical = sum(1 for s in low_stock if s.urgency == Urgency.CRITICAL)
            high = sum(1 for s in low_stock if s.urgency == Urgency.HIGH)
            if critical > 0:
                advisories.append(f"Immediate action required for {critical} critical items")
            if high > 0:
                advisories.append(f"Plan reorders for {high} high priority items")

        if stock:
            low = sum(1 for s in stock if s.is_low)
            if low > 0:
                advisories.append(f"Review {low} low stock items and consider reordering")

        return advisories

    def _trend_advisories(self, trend, top_products) -> List[str]:
        advisories = []

        if trend is not None:
            if trend.classification == TrendClassification.DECREASING:
                advisories.append("Review sales strategies and promotions")
            elif trend.classification == TrendClassification.INCREASING:
                advisories.append("Sales are increasing - check stock cover for best sellers")

        leader = top_products.leader if top_products is not None else None
        if leader is not None and leader.percentage > self.settings.concentration_ratio * 100:
            advisories.append(
                f"Revenue is concentrated in {leader.name} "
                f"({leader.percentage:.1f}% of sales) - consider broadening the product mix"
            )

        return advisories

    def _general_advisories(self, stock, low_stock) -> List[str]:
        advisories = []

        if stock:
            total = len(stock)
            low = sum(1 for s in stock if s.is_low)
            overstocked = sum(1 for s in stock if s.is_overstocked)
            if low / total > self.settings.low_stock_alert_ratio:
                advisories.append("High percentage of items are low on stock - review inventory management strategy")
            if overstocked / total > self.settings.overstock_alert_ratio:
                advisories.append(f"Consider promotions for {overstocked} overstocked items")

        if low_stock:
            advisories.append(LEAD_TIME_MESSAGE)

        return advisories

    # -------------------------------------------------------------------------
    # Report specific rule sets
    # -------------------------------------------------------------------------

    def for_valuation(self, categories: Sequence[dict]) -> List[str]:
        """Pricing advisories over per-category valuation rows"""
        recommendations = []

        low_margin = [c for c in categories if c["average_margin"] < self.settings.low_margin_percent]
        if low_margin:
            recommendations.append(f"Review pricing for {len(low_margin)} low margin categories")

        if any(c["total_cost"] > self.settings.high_value_cost for c in categories):
            recommendations.append("Focus on high-value categories for inventory optimization")

        recommendations.append(ABC_ANALYSIS_MESSAGE)
        return recommendations

    def for_movements(self, stock_in: int, stock_out: int, estimated_in: int = 0) -> List[str]:
        """Advisories comparing outgoing and incoming quantities"""
        recommendations = []

        if stock_out > stock_in * MOVEMENT_RATIO:
            recommendations.append("Stock out rate is high - review reorder points")
        if stock_in > stock_out * MOVEMENT_RATIO:
            recommendations.append("Stock in rate is high - review ordering quantities")
        if estimated_in > 0:
            recommendations.append(
                "Stock in figures are estimated from sales - record purchase receipts for an exact ledger"
            )

        recommendations.append(REORDER_NOTIFICATION_MESSAGE)
        return recommendations
