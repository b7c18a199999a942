"""
Dashboard Composer

Runs five reports concurrently and derives alerts from their results.
The dashboard is all-or-nothing: one failed report fails the whole
dashboard.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import structlog

from retail_reports.config import ReportingSettings
from retail_reports.reporting.composer import ReportComposer, fan_out, report_operation
from retail_reports.reporting.filters import ReportFilters

logger = structlog.get_logger(__name__)

DASHBOARD_LIMIT = 5


@dataclass(frozen=True)
class Alert:
    """Dashboard alert"""
    type: str  # critical, warning, info
    message: str
    priority: str  # high, medium, low
    action: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        alert = {"type": self.type, "message": self.message, "priority": self.priority}
        if self.action:
            alert["action"] = self.action
        return alert


def derive_alerts(
    daily: Dict[str, Any],
    stock_levels: Dict[str, Any],
    low_stock: Dict[str, Any],
    settings: ReportingSettings,
) -> List[Alert]:
    """
    Alert rules over the daily summary and the two inventory reports.

    The no-sales alert fires exactly when the daily total is zero.
    """
    alerts = []

    if daily["summary"]["total_sales"] == 0:
        alerts.append(Alert(type="warning", message="No sales recorded today", priority="medium"))

    low_summary = low_stock["summary"]
    if low_summary["critical_items"] > 0:
        alerts.append(Alert(
            type="critical",
            message=f"{low_summary['critical_items']} items are critically low on stock",
            priority="high",
            action="Review low stock report immediately",
        ))

    if low_summary["high_priority_items"] > 0:
        alerts.append(Alert(
            type="warning",
            message=f"{low_summary['high_priority_items']} items need reordering soon",
            priority="medium",
            action="Plan reorders for high priority items",
        ))

    stock_summary = stock_levels["summary"]
    total_products = stock_summary["total_products"]
    if total_products > 0:
        if low_summary["total_low_stock_items"] / total_products > settings.low_stock_alert_ratio:
            alerts.append(Alert(
                type="warning",
                message="High percentage of items are low on stock",
                priority="medium",
                action="Review inventory management strategy",
            ))

        overstocked = stock_summary["overstocked_count"]
        if overstocked / total_products > settings.overstock_alert_ratio:
            alerts.append(Alert(
                type="info",
                message=f"{overstocked} items are overstocked",
                priority="low",
                action="Consider promotions or discounts",
            ))

    return alerts


class DashboardComposer:
    """
    Merges daily sales, stock levels, low stock, top products and top
    customers into one dashboard.

    Example:
        dashboard = DashboardComposer(ReportComposer(store))
        data = await dashboard.dashboard()
        data["alerts"]
    """

    def __init__(self, composer: ReportComposer):
        self.composer = composer
        self.settings = composer.settings

    @report_operation("dashboard")
    async def dashboard(self) -> Dict[str, Any]:
        top = ReportFilters(limit=DASHBOARD_LIMIT)
        reports = await fan_out(
            daily=self.composer.daily_summary(),
            stock_levels=self.composer.stock_levels(),
            low_stock=self.composer.low_stock(),
            top_products=self.composer.top_products(top),
            customers=self.composer.customer_sales(top),
        )

        daily = reports["daily"]
        stock_levels = reports["stock_levels"]
        low_stock = reports["low_stock"]

        alerts = derive_alerts(daily, stock_levels, low_stock, self.settings)
        logger.info("Dashboard alerts derived", alerts=len(alerts))

        return {
            "timestamp": self.composer.resolver.now().isoformat(),
            "summary": {
                "today_sales": daily["summary"]["total_sales"],
                "today_orders": daily["summary"]["total_orders"],
                "total_products": stock_levels["summary"]["total_products"],
                "low_stock_items": low_stock["summary"]["total_low_stock_items"],
                "critical_items": low_stock["summary"]["critical_items"],
                "inventory_value": stock_levels["summary"]["total_value"],
            },
            "sales": {
                "daily": daily,
                "top_products": reports["top_products"]["top_products"][:DASHBOARD_LIMIT],
                "top_customers": reports["customers"]["customer_sales"][:DASHBOARD_LIMIT],
            },
            "inventory": {
                "stock_levels": stock_levels["summary"],
                "low_stock": low_stock["summary"],
                "recommendations": stock_levels["recommendations"] + low_stock["recommendations"],
            },
            "alerts": [a.to_dict() for a in alerts],
        }
