"""
Report Composer

Assembles named reports out of the aggregation, ranking, trend,
inventory and recommendation components. Every report is recomputed on
each call and returned as a plain dict; monetary figures are rounded only
when the dict is built.
"""

import asyncio
import functools
import math
import time
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Union

import polars as pl
import structlog
from prometheus_client import Counter, Histogram

from retail_reports.config import ReportingSettings, get_settings
from retail_reports.reporting.aggregation import (
    AggregateBucket,
    AggregationEngine,
    QueryFilters,
    ReportStore,
)
from retail_reports.reporting.filters import ReportFilters
from retail_reports.reporting.inventory import InventoryClassifier, StockStatus, Urgency
from retail_reports.reporting.periods import DateInput, PeriodResolver, Window
from retail_reports.reporting.ranking import RankedEntry, rank
from retail_reports.reporting.recommendations import RecommendationGenerator
from retail_reports.reporting.trends import TrendCalculator

logger = structlog.get_logger(__name__)

ALL_CATEGORIES = "All Categories"

# Per-report top-N defaults
PERIOD_LIMIT = 10
TOP_PRODUCTS_LIMIT = 20
CUSTOMER_SALES_LIMIT = 20
DAILY_TOP_LIMIT = 5
SUMMARY_TOP_LIMIT = 3
SUMMARY_CATEGORY_LIMIT = 5

# Customer segments by share of period revenue
VIP_SHARE = 0.10
REGULAR_SHARE = 0.05

FiltersInput = Union[ReportFilters, Mapping[str, Any], None]


# =============================================================================
# METRICS
# =============================================================================

REPORTS_GENERATED = Counter(
    "retail_reports_generated_total",
    "Total number of reports generated",
    ["report", "status"],
)

REPORT_GENERATION_TIME = Histogram(
    "retail_report_generation_seconds",
    "Time spent generating reports",
    ["report"],
)


def _money(value: float) -> float:
    return round(value, 2)


def _as_filters(filters: FiltersInput) -> ReportFilters:
    if filters is None:
        return ReportFilters()
    if isinstance(filters, ReportFilters):
        return filters
    return ReportFilters.parse(filters)


def _loggable(value: Any) -> Any:
    if isinstance(value, ReportFilters):
        return value.describe()
    return value


def report_operation(name: str):
    """
    Log and time a report operation and re-raise its failures.

    Errors are logged with the report type, filters and cause; no message
    translation happens here. Outcomes and durations are exported as
    Prometheus metrics.
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            context = {
                "report": name,
                "arguments": [_loggable(a) for a in args],
                **{k: _loggable(v) for k, v in kwargs.items()},
            }
            logger.debug("Generating report", **context)
            start_time = time.perf_counter()
            try:
                result = await func(self, *args, **kwargs)
            except Exception as e:
                REPORTS_GENERATED.labels(report=name, status="error").inc()
                logger.error(
                    "Report generation failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    cause=repr(e.__cause__) if e.__cause__ else None,
                    **context,
                )
                raise

            duration = time.perf_counter() - start_time
            REPORTS_GENERATED.labels(report=name, status="success").inc()
            REPORT_GENERATION_TIME.labels(report=name).observe(duration)
            logger.info("Report generated", report=name, duration_ms=round(duration * 1000, 2))
            return result
        return wrapper
    return decorator


async def fan_out(**branches: Awaitable[Any]) -> Dict[str, Any]:
    """
    Await named coroutines concurrently.

    All branches run inside one ``asyncio.TaskGroup``: the first failure
    cancels the siblings and is re-raised as-is, and cancelling the caller
    cancels every branch.

    Returns:
        Mapping of branch name to result
    """
    try:
        async with asyncio.TaskGroup() as group:
            tasks = {name: group.create_task(coro) for name, coro in branches.items()}
    except ExceptionGroup as eg:
        raise eg.exceptions[0]

    return {name: task.result() for name, task in tasks.items()}


# =============================================================================
# STOCK MOVEMENTS
# =============================================================================

class MovementKind(str, Enum):
    """Whether a movement was recorded or derived"""
    OBSERVED = "observed"
    ESTIMATED = "estimated"


class MovementDirection(str, Enum):
    IN = "in"
    OUT = "out"


@dataclass(frozen=True)
class StockMovement:
    """
    Quantity of one product moving in or out of stock on one day.

    Outgoing movements are observed from completed sales. The shop keeps
    no purchase ledger, so incoming movements are ``ESTIMATED`` from the
    outgoing quantities.
    """
    product_id: str
    product: Optional[str]
    date: str
    direction: MovementDirection
    quantity: int
    kind: MovementKind
    reason: str
    revenue: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "product": self.product,
            "date": self.date,
            "type": self.direction.value,
            "kind": self.kind.value,
            "quantity": self.quantity,
            "revenue": _money(self.revenue),
            "reason": self.reason,
        }


# =============================================================================
# ROW BUILDERS
# =============================================================================

def _product_row(entry: RankedEntry) -> Dict[str, Any]:
    bucket = entry.bucket
    return {
        "product_id": entry.key,
        "product": entry.name,
        "category": bucket.category,
        "quantity": bucket.quantity,
        "revenue": _money(bucket.total),
        "average_price": _money(bucket.total / bucket.quantity) if bucket.quantity else 0.0,
        "order_count": bucket.count,
        "percentage": _money(entry.percentage),
    }


def _customer_row(entry: RankedEntry) -> Dict[str, Any]:
    bucket = entry.bucket
    lifetime = (bucket.last_at - bucket.first_at).days if bucket.first_at and bucket.last_at else 0
    return {
        "customer_id": entry.key,
        "customer": entry.name,
        "orders": bucket.count,
        "total_spent": _money(bucket.total),
        "average_order_value": _money(bucket.average),
        "total_items": bucket.quantity,
        "first_order": bucket.first_at.isoformat() if bucket.first_at else None,
        "last_order": bucket.last_at.isoformat() if bucket.last_at else None,
        "customer_lifetime_days": lifetime,
        "percentage": _money(entry.percentage),
    }


def _category_row(entry: RankedEntry) -> Dict[str, Any]:
    bucket = entry.bucket
    return {
        "category": entry.key,
        "revenue": _money(bucket.total),
        "quantity": bucket.quantity,
        "orders": bucket.count,
        "percentage": _money(entry.percentage),
    }


def _stock_row(status: StockStatus) -> Dict[str, Any]:
    item = status.item
    return {
        "product_id": item.product_id,
        "name": item.name,
        "sku": item.sku,
        "category": item.category,
        "current_stock": item.quantity,
        "min_stock": item.min_threshold,
        "max_stock": status.max_threshold,
        "utilization": _money(status.utilization),
        "stock_value": _money(status.stock_value),
        "status": status.level.value,
        "days_until_stockout": round(status.days_until_stockout, 1),
        "reorder_quantity": status.reorder_quantity,
    }


def _low_stock_row(status: StockStatus) -> Dict[str, Any]:
    row = _stock_row(status)
    row["daily_usage"] = round(status.daily_usage, 2)
    row["urgency"] = status.urgency.value if status.urgency else None
    return row


def _comparison(current: AggregateBucket, previous: AggregateBucket) -> Dict[str, Any]:
    difference = current.total - previous.total
    return {
        "sales": _money(difference),
        "orders": current.count - previous.count,
        "percentage": _money(difference / previous.total * 100) if previous.total > 0 else 0.0,
    }


def customer_segments(buckets: List[AggregateBucket]) -> Dict[str, int]:
    """Count customers by their share of the total revenue"""
    total = sum(b.total for b in buckets)
    vip = regular = occasional = 0
    for bucket in buckets:
        if bucket.total > total * VIP_SHARE:
            vip += 1
        elif bucket.total > total * REGULAR_SHARE:
            regular += 1
        else:
            occasional += 1
    return {"vip": vip, "regular": regular, "occasional": occasional}


# =============================================================================
# COMPOSER
# =============================================================================

class ReportComposer:
    """
    Named report operations over a ``ReportStore``.

    Example:
        composer = ReportComposer(FrameReportStore.from_parquet("./data/raw"))
        report = await composer.sales_by_period({"start_date": "2025-01-01"})
        report["total_sales"]
    """

    def __init__(
        self,
        store: ReportStore,
        settings: Optional[ReportingSettings] = None,
        resolver: Optional[PeriodResolver] = None,
    ):
        self.settings = settings or get_settings().reporting
        self.resolver = resolver or PeriodResolver(self.settings)
        self.engine = AggregationEngine(store)
        self.trends = TrendCalculator(self.engine, self.settings)
        self.classifier = InventoryClassifier(self.settings)
        self.recommender = RecommendationGenerator(self.settings)

    def _limit(self, filters: ReportFilters, default: int) -> int:
        return filters.resolve_limit(default, self.settings.max_limit)

    # -------------------------------------------------------------------------
    # Sales reports
    # -------------------------------------------------------------------------

    @report_operation("daily_summary")
    async def daily_summary(self, date: DateInput = None) -> Dict[str, Any]:
        """Totals, hourly breakdown and top sellers for one day"""
        window = self.resolver.resolve_day(date)
        day = window.start_date

        totals = await self.engine.totals(window)
        hours = await self.engine.by_hour(window)
        products = rank(await self.engine.by_product(window), limit=DAILY_TOP_LIMIT)
        customers = rank(await self.engine.by_customer(window), limit=DAILY_TOP_LIMIT)

        yesterday = await self.engine.totals(self.resolver.resolve_day(day - timedelta(days=1)))
        last_week = await self.engine.totals(self.resolver.resolve_day(day - timedelta(days=7)))

        return {
            "date": window.start_date.isoformat(),
            "summary": {
                "total_sales": _money(totals.total),
                "total_orders": totals.count,
                "average_order_value": _money(totals.average),
                "total_items": totals.quantity,
            },
            "sales_by_hour": [
                {"hour": b.key, "sales": _money(b.total), "orders": b.count}
                for b in hours
            ],
            "top_products": [_product_row(e) for e in products],
            "top_customers": [_customer_row(e) for e in customers],
            "comparison": {
                "vs_yesterday": _comparison(totals, yesterday),
                "vs_last_week": _comparison(totals, last_week),
            },
        }

    @report_operation("sales_by_period")
    async def sales_by_period(self, filters: FiltersInput = None) -> Dict[str, Any]:
        """
        Period sales with rankings, daily series, payment breakdown and trend.

        The category filter narrows the product ranking only; totals, the
        daily series and the trend cover every category.
        """
        filters = _as_filters(filters)
        window = self.resolver.resolve(filters.start_date, filters.end_date)
        limit = self._limit(filters, PERIOD_LIMIT)
        scope = filters.query_filters(include_category=False)

        totals = await self.engine.totals(window, scope)
        products = rank(await self.engine.by_product(window, filters.query_filters()), limit=limit)
        customers = rank(await self.engine.by_customer(window, scope), limit=limit)
        days = await self.engine.by_day(window, scope)
        payments = await self.engine.by_payment_method(window, scope)
        trend = await self.trends.compute(window, scope)

        return {
            "period": window.label,
            "start_date": window.start_date.isoformat(),
            "end_date": window.end_date.isoformat(),
            "total_sales": _money(totals.total),
            "total_orders": totals.count,
            "average_order_value": _money(totals.average),
            "total_items": totals.quantity,
            "top_products": [_product_row(e) for e in products],
            "top_customers": [_customer_row(e) for e in customers],
            "sales_by_day": [
                {"date": b.key, "sales": _money(b.total), "orders": b.count}
                for b in days
            ],
            "payment_methods": {b.key: _money(b.total) for b in payments},
            "trend": trend.to_dict(),
        }

    @report_operation("top_products")
    async def top_products(self, filters: FiltersInput = None) -> Dict[str, Any]:
        """Products ranked by line revenue"""
        filters = _as_filters(filters)
        window = self.resolver.resolve(filters.start_date, filters.end_date)
        limit = self._limit(filters, TOP_PRODUCTS_LIMIT)

        ranking = rank(await self.engine.by_product(window, filters.query_filters()), limit=limit)

        return {
            "period": window.label,
            "category": filters.category or ALL_CATEGORIES,
            "total_revenue": _money(ranking.total),
            "total_products": ranking.population,
            "top_products": [_product_row(e) for e in ranking],
        }

    @report_operation("customer_sales")
    async def customer_sales(self, filters: FiltersInput = None) -> Dict[str, Any]:
        """
        Customers ranked by spend.

        Totals and segments cover every customer of the period, not only
        the ranked ones. Spend is counted per order, so the category filter
        does not apply.
        """
        filters = _as_filters(filters)
        window = self.resolver.resolve(filters.start_date, filters.end_date)
        limit = self._limit(filters, CUSTOMER_SALES_LIMIT)

        buckets = await self.engine.by_customer(window, filters.query_filters(include_category=False))
        ranking = rank(buckets, limit=limit)

        return {
            "period": window.label,
            "total_customers": ranking.population,
            "total_revenue": _money(ranking.total),
            "customer_sales": [_customer_row(e) for e in ranking],
            "segments": customer_segments(buckets),
            "average_customer_value": _money(ranking.total / ranking.population) if ranking.population else 0.0,
        }

    # -------------------------------------------------------------------------
    # Inventory reports
    # -------------------------------------------------------------------------

    async def _observed_usage(self) -> Dict[str, float]:
        """
        Average units sold per day.

        The window runs from ``usage_window_days`` days before today through
        today, so the default of 30 covers 31 calendar days.
        """
        window = self.resolver.resolve(default_days=self.settings.usage_window_days)
        buckets = await self.engine.by_product(window)
        return {b.key: b.quantity / window.days for b in buckets}

    async def _stock_statuses(self, category: Optional[str] = None) -> List[StockStatus]:
        items = await self.engine.stock_items(category)

        usage: Dict[str, float] = {}
        if any(item.daily_usage is None for item in items):
            usage = await self._observed_usage()

        return [self.classifier.classify(item, usage.get(item.product_id)) for item in items]

    @staticmethod
    def _low_stock(statuses: List[StockStatus]) -> List[StockStatus]:
        return sorted((s for s in statuses if s.is_low), key=lambda s: s.days_until_stockout)

    @report_operation("stock_levels")
    async def stock_levels(self, category: Optional[str] = None) -> Dict[str, Any]:
        """Every item classified against its thresholds, highest utilization first"""
        statuses = await self._stock_statuses(category)
        ordered = sorted(statuses, key=lambda s: s.utilization, reverse=True)

        count = len(statuses)
        levels = [s.level.value for s in statuses]
        summary = {
            "total_products": count,
            "critical_count": levels.count("critical"),
            "low_stock_count": sum(1 for s in statuses if s.is_low),
            "normal_count": levels.count("normal"),
            "high_count": levels.count("high"),
            "overstocked_count": levels.count("overstock"),
            "total_value": _money(sum(s.stock_value for s in statuses)),
            "average_utilization": _money(sum(s.utilization for s in statuses) / count) if count else 0.0,
        }

        return {
            "category": category or ALL_CATEGORIES,
            "summary": summary,
            "stock_levels": [_stock_row(s) for s in ordered],
            "recommendations": self.recommender.generate(stock=statuses),
        }

    @report_operation("low_stock")
    async def low_stock(self, category: Optional[str] = None) -> Dict[str, Any]:
        """Low and out-of-stock items by urgency, soonest stockout first"""
        low = self._low_stock(await self._stock_statuses(category))

        summary = {
            "total_low_stock_items": len(low),
            "critical_items": sum(1 for s in low if s.urgency == Urgency.CRITICAL),
            "high_priority_items": sum(1 for s in low if s.urgency == Urgency.HIGH),
            "medium_priority_items": sum(1 for s in low if s.urgency == Urgency.MEDIUM),
            "total_value": _money(sum(s.stock_value for s in low)),
        }

        return {
            "category": category or ALL_CATEGORIES,
            "summary": summary,
            "low_stock_items": [_low_stock_row(s) for s in low],
            "recommendations": self.recommender.generate(low_stock=low),
        }

    @report_operation("inventory_valuation")
    async def inventory_valuation(self, category: Optional[str] = None) -> Dict[str, Any]:
        """Stock valued at cost and at retail, grouped by category"""
        items = await self.engine.stock_items(category)

        frame = pl.DataFrame(
            [
                {
                    "category": item.category,
                    "name": item.name,
                    "sku": item.sku,
                    "quantity": item.quantity,
                    "cost_price": item.unit_cost,
                    "selling_price": item.unit_price,
                }
                for item in items
            ],
            schema={
                "category": pl.Utf8,
                "name": pl.Utf8,
                "sku": pl.Utf8,
                "quantity": pl.Int64,
                "cost_price": pl.Float64,
                "selling_price": pl.Float64,
            },
        ).with_columns(
            (pl.col("quantity") * pl.col("cost_price")).alias("stock_value"),
            (pl.col("quantity") * pl.col("selling_price")).alias("retail_value"),
            pl.when(pl.col("selling_price") > 0)
            .then((pl.col("selling_price") - pl.col("cost_price")) / pl.col("selling_price") * 100)
            .otherwise(None)
            .alias("profit_margin"),
        )

        grouped = (
            frame.group_by("category")
            .agg([
                pl.len().alias("count"),
                pl.col("stock_value").sum().alias("total_cost"),
                pl.col("retail_value").sum().alias("total_retail"),
                pl.col("profit_margin").mean().fill_null(0.0).alias("average_margin"),
            ])
            .with_columns((pl.col("total_retail") - pl.col("total_cost")).alias("total_profit"))
            .sort(["total_cost", "category"], descending=[True, False])
        )

        categories = []
        for row in grouped.iter_rows(named=True):
            members = frame.filter(pl.col("category") == row["category"]).sort("name")
            categories.append({
                "category": row["category"],
                "count": row["count"],
                "total_cost": _money(row["total_cost"]),
                "total_retail": _money(row["total_retail"]),
                "total_profit": _money(row["total_profit"]),
                "average_margin": _money(row["average_margin"]),
                "profit_percentage": (
                    _money(row["total_profit"] / row["total_retail"] * 100) if row["total_retail"] else 0.0
                ),
                "items": [
                    {
                        "name": m["name"],
                        "sku": m["sku"],
                        "quantity": m["quantity"],
                        "cost_price": _money(m["cost_price"]),
                        "selling_price": _money(m["selling_price"]),
                        "stock_value": _money(m["stock_value"]),
                        "retail_value": _money(m["retail_value"]),
                        "profit_margin": _money(m["profit_margin"]) if m["profit_margin"] is not None else None,
                    }
                    for m in members.iter_rows(named=True)
                ],
            })

        margins = grouped["average_margin"].to_list()
        summary = {
            "total_products": len(items),
            "total_cost": _money(frame["stock_value"].sum()),
            "total_retail": _money(frame["retail_value"].sum()),
            "total_profit": _money(frame["retail_value"].sum() - frame["stock_value"].sum()),
            "average_margin": _money(sum(margins) / len(margins)) if margins else 0.0,
        }

        return {
            "category": category or ALL_CATEGORIES,
            "summary": summary,
            "categories": categories,
            "recommendations": self.recommender.for_valuation(categories),
        }

    @report_operation("stock_movement")
    async def stock_movement(self, filters: FiltersInput = None) -> Dict[str, Any]:
        """
        Daily stock-out per product from completed sales, plus estimated
        stock-in when restock estimation is enabled.
        """
        filters = _as_filters(filters)
        window = self.resolver.resolve(filters.start_date, filters.end_date)
        scope = QueryFilters(category=filters.category, product_id=filters.product)

        buckets = await self.engine.by_product_and_day(window, scope)

        outgoing = [
            StockMovement(
                product_id=b.keys["product"],
                product=b.label,
                date=b.keys["day"],
                direction=MovementDirection.OUT,
                quantity=b.quantity,
                kind=MovementKind.OBSERVED,
                reason="Sale",
                revenue=b.total,
            )
            for b in buckets
        ]

        incoming = []
        if self.settings.estimate_restock:
            for movement in outgoing:
                quantity = math.floor(movement.quantity * self.settings.restock_estimate_ratio)
                if quantity <= 0:
                    continue
                incoming.append(
                    StockMovement(
                        product_id=movement.product_id,
                        product=movement.product,
                        date=movement.date,
                        direction=MovementDirection.IN,
                        quantity=quantity,
                        kind=MovementKind.ESTIMATED,
                        reason="Restock",
                    )
                )

        # Stable sort keeps each day's outgoing rows ahead of incoming ones
        movements = sorted(outgoing + incoming, key=lambda m: m.date)

        stock_out = sum(m.quantity for m in outgoing)
        stock_in = sum(m.quantity for m in incoming)
        estimated_in = sum(m.quantity for m in incoming if m.kind == MovementKind.ESTIMATED)

        return {
            "period": window.label,
            "summary": {
                "total_movements": len(movements),
                "stock_in": stock_in,
                "stock_out": stock_out,
                "net_movement": stock_in - stock_out,
                "estimated_stock_in": estimated_in,
            },
            "movements": [m.to_dict() for m in movements],
            "recommendations": self.recommender.for_movements(stock_in, stock_out, estimated_in),
        }

    # -------------------------------------------------------------------------
    # Combined reports
    # -------------------------------------------------------------------------

    @report_operation("business_summary")
    async def business_summary(self, period: Optional[str] = None) -> Dict[str, Any]:
        """Sales, inventory and customer roll-up for a named period"""
        named = self.resolver.resolve_named(period)
        window: Window = named.window

        results = await fan_out(
            totals=self.engine.totals(window),
            trend=self.trends.compute(window),
            products=self.engine.by_product(window),
            categories=self.engine.by_category(window),
            customers=self.engine.by_customer(window),
            stock=self._stock_statuses(),
        )

        totals = results["totals"]
        trend = results["trend"]
        statuses = results["stock"]
        low = self._low_stock(statuses)
        products = rank(results["products"], limit=SUMMARY_TOP_LIMIT)
        categories = rank(results["categories"], limit=SUMMARY_CATEGORY_LIMIT)
        customers = rank(results["customers"], limit=SUMMARY_TOP_LIMIT)

        count = len(statuses)
        return {
            "period": named.name,
            "date_range": {"start_date": named.start_date, "end_date": named.end_date},
            "label": window.label,
            "business_metrics": {
                "sales": {
                    "total": _money(totals.total),
                    "orders": totals.count,
                    "average_order": _money(totals.average),
                    "total_items": totals.quantity,
                    **trend.to_dict(),
                },
                "inventory": {
                    "total_products": count,
                    "total_value": _money(sum(s.stock_value for s in statuses)),
                    "low_stock_items": len(low),
                    "critical_items": sum(1 for s in low if s.urgency == Urgency.CRITICAL),
                    "utilization": _money(sum(s.utilization for s in statuses) / count) if count else 0.0,
                },
                "customers": {
                    "total": customers.population,
                    "top_spenders": [_customer_row(e) for e in customers],
                },
            },
            "top_performers": {
                "products": [_product_row(e) for e in products],
                "categories": [_category_row(e) for e in categories],
            },
            "recommendations": self.recommender.generate(
                stock=statuses,
                low_stock=low,
                trend=trend,
                top_products=products,
            ),
        }
