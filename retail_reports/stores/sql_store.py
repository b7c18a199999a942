"""
SQL Report Store

``ReportStore`` over the shop's relational tables using SQLAlchemy 2.0
async sessions. Each query opens its own session so concurrent report
branches never share one.
"""

from contextlib import AbstractAsyncContextManager
from typing import Any, Callable, Dict, List, Optional

import structlog
from sqlalchemy import and_, extract, func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from retail_reports.database.connection import get_db
from retail_reports.database.models import Customer, Product, Sale, SaleItem
from retail_reports.reporting.aggregation import (
    AggregateBucket,
    AggregateQuery,
    Dimension,
    UNCATEGORIZED,
)
from retail_reports.reporting.records import StockItem, TransactionStatus

logger = structlog.get_logger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def _normalize_key(dimension: Dimension, value: Any) -> Any:
    if value is None:
        return None
    if dimension == Dimension.DAY:
        # date() returns a date on PostgreSQL and a string on SQLite
        return str(value)[:10]
    if dimension == Dimension.HOUR:
        return int(value)
    return value


class SqlReportStore:
    """
    ReportStore backed by the relational shop schema.

    Example:
        store = SqlReportStore()  # uses retail_reports.database.get_db
        buckets = await store.aggregate(query)
    """

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self._session_factory = session_factory or get_db

    # -------------------------------------------------------------------------
    # ReportStore
    # -------------------------------------------------------------------------

    async def aggregate(self, query: AggregateQuery) -> List[AggregateBucket]:
        if query.collection != "sales":
            raise ValueError(f"Unsupported collection: {query.collection}")

        stmt = self._line_statement(query) if query.line_level else self._order_statement(query)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            rows = result.mappings().all()

        buckets = [self._to_bucket(row, query) for row in rows]
        # An ungrouped aggregate over nothing still returns one row
        if not query.group_by:
            buckets = [b for b in buckets if b.count > 0]
        return buckets

    async def stock_items(self, category: Optional[str] = None) -> List[StockItem]:
        stmt = select(Product).order_by(Product.name)
        if category is not None:
            stmt = stmt.where(Product.category == category)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            products = result.scalars().all()

        return [
            StockItem(
                product_id=p.product_id,
                name=p.name,
                sku=p.sku,
                category=p.category or UNCATEGORIZED,
                quantity=p.quantity or 0,
                min_threshold=p.min_stock or 0,
                max_threshold=p.max_stock,
                unit_cost=float(p.cost_price or 0),
                unit_price=float(p.selling_price or 0),
                daily_usage=p.daily_usage,
            )
            for p in products
        ]

    async def check_health(self) -> Dict[str, Any]:
        async with self._session_factory() as session:
            await session.execute(text("SELECT 1"))
        return {"status": "healthy", "backend": "sql"}

    # -------------------------------------------------------------------------
    # Statement building
    # -------------------------------------------------------------------------

    @staticmethod
    def _category_expr():
        return func.coalesce(Product.category, UNCATEGORIZED)

    def _key_columns(self, query: AggregateQuery) -> list:
        columns = []
        for dimension in query.group_by:
            if dimension == Dimension.DAY:
                columns.append(func.date(Sale.created_at).label("day"))
            elif dimension == Dimension.HOUR:
                columns.append(extract("hour", Sale.created_at).label("hour"))
            elif dimension == Dimension.PRODUCT:
                columns.append(SaleItem.product_id.label("product"))
            elif dimension == Dimension.CATEGORY:
                columns.append(self._category_expr().label("category"))
            elif dimension == Dimension.CUSTOMER:
                columns.append(Sale.customer_id.label("customer"))
            elif dimension == Dimension.PAYMENT_METHOD:
                columns.append(Sale.payment_method.label("payment_method"))
            else:
                raise ValueError(f"Unsupported dimension: {dimension}")
        return columns

    def _sale_conditions(self, query: AggregateQuery) -> list:
        window = query.window
        conditions = [
            Sale.status == TransactionStatus.COMPLETED.value,
            Sale.created_at >= window.start,
            Sale.created_at <= window.end if window.include_end else Sale.created_at < window.end,
        ]
        if query.filters.customer_id is not None:
            conditions.append(Sale.customer_id == query.filters.customer_id)
        if Dimension.CUSTOMER in query.group_by:
            conditions.append(Sale.customer_id.is_not(None))
        return conditions

    def _line_conditions(self, query: AggregateQuery) -> list:
        conditions = []
        if query.filters.product_id is not None:
            conditions.append(SaleItem.product_id == query.filters.product_id)
        if query.filters.category is not None:
            conditions.append(self._category_expr() == query.filters.category)
        return conditions

    def _order_statement(self, query: AggregateQuery):
        keys = self._key_columns(query)

        item_quantities = (
            select(
                SaleItem.sale_id.label("sale_id"),
                func.sum(SaleItem.quantity).label("quantity"),
            )
            .group_by(SaleItem.sale_id)
            .subquery()
        )

        conditions = self._sale_conditions(query)
        if query.filters.filters_lines:
            matching = (
                select(SaleItem.sale_id)
                .outerjoin(Product, Product.product_id == SaleItem.product_id)
                .where(and_(*self._line_conditions(query)))
            )
            conditions.append(Sale.sale_id.in_(matching))

        columns = keys + [
            func.coalesce(func.sum(Sale.total), 0).label("total"),
            func.count(Sale.sale_id).label("count"),
            func.coalesce(func.sum(item_quantities.c.quantity), 0).label("quantity"),
            func.min(Sale.created_at).label("first_at"),
            func.max(Sale.created_at).label("last_at"),
        ]

        stmt = (
            select(*columns)
            .select_from(Sale)
            .outerjoin(item_quantities, item_quantities.c.sale_id == Sale.sale_id)
        )
        if Dimension.CUSTOMER in query.group_by:
            stmt = stmt.add_columns(self._customer_name().label("customer_name")).outerjoin(
                Customer, Customer.customer_id == Sale.customer_id
            )

        stmt = stmt.where(and_(*conditions))
        if keys:
            stmt = stmt.group_by(*keys).order_by(*keys)
        return stmt

    def _line_statement(self, query: AggregateQuery):
        keys = self._key_columns(query)
        line_total = SaleItem.quantity * SaleItem.unit_price - SaleItem.discount

        columns = keys + [
            func.coalesce(func.sum(line_total), 0).label("total"),
            func.count(func.distinct(Sale.sale_id)).label("count"),
            func.coalesce(func.sum(SaleItem.quantity), 0).label("quantity"),
            func.min(Sale.created_at).label("first_at"),
            func.max(Sale.created_at).label("last_at"),
            func.max(Product.name).label("product_name"),
            func.max(self._category_expr()).label("product_category"),
        ]

        stmt = (
            select(*columns)
            .select_from(SaleItem)
            .join(Sale, Sale.sale_id == SaleItem.sale_id)
            .outerjoin(Product, Product.product_id == SaleItem.product_id)
        )
        if Dimension.CUSTOMER in query.group_by:
            stmt = stmt.add_columns(self._customer_name().label("customer_name")).outerjoin(
                Customer, Customer.customer_id == Sale.customer_id
            )

        stmt = stmt.where(and_(*self._sale_conditions(query), *self._line_conditions(query)))
        return stmt.group_by(*keys).order_by(*keys)

    @staticmethod
    def _customer_name():
        return func.max(Customer.first_name + " " + func.coalesce(Customer.last_name, ""))

    @staticmethod
    def _to_bucket(row, query: AggregateQuery) -> AggregateBucket:
        keys = {d.value: _normalize_key(d, row[d.value]) for d in query.group_by}

        label = None
        if Dimension.PRODUCT in query.group_by:
            label = row.get("product_name")
        elif Dimension.CUSTOMER in query.group_by:
            label = (row.get("customer_name") or "").strip() or None

        category = row.get("product_category") if Dimension.PRODUCT in query.group_by else None

        return AggregateBucket(
            keys=keys,
            total=float(row["total"] or 0),
            count=int(row["count"] or 0),
            quantity=int(row["quantity"] or 0),
            label=label,
            category=category,
            first_at=row["first_at"],
            last_at=row["last_at"],
        )
