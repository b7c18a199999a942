"""
Polars Report Store

In-memory ``ReportStore`` backed by polars DataFrames. Used for parquet
snapshots of the shop data (see ``retail_reports.data.generators``) and as
the store under test.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import polars as pl
import structlog

from retail_reports.reporting.aggregation import (
    AggregateBucket,
    AggregateQuery,
    Dimension,
    UNCATEGORIZED,
)
from retail_reports.reporting.records import (
    CustomerRecord,
    StockItem,
    TransactionRecord,
    TransactionStatus,
)

logger = structlog.get_logger(__name__)


# =============================================================================
# SCHEMAS
# =============================================================================

SALES_SCHEMA: Dict[str, pl.DataType] = {
    "transaction_id": pl.Utf8,
    "timestamp": pl.Datetime("us"),
    "status": pl.Utf8,
    "payment_method": pl.Utf8,
    "subtotal": pl.Float64,
    "tax": pl.Float64,
    "discount": pl.Float64,
    "total": pl.Float64,
    "customer_id": pl.Utf8,
    "staff_id": pl.Utf8,
}

SALE_ITEMS_SCHEMA: Dict[str, pl.DataType] = {
    "transaction_id": pl.Utf8,
    "product_id": pl.Utf8,
    "quantity": pl.Int64,
    "unit_price": pl.Float64,
    "discount": pl.Float64,
}

PRODUCTS_SCHEMA: Dict[str, pl.DataType] = {
    "product_id": pl.Utf8,
    "name": pl.Utf8,
    "sku": pl.Utf8,
    "category": pl.Utf8,
    "quantity": pl.Int64,
    "min_threshold": pl.Int64,
    "max_threshold": pl.Int64,
    "unit_cost": pl.Float64,
    "unit_price": pl.Float64,
    "daily_usage": pl.Float64,
}

CUSTOMERS_SCHEMA: Dict[str, pl.DataType] = {
    "customer_id": pl.Utf8,
    "name": pl.Utf8,
    "email": pl.Utf8,
}

FRAME_SCHEMAS = {
    "sales": SALES_SCHEMA,
    "sale_items": SALE_ITEMS_SCHEMA,
    "products": PRODUCTS_SCHEMA,
    "customers": CUSTOMERS_SCHEMA,
}


def conform(df: Optional[pl.DataFrame], schema: Dict[str, pl.DataType]) -> pl.DataFrame:
    """Select and cast the schema columns, adding missing ones as nulls"""
    if df is None:
        return pl.DataFrame(schema=schema)

    return df.select([
        pl.col(name).cast(dtype) if name in df.columns else pl.lit(None, dtype=dtype).alias(name)
        for name, dtype in schema.items()
    ])


def _key_expr(dimension: Dimension) -> pl.Expr:
    if dimension == Dimension.DAY:
        return pl.col("timestamp").dt.strftime("%Y-%m-%d").alias("day")
    if dimension == Dimension.HOUR:
        return pl.col("timestamp").dt.hour().cast(pl.Int64).alias("hour")
    if dimension == Dimension.PRODUCT:
        return pl.col("product_id").alias("product")
    if dimension == Dimension.CATEGORY:
        return pl.col("category").alias("category")
    if dimension == Dimension.CUSTOMER:
        return pl.col("customer_id").alias("customer")
    if dimension == Dimension.PAYMENT_METHOD:
        return pl.col("payment_method").alias("payment_method")
    raise ValueError(f"Unsupported dimension: {dimension}")


class FrameReportStore:
    """
    ReportStore over four polars frames: sales, sale_items, products and
    customers.

    Example:
        store = FrameReportStore.from_records(transactions, stock, customers)
        buckets = await store.aggregate(AggregateQuery(window, (Dimension.DAY,)))
    """

    def __init__(
        self,
        sales: Optional[pl.DataFrame] = None,
        sale_items: Optional[pl.DataFrame] = None,
        products: Optional[pl.DataFrame] = None,
        customers: Optional[pl.DataFrame] = None,
    ):
        self.sales = conform(sales, SALES_SCHEMA)
        self.sale_items = conform(sale_items, SALE_ITEMS_SCHEMA)
        self.products = conform(products, PRODUCTS_SCHEMA)
        self.customers = conform(customers, CUSTOMERS_SCHEMA)

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def from_records(
        cls,
        transactions: Iterable[TransactionRecord] = (),
        stock: Iterable[StockItem] = (),
        customers: Iterable[CustomerRecord] = (),
    ) -> "FrameReportStore":
        """Build frames from record objects"""
        sales_rows = []
        item_rows = []
        for txn in transactions:
            status = txn.status.value if isinstance(txn.status, TransactionStatus) else str(txn.status)
            sales_rows.append({
                "transaction_id": txn.transaction_id,
                "timestamp": txn.timestamp,
                "status": status,
                "payment_method": txn.payment_method,
                "subtotal": float(txn.subtotal),
                "tax": float(txn.tax),
                "discount": float(txn.discount),
                "total": float(txn.total),
                "customer_id": txn.customer_id,
                "staff_id": txn.staff_id,
            })
            for item in txn.items:
                item_rows.append({
                    "transaction_id": txn.transaction_id,
                    "product_id": item.product_id,
                    "quantity": int(item.quantity),
                    "unit_price": float(item.unit_price),
                    "discount": float(item.discount),
                })

        product_rows = [
            {
                "product_id": item.product_id,
                "name": item.name,
                "sku": item.sku,
                "category": item.category,
                "quantity": item.quantity,
                "min_threshold": item.min_threshold,
                "max_threshold": item.max_threshold,
                "unit_cost": float(item.unit_cost),
                "unit_price": float(item.unit_price),
                "daily_usage": item.daily_usage,
            }
            for item in stock
        ]

        customer_rows = [
            {"customer_id": c.customer_id, "name": c.name, "email": c.email}
            for c in customers
        ]

        return cls(
            sales=pl.DataFrame(sales_rows, schema=SALES_SCHEMA),
            sale_items=pl.DataFrame(item_rows, schema=SALE_ITEMS_SCHEMA),
            products=pl.DataFrame(product_rows, schema=PRODUCTS_SCHEMA),
            customers=pl.DataFrame(customer_rows, schema=CUSTOMERS_SCHEMA),
        )

    @classmethod
    def from_parquet(cls, directory: Union[str, Path]) -> "FrameReportStore":
        """
        Load ``<name>.parquet`` files from a directory.

        ``customers.parquet`` is optional; the other files are required.
        """
        path = Path(directory)
        frames: Dict[str, Optional[pl.DataFrame]] = {}
        for name in FRAME_SCHEMAS:
            file_path = path / f"{name}.parquet"
            if file_path.exists():
                frames[name] = pl.read_parquet(file_path)
            elif name == "customers":
                frames[name] = None
            else:
                raise FileNotFoundError(f"Missing frame file: {file_path}")

        logger.info(
            "Frame store loaded",
            path=str(path),
            **{name: (len(df) if df is not None else 0) for name, df in frames.items()},
        )
        return cls(**frames)

    # -------------------------------------------------------------------------
    # ReportStore
    # -------------------------------------------------------------------------

    async def aggregate(self, query: AggregateQuery) -> List[AggregateBucket]:
        if query.collection != "sales":
            raise ValueError(f"Unsupported collection: {query.collection}")

        if query.line_level:
            frame = self._line_level(query)
        else:
            frame = self._order_level(query)

        return [self._to_bucket(row, query) for row in frame.iter_rows(named=True)]

    async def stock_items(self, category: Optional[str] = None) -> List[StockItem]:
        products = self.products
        if category is not None:
            products = products.filter(pl.col("category") == category)

        return [
            StockItem(
                product_id=row["product_id"],
                name=row["name"],
                sku=row["sku"],
                category=row["category"] or UNCATEGORIZED,
                quantity=row["quantity"] or 0,
                min_threshold=row["min_threshold"] or 0,
                max_threshold=row["max_threshold"],
                unit_cost=row["unit_cost"] or 0.0,
                unit_price=row["unit_price"] or 0.0,
                daily_usage=row["daily_usage"],
            )
            for row in products.iter_rows(named=True)
        ]

    async def check_health(self) -> Dict[str, Any]:
        return {
            "status": "healthy",
            "backend": "frame",
            "sales": len(self.sales),
            "products": len(self.products),
        }

    # -------------------------------------------------------------------------
    # Query building
    # -------------------------------------------------------------------------

    def _completed_sales(self, query: AggregateQuery) -> pl.LazyFrame:
        window = query.window
        ts = pl.col("timestamp")
        in_window = (ts >= window.start) & ((ts <= window.end) if window.include_end else (ts < window.end))

        sales = self.sales.lazy().filter(
            (pl.col("status") == TransactionStatus.COMPLETED.value) & in_window
        )
        if query.filters.customer_id is not None:
            sales = sales.filter(pl.col("customer_id") == query.filters.customer_id)
        if Dimension.CUSTOMER in query.group_by:
            sales = sales.filter(pl.col("customer_id").is_not_null())
        return sales

    def _lines(self, query: AggregateQuery) -> pl.LazyFrame:
        catalog = self.products.lazy().select([
            "product_id",
            pl.col("name").alias("product_name"),
            "category",
        ])
        lines = (
            self.sale_items.lazy()
            .join(catalog, on="product_id", how="left")
            .with_columns(
                pl.col("category").fill_null(UNCATEGORIZED),
                (pl.col("quantity") * pl.col("unit_price") - pl.col("discount")).alias("line_total"),
            )
        )

        filters = query.filters
        if filters.product_id is not None:
            lines = lines.filter(pl.col("product_id") == filters.product_id)
        if filters.category is not None:
            lines = lines.filter(pl.col("category") == filters.category)
        return lines

    def _order_level(self, query: AggregateQuery) -> pl.DataFrame:
        sales = self._completed_sales(query)

        if query.filters.filters_lines:
            matching = self._lines(query).select("transaction_id").unique()
            sales = sales.join(matching, on="transaction_id", how="semi")

        item_quantities = (
            self.sale_items.lazy()
            .group_by("transaction_id")
            .agg(pl.col("quantity").sum().alias("item_quantity"))
        )
        sales = sales.join(item_quantities, on="transaction_id", how="left").with_columns(
            pl.col("item_quantity").fill_null(0)
        )

        aggregations = [
            pl.col("total").sum().alias("total"),
            pl.col("transaction_id").n_unique().alias("count"),
            pl.col("item_quantity").sum().alias("quantity"),
            pl.col("timestamp").min().alias("first_at"),
            pl.col("timestamp").max().alias("last_at"),
        ]
        return self._group(sales, query, aggregations)

    def _line_level(self, query: AggregateQuery) -> pl.DataFrame:
        sales = self._completed_sales(query).select([
            "transaction_id", "timestamp", "customer_id", "payment_method",
        ])
        lines = self._lines(query).join(sales, on="transaction_id", how="inner")

        aggregations = [
            pl.col("line_total").sum().alias("total"),
            pl.col("transaction_id").n_unique().alias("count"),
            pl.col("quantity").sum().alias("quantity"),
            pl.col("timestamp").min().alias("first_at"),
            pl.col("timestamp").max().alias("last_at"),
            pl.col("product_name").first().alias("product_name"),
            pl.col("category").first().alias("product_category"),
        ]
        return self._group(lines, query, aggregations)

    def _group(self, frame: pl.LazyFrame, query: AggregateQuery, aggregations: List[pl.Expr]) -> pl.DataFrame:
        if not query.group_by:
            result = frame.select(aggregations).collect()
            # Ungrouped aggregation over nothing still yields one row
            if result.is_empty() or result["count"][0] == 0:
                return result.clear()
            return result

        keys = [_key_expr(d) for d in query.group_by]
        key_names = [d.value for d in query.group_by]
        grouped = frame.group_by(keys).agg(aggregations)

        if Dimension.CUSTOMER in query.group_by:
            names = self.customers.lazy().select([
                pl.col("customer_id").alias("customer"),
                pl.col("name").alias("customer_name"),
            ]).unique(subset="customer", keep="first")
            grouped = grouped.join(names, on="customer", how="left")

        # Joins do not preserve row order
        return grouped.sort(key_names).collect()

    @staticmethod
    def _to_bucket(row: Dict[str, Any], query: AggregateQuery) -> AggregateBucket:
        keys = {d.value: row[d.value] for d in query.group_by}

        label = None
        if Dimension.PRODUCT in query.group_by:
            label = row.get("product_name")
        elif Dimension.CUSTOMER in query.group_by:
            label = row.get("customer_name")

        category = row.get("product_category") if Dimension.PRODUCT in query.group_by else None

        return AggregateBucket(
            keys=keys,
            total=float(row["total"] or 0.0),
            count=int(row["count"] or 0),
            quantity=int(row["quantity"] or 0),
            label=label,
            category=category,
            first_at=row["first_at"],
            last_at=row["last_at"],
        )
