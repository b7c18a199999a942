"""
Aggregation Engine

Grouped, filtered rollups over completed transactions and inventory
snapshots. The engine talks to storage through the narrow ``ReportStore``
capability, so the same reports run against PostgreSQL or in-memory
polars frames.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

import structlog

from retail_reports.reporting.errors import QueryExecutionError, ReportingError
from retail_reports.reporting.periods import Window
from retail_reports.reporting.records import StockItem

logger = structlog.get_logger(__name__)

UNCATEGORIZED = "Uncategorized"


class Dimension(str, Enum):
    """Grouping axes for aggregation"""
    DAY = "day"  # YYYY-MM-DD string key
    HOUR = "hour"  # 0-23
    PRODUCT = "product"
    CATEGORY = "category"
    CUSTOMER = "customer"
    PAYMENT_METHOD = "payment_method"


# Dimensions that require unwinding transactions into their line items
LINE_DIMENSIONS = frozenset({Dimension.PRODUCT, Dimension.CATEGORY})


@dataclass(frozen=True)
class QueryFilters:
    """Record filters applied on top of the window"""
    category: Optional[str] = None
    customer_id: Optional[str] = None
    product_id: Optional[str] = None

    @property
    def filters_lines(self) -> bool:
        return self.category is not None or self.product_id is not None


@dataclass(frozen=True)
class AggregateQuery:
    """
    One grouped query over completed sales.

    Semantics every store implements:

    - Only ``completed`` transactions inside ``window`` participate.
    - ``customer_id`` keeps transactions of that customer.
    - ``category`` / ``product_id`` keep only matching lines for line-level
      queries, and transactions with at least one matching line otherwise.
    - Grouping by customer skips transactions without a customer.
    - Order-level buckets: ``total`` sums transaction totals, ``quantity``
      sums the line quantities of those transactions.
    - Line-level buckets (product or category in ``group_by``): ``total``
      sums line totals (``quantity * unit_price - discount``).
    - ``count`` is always the number of distinct transactions.
    - Buckets come back ordered by their keys, ascending.
    """
    window: Window
    group_by: Tuple[Dimension, ...] = ()
    filters: QueryFilters = field(default_factory=QueryFilters)
    collection: str = "sales"

    @property
    def line_level(self) -> bool:
        return any(d in LINE_DIMENSIONS for d in self.group_by)

    def describe(self) -> Dict[str, Any]:
        return {
            "collection": self.collection,
            "start": self.window.start.isoformat(),
            "end": self.window.end.isoformat(),
            "group_by": [d.value for d in self.group_by],
            "category": self.filters.category,
            "customer_id": self.filters.customer_id,
            "product_id": self.filters.product_id,
        }


@dataclass
class AggregateBucket:
    """A grouping key plus its numeric rollups"""
    keys: Dict[str, Any] = field(default_factory=dict)
    total: float = 0.0
    count: int = 0
    quantity: int = 0
    label: Optional[str] = None
    category: Optional[str] = None
    first_at: Optional[datetime] = None
    last_at: Optional[datetime] = None

    @property
    def key(self) -> Any:
        """The single key value, or a tuple when grouped by several dimensions"""
        if not self.keys:
            return None
        values = tuple(self.keys.values())
        return values[0] if len(values) == 1 else values

    @property
    def average(self) -> float:
        """Average order value"""
        return self.total / self.count if self.count else 0.0


@runtime_checkable
class ReportStore(Protocol):
    """Read-only query capability the engine needs from persistence"""

    async def aggregate(self, query: AggregateQuery) -> List[AggregateBucket]:
        ...

    async def stock_items(self, category: Optional[str] = None) -> List[StockItem]:
        ...


class AggregationEngine:
    """
    Issues grouped queries against a ``ReportStore``.

    Store failures are wrapped in ``QueryExecutionError`` with the original
    exception chained. Nothing is retried.

    Example:
        engine = AggregationEngine(store)
        days = await engine.by_day(window)
    """

    def __init__(self, store: ReportStore):
        self.store = store

    async def run(self, query: AggregateQuery) -> List[AggregateBucket]:
        """Execute a query, translating store failures"""
        try:
            buckets = await self.store.aggregate(query)
        except ReportingError:
            raise
        except Exception as e:
            logger.error(
                "Aggregation query failed",
                query=query.describe(),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise QueryExecutionError(
                "Aggregation query failed",
                cause=e,
                details=query.describe(),
            ) from e

        logger.debug("Aggregation query completed", buckets=len(buckets), **query.describe())
        return buckets

    async def _grouped(
        self,
        window: Window,
        group_by: Tuple[Dimension, ...],
        filters: Optional[QueryFilters],
    ) -> List[AggregateBucket]:
        return await self.run(
            AggregateQuery(window=window, group_by=group_by, filters=filters or QueryFilters())
        )

    async def totals(self, window: Window, filters: Optional[QueryFilters] = None) -> AggregateBucket:
        """Ungrouped rollup; a zero bucket when nothing matches"""
        buckets = await self._grouped(window, (), filters)
        return buckets[0] if buckets else AggregateBucket()

    async def by_day(self, window: Window, filters: Optional[QueryFilters] = None) -> List[AggregateBucket]:
        return await self._grouped(window, (Dimension.DAY,), filters)

    async def by_hour(self, window: Window, filters: Optional[QueryFilters] = None) -> List[AggregateBucket]:
        return await self._grouped(window, (Dimension.HOUR,), filters)

    async def by_product(self, window: Window, filters: Optional[QueryFilters] = None) -> List[AggregateBucket]:
        return await self._grouped(window, (Dimension.PRODUCT,), filters)

    async def by_category(self, window: Window, filters: Optional[QueryFilters] = None) -> List[AggregateBucket]:
        return await self._grouped(window, (Dimension.CATEGORY,), filters)

    async def by_customer(self, window: Window, filters: Optional[QueryFilters] = None) -> List[AggregateBucket]:
        return await self._grouped(window, (Dimension.CUSTOMER,), filters)

    async def by_payment_method(
        self, window: Window, filters: Optional[QueryFilters] = None
    ) -> List[AggregateBucket]:
        return await self._grouped(window, (Dimension.PAYMENT_METHOD,), filters)

    async def by_product_and_day(
        self, window: Window, filters: Optional[QueryFilters] = None
    ) -> List[AggregateBucket]:
        return await self._grouped(window, (Dimension.PRODUCT, Dimension.DAY), filters)

    async def stock_items(self, category: Optional[str] = None) -> List[StockItem]:
        """Current inventory snapshot; inventory reads take no time filter"""
        try:
            return await self.store.stock_items(category)
        except ReportingError:
            raise
        except Exception as e:
            logger.error(
                "Stock query failed",
                category=category,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise QueryExecutionError(
                "Stock query failed",
                cause=e,
                details={"collection": "products", "category": category},
            ) from e
