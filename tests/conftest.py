"""
Test Suite Configuration

The shop fixture is small enough to check every report figure by hand.
"Today" is Wednesday 2025-03-12 and the default window runs from
2025-02-10 to 2025-03-12.
"""
from datetime import datetime
from typing import AsyncGenerator, List

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from retail_reports.config import ReportingSettings
from retail_reports.data.loader import load_frames
from retail_reports.database.models import Base
from retail_reports.reporting import PeriodResolver, ReportComposer
from retail_reports.reporting.records import (
    CustomerRecord,
    LineItem,
    StockItem,
    TransactionRecord,
    TransactionStatus,
)
from retail_reports.stores import FrameReportStore, SqlReportStore

NOW = datetime(2025, 3, 12, 15, 30)


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture
def clock():
    """Clock pinned to NOW"""
    return fixed_clock


@pytest.fixture
def reporting_settings() -> ReportingSettings:
    """Reporting settings with their defaults"""
    return ReportingSettings(store="frame", lenient_dates=False)


@pytest.fixture
def resolver(reporting_settings) -> PeriodResolver:
    """Period resolver pinned to NOW"""
    return PeriodResolver(reporting_settings, clock=fixed_clock)


@pytest.fixture
def stock_items() -> List[StockItem]:
    """Six products covering every stock level"""
    return [
        # Out of stock
        StockItem("P1", "Espresso Beans", "SKU-001", "Beverages", quantity=0,
                  min_threshold=10, max_threshold=40, unit_cost=8.0, unit_price=14.0, daily_usage=2.0),
        # Low, max derived from min (30), 10 days of cover
        StockItem("P2", "Green Tea", "SKU-002", "Beverages", quantity=10,
                  min_threshold=10, max_threshold=None, unit_cost=3.0, unit_price=5.0, daily_usage=1.0),
        # Normal
        StockItem("P3", "Sea Salt Chips", "SKU-003", "Snacks", quantity=20,
                  min_threshold=10, max_threshold=40, unit_cost=1.5, unit_price=3.0, daily_usage=2.0),
        # High
        StockItem("P4", "Oat Cookies", "SKU-004", "Snacks", quantity=35,
                  min_threshold=10, max_threshold=40, unit_cost=2.0, unit_price=4.0, daily_usage=3.0),
        # Overstock
        StockItem("P5", "Whole Milk", "SKU-005", "Dairy", quantity=100,
                  min_threshold=10, max_threshold=40, unit_cost=1.0, unit_price=1.2, daily_usage=5.0),
        # Low, usage measured from sales
        StockItem("P6", "Dish Soap", "SKU-006", "Household", quantity=3,
                  min_threshold=5, max_threshold=20, unit_cost=2.0, unit_price=4.0, daily_usage=None),
    ]


@pytest.fixture
def customers() -> List[CustomerRecord]:
    return [
        CustomerRecord("C1", "Alice Brown", email="alice@example.com"),
        CustomerRecord("C2", "Bob Stone", email="bob@example.com"),
        CustomerRecord("C3", "Carol White", email="carol@example.com"),
    ]


@pytest.fixture
def transactions() -> List[TransactionRecord]:
    """
    Completed revenue inside the default window is 229.00 over 6 orders:
    62.00 today (2 orders), 15.00 yesterday, 12.00 a week ago.
    """
    completed = TransactionStatus.COMPLETED
    return [
        TransactionRecord.from_items(
            "T1", datetime(2025, 3, 12, 10, 15), [LineItem("P3", 10, 3.0)],
            customer_id="C1", payment_method="card",
        ),
        TransactionRecord.from_items(
            "T2", datetime(2025, 3, 12, 14, 40), [LineItem("P4", 5, 4.0), LineItem("P5", 10, 1.2)],
            customer_id="C2", payment_method="cash",
        ),
        TransactionRecord.from_items(
            "T3", datetime(2025, 3, 12, 11, 0), [LineItem("P3", 4, 3.0)],
            status=TransactionStatus.PENDING, customer_id="C1",
        ),
        TransactionRecord.from_items(
            "T4", datetime(2025, 3, 11, 9, 30), [LineItem("P3", 5, 3.0)],
            status=completed, customer_id="C1", payment_method="card",
        ),
        TransactionRecord.from_items(
            "T5", datetime(2025, 3, 5, 16, 0), [LineItem("P6", 3, 4.0)],
            payment_method="cash",
        ),
        TransactionRecord.from_items(
            "T6", datetime(2025, 3, 1, 12, 0), [LineItem("P1", 10, 14.0, discount=10.0)],
            customer_id="C3", payment_method="digital",
        ),
        TransactionRecord.from_items(
            "T7", datetime(2025, 2, 20, 12, 0), [LineItem("P1", 1, 14.0)],
            status=TransactionStatus.CANCELLED, customer_id="C2",
        ),
        TransactionRecord.from_items(
            "T8", datetime(2025, 2, 15, 12, 0), [LineItem("P2", 2, 5.0)],
            customer_id="C2", payment_method="card",
        ),
    ]


@pytest.fixture
def frame_store(transactions, stock_items, customers) -> FrameReportStore:
    """In-memory store over the shop fixture"""
    return FrameReportStore.from_records(transactions, stock_items, customers)


@pytest.fixture
def empty_store() -> FrameReportStore:
    return FrameReportStore()


@pytest.fixture
def composer(frame_store, reporting_settings, resolver) -> ReportComposer:
    return ReportComposer(frame_store, settings=reporting_settings, resolver=resolver)


@pytest.fixture
async def test_engine(tmp_path):
    """Create test database engine"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'shop.db'}",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def test_db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session"""
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def sql_store(test_engine, test_db, frame_store) -> SqlReportStore:
    """SQL store holding the same shop data as ``frame_store``"""
    await load_frames(test_db, {
        "products": frame_store.products,
        "customers": frame_store.customers,
        "sales": frame_store.sales,
        "sale_items": frame_store.sale_items,
    })

    return SqlReportStore(async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False))
