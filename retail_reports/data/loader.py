"""
Database Loader

Loads shop frames (as produced by ``retail_reports.data.generators`` or
read from parquet) into the relational tables used by ``SqlReportStore``.
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import polars as pl
import structlog
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from retail_reports.config import get_settings
from retail_reports.database.connection import get_engine, init_database, close_database
from retail_reports.database.models import Base, Customer, Product, Sale, SaleItem

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 1000


def _product_records(df: pl.DataFrame) -> List[Dict[str, Any]]:
    return [
        {
            "product_id": row["product_id"],
            "name": row["name"],
            "sku": row["sku"],
            "category": row["category"],
            "cost_price": row["unit_cost"] or 0,
            "selling_price": row["unit_price"] or 0,
            "quantity": row["quantity"] or 0,
            "min_stock": row["min_threshold"] if row["min_threshold"] is not None else 10,
            "max_stock": row["max_threshold"],
            "daily_usage": row["daily_usage"],
        }
        for row in df.to_dicts()
    ]


def _customer_records(df: pl.DataFrame) -> List[Dict[str, Any]]:
    records = []
    for row in df.to_dicts():
        first_name = row.get("first_name")
        last_name = row.get("last_name")
        if first_name is None:
            first_name, _, last_name = (row.get("name") or "").partition(" ")
        records.append({
            "customer_id": row["customer_id"],
            "first_name": first_name,
            "last_name": last_name or "",
            "email": row.get("email"),
        })
    return records


def _sale_records(df: pl.DataFrame) -> List[Dict[str, Any]]:
    return [
        {
            "sale_id": row["transaction_id"],
            "transaction_number": row.get("transaction_number") or row["transaction_id"],
            "customer_id": row["customer_id"],
            "staff_id": row["staff_id"],
            "status": row["status"],
            "payment_method": row["payment_method"],
            "subtotal": row["subtotal"],
            "tax": row["tax"],
            "discount": row["discount"],
            "total": row["total"],
            "created_at": row["timestamp"],
        }
        for row in df.to_dicts()
    ]


def _sale_item_records(df: pl.DataFrame) -> List[Dict[str, Any]]:
    return [
        {
            "sale_id": row["transaction_id"],
            "product_id": row["product_id"],
            "quantity": row["quantity"],
            "unit_price": row["unit_price"],
            "discount": row["discount"] or 0,
        }
        for row in df.to_dicts()
    ]


# Insert order respects the foreign keys
TABLE_LOADERS = [
    ("products", Product, _product_records),
    ("customers", Customer, _customer_records),
    ("sales", Sale, _sale_records),
    ("sale_items", SaleItem, _sale_item_records),
]


async def load_frames(session: AsyncSession, frames: Dict[str, pl.DataFrame]) -> Dict[str, int]:
    """
    Insert shop frames in batches and commit.

    Args:
        session: Writable session
        frames: Any of products, customers, sales, sale_items

    Returns:
        Row count inserted per table
    """
    counts = {}
    for name, model, to_records in TABLE_LOADERS:
        df = frames.get(name)
        if df is None or df.is_empty():
            continue

        records = to_records(df)
        for i in range(0, len(records), CHUNK_SIZE):
            await session.execute(insert(model), records[i:i + CHUNK_SIZE])

        counts[name] = len(records)
        logger.info("Inserted records", table=model.__tablename__, rows=len(records))

    await session.commit()
    return counts


def read_frames(directory: Union[str, Path]) -> Dict[str, pl.DataFrame]:
    """Read every ``<table>.parquet`` present in a directory"""
    path = Path(directory)
    return {
        name: pl.read_parquet(path / f"{name}.parquet")
        for name, _, _ in TABLE_LOADERS
        if (path / f"{name}.parquet").exists()
    }


async def seed_database(directory: Optional[str] = None, url: Optional[str] = None) -> Dict[str, int]:
    """Create the shop tables and load parquet frames into them"""
    directory = directory or get_settings().reporting.data_path
    logger.info("Starting database seeding", path=directory)

    engine = await init_database(url)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        async with AsyncSession(get_engine(), expire_on_commit=False) as session:
            counts = await load_frames(session, read_frames(directory))
        logger.info("Database seeding completed", **counts)
        return counts
    except Exception as e:
        logger.error("Seeding failed", error=str(e), error_type=type(e).__name__)
        raise
    finally:
        await close_database()


if __name__ == "__main__":
    asyncio.run(seed_database())
