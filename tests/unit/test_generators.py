"""
Unit Tests - Synthetic Data and Loading
"""
from datetime import datetime

import polars as pl
import pytest
from sqlalchemy import func, select

from retail_reports.data import ShopDataGenerator, load_frames, read_frames
from retail_reports.database.models import Customer, Sale, SaleItem
from retail_reports.reporting import ReportComposer
from retail_reports.stores import FrameReportStore

END = datetime(2025, 3, 12, 20, 0)


@pytest.fixture
def shop_data(tmp_path):
    generator = ShopDataGenerator(output_dir=str(tmp_path), seed=7)
    return generator.generate_all(n_customers=20, n_products=15, n_sales=150, days=30, end_date=END)


class TestShopDataGenerator:
    """Tests for ShopDataGenerator"""

    def test_frame_sizes(self, shop_data):
        """Test every frame is generated with the requested size"""
        assert len(shop_data["customers"]) == 20
        assert len(shop_data["products"]) == 15
        assert len(shop_data["sales"]) == 150
        assert len(shop_data["sale_items"]) >= 150

    def test_totals_are_consistent(self, shop_data):
        """Test total equals subtotal + tax - discount"""
        sales = shop_data["sales"]
        difference = (sales["subtotal"] + sales["tax"] - sales["discount"] - sales["total"]).abs()

        assert difference.max() < 0.011

    def test_items_reference_products(self, shop_data):
        """Test every line item points at a generated product and sale"""
        items = shop_data["sale_items"]

        assert set(items["product_id"].unique()) <= set(shop_data["products"]["product_id"])
        assert set(items["transaction_id"].unique()) <= set(shop_data["sales"]["transaction_id"])

    def test_stock_quantities_are_valid(self, shop_data):
        """Test quantities are never negative and max exceeds min"""
        products = shop_data["products"]

        assert products["quantity"].min() >= 0
        with_max = products.filter(pl.col("max_threshold").is_not_null())
        assert (with_max["max_threshold"] > with_max["min_threshold"]).all()

    def test_sales_within_range(self, shop_data):
        """Test timestamps fall within the requested days"""
        timestamps = shop_data["sales"]["timestamp"]

        assert timestamps.min() >= datetime(2025, 2, 10)
        assert timestamps.max() < datetime(2025, 3, 13)

    def test_seed_is_reproducible(self, tmp_path):
        """Test the same seed produces the same numbers"""
        first = ShopDataGenerator(str(tmp_path / "a"), seed=3).generate_all(
            n_customers=5, n_products=5, n_sales=20, end_date=END, save=False
        )
        second = ShopDataGenerator(str(tmp_path / "b"), seed=3).generate_all(
            n_customers=5, n_products=5, n_sales=20, end_date=END, save=False
        )

        assert first["sales"]["total"].to_list() == second["sales"]["total"].to_list()

    def test_parquet_files_written(self, shop_data, tmp_path):
        """Test every frame is written as parquet and reads back"""
        store = FrameReportStore.from_parquet(tmp_path)

        assert len(store.sales) == 150
        assert set(read_frames(tmp_path)) == {"products", "customers", "sales", "sale_items"}


class TestLoader:
    """Tests for load_frames"""

    async def test_load_frames(self, shop_data, test_db):
        """Test generated frames load into the shop tables"""
        counts = await load_frames(test_db, shop_data)

        assert counts == {"products": 15, "customers": 20, "sales": 150, "sale_items": len(shop_data["sale_items"])}
        assert await test_db.scalar(select(func.count()).select_from(Sale)) == 150
        assert await test_db.scalar(select(func.count()).select_from(SaleItem)) == len(shop_data["sale_items"])

    async def test_customer_names_are_split(self, frame_store, test_db):
        """Test full names without first/last columns are split"""
        await load_frames(test_db, {"customers": frame_store.customers})

        customer = await test_db.get(Customer, "C1")
        assert (customer.first_name, customer.last_name) == ("Alice", "Brown")

    async def test_generated_data_reports(self, shop_data, tmp_path, reporting_settings, resolver):
        """Test the generated dataset produces a consistent period report"""
        composer = ReportComposer(FrameReportStore.from_parquet(tmp_path), settings=reporting_settings, resolver=resolver)

        report = await composer.sales_by_period()

        assert report["total_orders"] > 0
        assert sum(d["sales"] for d in report["sales_by_day"]) == pytest.approx(report["total_sales"], abs=0.5)
