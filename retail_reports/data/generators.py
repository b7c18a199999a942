"""
Synthetic Shop Data Generator

Generates a consistent retail shop dataset for development and demos:
- Customers
- Products with inventory thresholds
- Point-of-sale transactions and their line items

Frames follow ``retail_reports.stores.frame_store.FRAME_SCHEMAS``; extra
columns (customer first/last names, transaction numbers) are kept for the
SQL loader.
"""

import random
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Optional, Tuple

import numpy as np
import polars as pl
import structlog
from faker import Faker

from retail_reports.config import get_settings
from retail_reports.reporting.records import PaymentMethod, TransactionStatus
from retail_reports.stores.frame_store import (
    CUSTOMERS_SCHEMA,
    PRODUCTS_SCHEMA,
    SALE_ITEMS_SCHEMA,
    SALES_SCHEMA,
)

logger = structlog.get_logger(__name__)

fake = Faker()


# =============================================================================
# CONFIGURATION
# =============================================================================

CATEGORIES = [
    ("Beverages", ["Coffee", "Tea", "Juice", "Soda", "Water"], (1.5, 25)),
    ("Snacks", ["Chips", "Cookies", "Crackers", "Nuts", "Candy"], (1, 12)),
    ("Dairy", ["Milk", "Cheese", "Yogurt", "Butter", "Cream"], (1.5, 15)),
    ("Household", ["Detergent", "Sponges", "Trash Bags", "Bleach", "Paper Towels"], (2, 30)),
    ("Personal Care", ["Shampoo", "Soap", "Toothpaste", "Lotion", "Razors"], (2, 40)),
    ("Bakery", ["Bread", "Bagels", "Muffins", "Croissants", "Cake"], (1, 20)),
]

PAYMENT_METHODS = [
    (PaymentMethod.CASH.value, 0.30),
    (PaymentMethod.CARD.value, 0.50),
    (PaymentMethod.DIGITAL.value, 0.15),
    (PaymentMethod.BANK_TRANSFER.value, 0.05),
]

SALE_STATUSES = [
    (TransactionStatus.COMPLETED.value, 0.85),
    (TransactionStatus.PENDING.value, 0.05),
    (TransactionStatus.CANCELLED.value, 0.06),
    (TransactionStatus.REFUNDED.value, 0.04),
]

TAX_RATE = 0.08

# Busier around lunch and after work
HOUR_WEIGHTS = np.array([
    0, 0, 0, 0, 0, 0, 0.5, 1, 2, 3, 4, 5,
    7, 6, 4, 4, 5, 7, 8, 6, 4, 2, 1, 0,
], dtype=float)


def seed_everything(seed: int) -> None:
    """Seed every random source used by the generators"""
    random.seed(seed)
    np.random.seed(seed)
    Faker.seed(seed)


# =============================================================================
# GENERATORS
# =============================================================================

class CustomerGenerator:
    """Generate customer master data"""

    def generate(self, n: int = 200) -> pl.DataFrame:
        customers = []
        for _ in range(n):
            first_name = fake.first_name()
            last_name = fake.last_name()
            customers.append({
                "customer_id": str(uuid.uuid4()),
                "name": f"{first_name} {last_name}",
                "first_name": first_name,
                "last_name": last_name,
                "email": fake.email(),
            })

        schema = {**CUSTOMERS_SCHEMA, "first_name": pl.Utf8, "last_name": pl.Utf8}
        return pl.DataFrame(customers, schema=schema)


class ProductGenerator:
    """Generate a product catalog with stock levels around its thresholds"""

    def generate(self, n: int = 120) -> pl.DataFrame:
        products = []
        for i in range(n):
            category, kinds, (low, high) = random.choice(CATEGORIES)
            unit_price = round(random.uniform(low, high), 2)
            unit_cost = round(unit_price * random.uniform(0.45, 0.85), 2)

            min_threshold = random.randint(5, 25)
            # Some products carry no explicit max and derive it from min
            max_threshold = min_threshold * random.randint(3, 6) if random.random() > 0.3 else None
            ceiling = max_threshold or min_threshold * 3

            # Spread quantities over out-of-stock, low, normal and overstock
            band = np.random.choice(
                ["out", "low", "normal", "over"],
                p=[0.05, 0.15, 0.70, 0.10],
            )
            if band == "out":
                quantity = 0
            elif band == "low":
                quantity = random.randint(1, min_threshold)
            elif band == "over":
                quantity = random.randint(ceiling + 1, ceiling * 2)
            else:
                quantity = random.randint(min_threshold + 1, ceiling)

            products.append({
                "product_id": str(uuid.uuid4()),
                "name": f"{fake.word().title()} {random.choice(kinds)}",
                "sku": f"SKU-{i:06d}",
                "category": category,
                "quantity": quantity,
                "min_threshold": min_threshold,
                "max_threshold": max_threshold,
                "unit_cost": unit_cost,
                "unit_price": unit_price,
                # Missing usage is estimated from sales by the reports
                "daily_usage": round(random.uniform(0.2, 6.0), 2) if random.random() > 0.4 else None,
            })

        return pl.DataFrame(products, schema=PRODUCTS_SCHEMA)


class SaleGenerator:
    """Generate point-of-sale transactions with line items"""

    def __init__(self, customers_df: pl.DataFrame, products_df: pl.DataFrame):
        self.customer_ids = customers_df["customer_id"].to_list()
        self.product_data = products_df.select(["product_id", "unit_price"]).to_dicts()

    def generate(
        self,
        n: int = 2000,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Tuple[pl.DataFrame, pl.DataFrame]:
        """Generate n sales; every total equals subtotal + tax - discount"""
        end_date = end_date or datetime.now()
        start_date = start_date or end_date - timedelta(days=90)
        total_days = max((end_date - start_date).days, 1)
        hour_probabilities = HOUR_WEIGHTS / HOUR_WEIGHTS.sum()

        sales = []
        sale_items = []

        for i in range(n):
            transaction_id = str(uuid.uuid4())
            day = start_date + timedelta(days=random.randrange(total_days))
            timestamp = day.replace(
                hour=int(np.random.choice(24, p=hour_probabilities)),
                minute=random.randint(0, 59),
                second=random.randint(0, 59),
                microsecond=0,
            )

            num_items = np.random.choice([1, 2, 3, 4, 5], p=[0.40, 0.30, 0.15, 0.10, 0.05])
            subtotal = 0.0
            for _ in range(num_items):
                product = random.choice(self.product_data)
                quantity = int(np.random.choice([1, 2, 3, 4], p=[0.60, 0.25, 0.10, 0.05]))
                unit_price = product["unit_price"]
                discount = round(unit_price * quantity * random.choice([0, 0, 0, 0.05, 0.10]), 2)

                sale_items.append({
                    "transaction_id": transaction_id,
                    "product_id": product["product_id"],
                    "quantity": quantity,
                    "unit_price": unit_price,
                    "discount": discount,
                })
                subtotal += unit_price * quantity - discount

            subtotal = round(subtotal, 2)
            tax = round(subtotal * TAX_RATE, 2)
            order_discount = round(subtotal * 0.05, 2) if random.random() < 0.1 else 0.0

            sales.append({
                "transaction_id": transaction_id,
                "transaction_number": f"TXN-{i:08d}",
                "timestamp": timestamp,
                "status": random.choices(
                    [s[0] for s in SALE_STATUSES],
                    weights=[s[1] for s in SALE_STATUSES],
                )[0],
                "payment_method": random.choices(
                    [p[0] for p in PAYMENT_METHODS],
                    weights=[p[1] for p in PAYMENT_METHODS],
                )[0],
                "subtotal": subtotal,
                "tax": tax,
                "discount": order_discount,
                "total": round(subtotal + tax - order_discount, 2),
                # Walk-in customers are anonymous
                "customer_id": random.choice(self.customer_ids) if random.random() < 0.7 else None,
                "staff_id": f"STAFF-{random.randint(1, 8):03d}",
            })

        sales_schema = {**SALES_SCHEMA, "transaction_number": pl.Utf8}
        return (
            pl.DataFrame(sales, schema=sales_schema),
            pl.DataFrame(sale_items, schema=SALE_ITEMS_SCHEMA),
        )


# =============================================================================
# MAIN GENERATOR
# =============================================================================

class ShopDataGenerator:
    """Builds the four shop frames and writes them as parquet"""

    def __init__(self, output_dir: Optional[str] = None, seed: int = 42):
        self.output_dir = Path(output_dir or get_settings().reporting.data_path)
        self.seed = seed

    def generate_all(
        self,
        n_customers: int = 200,
        n_products: int = 120,
        n_sales: int = 2000,
        days: int = 90,
        end_date: Optional[datetime] = None,
        save: bool = True,
    ) -> Dict[str, pl.DataFrame]:
        """Generate the complete dataset"""
        seed_everything(self.seed)
        end_date = end_date or datetime.now()

        logger.info(
            "Generating shop data",
            customers=n_customers,
            products=n_products,
            sales=n_sales,
            days=days,
        )

        customers_df = CustomerGenerator().generate(n_customers)
        products_df = ProductGenerator().generate(n_products)
        sales_df, sale_items_df = SaleGenerator(customers_df, products_df).generate(
            n_sales,
            start_date=end_date - timedelta(days=days),
            end_date=end_date,
        )

        data = {
            "customers": customers_df,
            "products": products_df,
            "sales": sales_df,
            "sale_items": sale_items_df,
        }

        if save:
            self._save_data(data)

        logger.info("Shop data generation complete")
        return data

    def _save_data(self, data: Dict[str, pl.DataFrame]) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        for name, df in data.items():
            parquet_path = self.output_dir / f"{name}.parquet"
            df.write_parquet(parquet_path)
            logger.info("Saved frame", name=name, rows=len(df), path=str(parquet_path))
