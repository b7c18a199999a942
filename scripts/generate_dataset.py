"""
Shop Dataset Generator

Writes a synthetic shop dataset as parquet for the frame report store and
optionally loads it into the configured database.

Usage:
    python scripts/generate_dataset.py --output ./data/raw
    python scripts/generate_dataset.py --sales 5000 --seed-db
"""

import argparse
import asyncio

from retail_reports.config.logging import configure_logging
from retail_reports.data import ShopDataGenerator, seed_database


def main():
    parser = argparse.ArgumentParser(description="Generate a synthetic retail shop dataset")
    parser.add_argument("--output", default=None, help="Output directory (defaults to REPORTS_DATA_PATH)")
    parser.add_argument("--customers", type=int, default=200)
    parser.add_argument("--products", type=int, default=120)
    parser.add_argument("--sales", type=int, default=2000)
    parser.add_argument("--days", type=int, default=90, help="Days of sales history ending today")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--seed-db", action="store_true", help="Also load the data into the database")
    args = parser.parse_args()

    configure_logging()

    generator = ShopDataGenerator(output_dir=args.output, seed=args.seed)
    generator.generate_all(
        n_customers=args.customers,
        n_products=args.products,
        n_sales=args.sales,
        days=args.days,
    )

    if args.seed_db:
        asyncio.run(seed_database(str(generator.output_dir)))


if __name__ == "__main__":
    main()
