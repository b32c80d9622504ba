"""CSV export helpers."""

from __future__ import annotations

import csv
import math
import os
from collections import Counter
from pathlib import Path
from typing import Iterable

from salesboard.ingest.models import DailyBatch
from salesboard.logic.aggregation import aggregate_by_product_with_company, unknown_products
from salesboard.logic.velocity import VelocityMetric

OUTPUT_DIR = Path(os.environ.get("REPORT_OUTPUT_DIR", "artifacts/reports"))

PRODUCT_COLUMNS = [
    "product",
    "company",
    "total_quantity",
    "total_amount",
    "avg_price",
    "days_active",
    "daily_velocity",
    "classification",
    "rank",
]

UNKNOWN_COLUMNS = ["product", "occurrences", "total_quantity", "total_amount"]


def export_product_summary(
    batches: Iterable[DailyBatch],
    velocity: Iterable[VelocityMetric],
    as_of: str,
) -> Path:
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    file_path = OUTPUT_DIR / f"products-{as_of}.csv"
    by_name = {metric.product_name: metric for metric in velocity}
    with file_path.open("w", newline="") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=PRODUCT_COLUMNS)
        writer.writeheader()
        for product in aggregate_by_product_with_company(batches):
            metric = by_name.get(product.product_name)
            writer.writerow(
                {
                    "product": product.product_name,
                    "company": product.company or "",
                    "total_quantity": product.total_quantity,
                    "total_amount": round(product.total_amount, 2),
                    "avg_price": "" if math.isnan(product.avg_price) else round(product.avg_price, 2),
                    "days_active": metric.days_active if metric else "",
                    "daily_velocity": round(metric.daily_velocity, 4) if metric else "",
                    "classification": metric.classification if metric else "",
                    "rank": metric.rank if metric else "",
                }
            )
    return file_path


def unknown_product_occurrences(batches: Iterable[DailyBatch]) -> Counter[str]:
    """How many records each unmatched product appears in."""
    return Counter(
        record.item_name
        for batch in batches
        for record in batch.records
        if not record.company
    )


def export_unknown_products(batches: Iterable[DailyBatch], as_of: str) -> Path:
    batches = list(batches)
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    file_path = OUTPUT_DIR / f"unknown-products-{as_of}.csv"
    occurrences = unknown_product_occurrences(batches)
    totals = {p.product_name: p for p in unknown_products(batches)}
    with file_path.open("w", newline="") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=UNKNOWN_COLUMNS)
        writer.writeheader()
        for name, count in occurrences.most_common():
            product = totals.get(name)
            if product is None:
                continue
            writer.writerow(
                {
                    "product": name,
                    "occurrences": count,
                    "total_quantity": product.total_quantity,
                    "total_amount": round(product.total_amount, 2),
                }
            )
    return file_path
