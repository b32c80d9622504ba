"""Sales rollups by product, company and date."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from salesboard.ingest.models import CATEGORIES, Category, DailyBatch, SalesRecord
from salesboard.utils.dates import shift_date

UNKNOWN_COMPANY = "Unknown"
DATE_PRESETS = ("ALL", "TODAY", "LAST_7", "LAST_30", "THIS_MONTH")


@dataclass(slots=True)
class ProductAggregate:
    product_name: str
    total_quantity: float
    total_amount: float
    avg_price: float
    company: str | None = None


@dataclass(slots=True)
class CompanyAggregate:
    company_name: str
    total_amount: float
    total_quantity: float
    product_count: int
    products: list[ProductAggregate]


@dataclass(slots=True)
class DateAggregate:
    date: str
    category: Category
    amount: float
    quantity: float


@dataclass(slots=True)
class CategoryTotal:
    category: Category
    amount: float
    quantity: float


@dataclass(slots=True)
class Insights:
    unique_days: int
    avg_daily_sales: float
    highest_day: DateAggregate | None
    top3_company_share: float


@dataclass(slots=True)
class _Totals:
    quantity: float = 0.0
    amount: float = 0.0
    company: str | None = None

    def add(self, record: SalesRecord) -> None:
        self.quantity += record.quantity
        self.amount += record.taxable_amount
        if record.company:
            self.company = record.company


@dataclass(slots=True)
class _CompanyTotals:
    quantity: float = 0.0
    amount: float = 0.0
    products: dict[str, _Totals] = field(default_factory=dict)


def average_price(amount: float, quantity: float) -> float:
    """Amount per unit; nan when nothing was sold."""
    if quantity == 0:
        return math.nan
    return amount / quantity


def _group_by_product(batches: Iterable[DailyBatch]) -> dict[str, _Totals]:
    grouped: dict[str, _Totals] = {}
    for batch in batches:
        for record in batch.records:
            grouped.setdefault(record.item_name, _Totals()).add(record)
    return grouped


def _finalize(grouped: dict[str, _Totals], *, with_company: bool, company: str | None = None) -> list[ProductAggregate]:
    products = [
        ProductAggregate(
            product_name=name,
            total_quantity=totals.quantity,
            total_amount=totals.amount,
            avg_price=average_price(totals.amount, totals.quantity),
            company=company or (totals.company if with_company else None),
        )
        for name, totals in grouped.items()
    ]
    products.sort(key=lambda p: p.total_amount, reverse=True)
    return products


def aggregate_by_product(batches: Iterable[DailyBatch]) -> list[ProductAggregate]:
    return _finalize(_group_by_product(batches), with_company=False)


def aggregate_by_product_with_company(batches: Iterable[DailyBatch]) -> list[ProductAggregate]:
    return _finalize(_group_by_product(batches), with_company=True)


def aggregate_by_date(batches: Iterable[DailyBatch]) -> list[DateAggregate]:
    rows = [
        DateAggregate(
            date=batch.date,
            category=batch.category,
            amount=batch.total_amount,
            quantity=batch.total_quantity,
        )
        for batch in batches
    ]
    rows.sort(key=lambda row: row.date)
    return rows


def aggregate_by_company(batches: Iterable[DailyBatch]) -> list[CompanyAggregate]:
    grouped: dict[str, _CompanyTotals] = {}
    for batch in batches:
        for record in batch.records:
            totals = grouped.setdefault(record.company or UNKNOWN_COMPANY, _CompanyTotals())
            totals.quantity += record.quantity
            totals.amount += record.taxable_amount
            totals.products.setdefault(record.item_name, _Totals()).add(record)
    companies = [
        CompanyAggregate(
            company_name=name,
            total_amount=totals.amount,
            total_quantity=totals.quantity,
            product_count=len(totals.products),
            products=_finalize(totals.products, with_company=True, company=name),
        )
        for name, totals in grouped.items()
    ]
    companies.sort(key=lambda c: c.total_amount, reverse=True)
    return companies


def get_total_sales(batches: Iterable[DailyBatch]) -> float:
    return sum(batch.total_amount for batch in batches)


def get_total_quantity(batches: Iterable[DailyBatch]) -> float:
    return sum(batch.total_quantity for batch in batches)


def top_products(batches: Iterable[DailyBatch], limit: int = 10) -> list[ProductAggregate]:
    return aggregate_by_product_with_company(batches)[:limit]


def top_companies(batches: Iterable[DailyBatch], limit: int = 10) -> list[CompanyAggregate]:
    return aggregate_by_company(batches)[:limit]


def unknown_products(batches: Iterable[DailyBatch]) -> list[ProductAggregate]:
    """Products that no company mapping claimed, largest revenue first."""
    return [
        p
        for p in aggregate_by_product_with_company(batches)
        if not p.company or p.company == UNKNOWN_COMPANY
    ]


def category_comparison(batches: Sequence[DailyBatch]) -> list[CategoryTotal]:
    return [
        CategoryTotal(
            category=category,
            amount=get_total_sales(b for b in batches if b.category == category),
            quantity=get_total_quantity(b for b in batches if b.category == category),
        )
        for category in CATEGORIES
    ]


def available_dates(batches: Iterable[DailyBatch]) -> list[str]:
    return sorted({batch.date for batch in batches})


def filter_batches(
    batches: Iterable[DailyBatch],
    *,
    category: Category | None = None,
    start: str | None = None,
    end: str | None = None,
    company: str | None = None,
) -> list[DailyBatch]:
    """Narrow batches by category, inclusive date range and company.

    The company filter rebuilds each batch so its totals cover only the kept
    records.
    """
    selected = list(batches)
    if category:
        selected = [b for b in selected if b.category == category]
    if start:
        selected = [b for b in selected if b.date >= start]
    if end:
        selected = [b for b in selected if b.date <= end]
    if company:
        selected = [
            DailyBatch.from_records(b.date, b.category, (r for r in b.records if r.company == company))
            for b in selected
        ]
    return selected


def date_range_preset(dates: Sequence[str], preset: str) -> tuple[str | None, str | None]:
    """Resolve a named range to ``(start, end)`` relative to the latest date."""
    if preset not in DATE_PRESETS:
        raise ValueError(f"Unknown date preset {preset}")
    if preset == "ALL" or not dates:
        return None, None
    latest = max(dates)
    if preset == "TODAY":
        return latest, latest
    if preset == "LAST_7":
        return shift_date(latest, -6), latest
    if preset == "LAST_30":
        return shift_date(latest, -29), latest
    return f"{latest[:7]}-01", latest


def compute_insights(batches: Sequence[DailyBatch]) -> Insights:
    total = get_total_sales(batches)
    unique_days = len(available_dates(batches))
    daily = aggregate_by_date(batches)
    highest = max(daily, key=lambda row: row.amount) if daily else None
    top3 = sum(c.total_amount for c in top_companies(batches, 3))
    return Insights(
        unique_days=unique_days,
        avg_daily_sales=total / unique_days if unique_days else 0.0,
        highest_day=highest,
        top3_company_share=top3 / total * 100 if total else 0.0,
    )
