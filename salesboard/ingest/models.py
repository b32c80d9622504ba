"""Ingestion data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Literal, NewType

Category = Literal["PS", "FS"]
CATEGORIES: tuple[Category, ...] = ("PS", "FS")

ProductKey = NewType("ProductKey", str)


def normalize_product_name(name: str) -> ProductKey:
    """Lowercase and strip a product name for company lookups."""
    return ProductKey(name.lower().strip())


@dataclass(slots=True)
class SalesRecord:
    hsn_code: str
    item_name: str
    quantity: float
    taxable_amount: float
    gst: float
    company: str | None = None


@dataclass(slots=True)
class DailyBatch:
    date: str
    category: Category
    records: list[SalesRecord] = field(default_factory=list)
    total_amount: float = 0.0
    total_quantity: float = 0.0

    @classmethod
    def from_records(cls, date: str, category: Category, records: Iterable[SalesRecord]) -> "DailyBatch":
        items = list(records)
        return cls(
            date=date,
            category=category,
            records=items,
            total_amount=sum(r.taxable_amount for r in items),
            total_quantity=sum(r.quantity for r in items),
        )


@dataclass(slots=True)
class FileDescriptor:
    path: str
    category: Category
    date: str
    filename: str
