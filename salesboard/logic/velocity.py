"""Product velocity ranking and period-over-period comparison."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Literal, Sequence

from salesboard.ingest.models import DailyBatch
from salesboard.utils.dates import shift_date

VelocityClass = Literal["fast", "medium", "slow"]
Trend = Literal["accelerating", "stable", "decelerating"]
ChangeClass = Literal["gainer", "stable", "loser"]

PERIOD_DAYS = {"week": 7, "month": 30}

FAST_SHARE = 0.33
MEDIUM_SHARE = 0.67
TREND_THRESHOLD = 5.0
CHANGE_THRESHOLD = 15.0
NEW_PRODUCT_CHANGE = 100.0


@dataclass(slots=True)
class VelocityMetric:
    product_name: str
    company: str | None
    total_quantity: float
    total_amount: float
    days_active: int
    daily_velocity: float
    weekly_velocity: float
    classification: VelocityClass
    rank: int


@dataclass(slots=True)
class VelocityChange:
    product_name: str
    company: str | None
    current_velocity: float
    previous_velocity: float
    change_absolute: float
    change_percent: float
    trend: Trend
    classification: ChangeClass


@dataclass(slots=True)
class PeriodSplit:
    current: list[DailyBatch]
    previous: list[DailyBatch]


@dataclass(slots=True)
class _Activity:
    quantity: float = 0.0
    amount: float = 0.0
    dates: set[str] = field(default_factory=set)
    company: str | None = None


def classify_rank(index: int, total: int) -> VelocityClass:
    """Bucket a 0-based position by percentile of the ranked product list.

    With more than one product the last one is always slow, so two products
    split into fast and slow with no medium band.
    """
    fast_cutoff = math.ceil(total * FAST_SHARE)
    medium_cutoff = math.ceil(total * MEDIUM_SHARE)
    if total > 1:
        medium_cutoff = min(medium_cutoff, total - 1)
    if index < fast_cutoff:
        return "fast"
    if index < medium_cutoff:
        return "medium"
    return "slow"


def calculate_velocity(batches: Iterable[DailyBatch]) -> list[VelocityMetric]:
    activity: dict[str, _Activity] = {}
    for batch in batches:
        for record in batch.records:
            entry = activity.setdefault(record.item_name, _Activity())
            entry.quantity += record.quantity
            entry.amount += record.taxable_amount
            entry.dates.add(batch.date)
            if record.company:
                entry.company = record.company

    rows = []
    for name, entry in activity.items():
        days_active = len(entry.dates)
        daily = entry.quantity / days_active if days_active else 0.0
        rows.append((name, entry, days_active, daily))
    rows.sort(key=lambda row: row[3], reverse=True)

    total = len(rows)
    return [
        VelocityMetric(
            product_name=name,
            company=entry.company,
            total_quantity=entry.quantity,
            total_amount=entry.amount,
            days_active=days_active,
            daily_velocity=daily,
            weekly_velocity=daily * 7,
            classification=classify_rank(index, total),
            rank=index + 1,
        )
        for index, (name, entry, days_active, daily) in enumerate(rows)
    ]


def velocity_distribution(metrics: Iterable[VelocityMetric]) -> dict[VelocityClass, int]:
    counts: dict[VelocityClass, int] = {"fast": 0, "medium": 0, "slow": 0}
    for metric in metrics:
        counts[metric.classification] += 1
    return counts


def average_velocity(metrics: Sequence[VelocityMetric]) -> float:
    if not metrics:
        return 0.0
    return sum(m.daily_velocity for m in metrics) / len(metrics)


def split_by_period(batches: Sequence[DailyBatch], granularity: str) -> PeriodSplit:
    """Split batches into the latest N-day window and the N days before it."""
    if granularity not in PERIOD_DAYS:
        raise ValueError(f"Unknown period granularity {granularity}")
    if not batches:
        return PeriodSplit(current=[], previous=[])
    days = PERIOD_DAYS[granularity]
    latest = max(batch.date for batch in batches)
    current_start = shift_date(latest, -(days - 1))
    previous_end = shift_date(current_start, -1)
    previous_start = shift_date(previous_end, -(days - 1))
    return PeriodSplit(
        current=[b for b in batches if current_start <= b.date <= latest],
        previous=[b for b in batches if previous_start <= b.date <= previous_end],
    )


def _trend(change_percent: float) -> Trend:
    if change_percent > TREND_THRESHOLD:
        return "accelerating"
    if change_percent < -TREND_THRESHOLD:
        return "decelerating"
    return "stable"


def _change_class(change_percent: float) -> ChangeClass:
    if change_percent > CHANGE_THRESHOLD:
        return "gainer"
    if change_percent < -CHANGE_THRESHOLD:
        return "loser"
    return "stable"


def compare_velocity(current: Iterable[DailyBatch], previous: Iterable[DailyBatch]) -> list[VelocityChange]:
    current_by_name = {m.product_name: m for m in calculate_velocity(current)}
    previous_by_name = {m.product_name: m for m in calculate_velocity(previous)}
    names = list(current_by_name) + [n for n in previous_by_name if n not in current_by_name]

    changes: list[VelocityChange] = []
    for name in names:
        now = current_by_name.get(name)
        before = previous_by_name.get(name)
        if before is None:
            changes.append(
                VelocityChange(
                    product_name=name,
                    company=now.company,
                    current_velocity=now.daily_velocity,
                    previous_velocity=0.0,
                    change_absolute=now.daily_velocity,
                    change_percent=NEW_PRODUCT_CHANGE,
                    trend="accelerating",
                    classification="gainer",
                )
            )
        elif now is None:
            changes.append(
                VelocityChange(
                    product_name=name,
                    company=before.company,
                    current_velocity=0.0,
                    previous_velocity=before.daily_velocity,
                    change_absolute=-before.daily_velocity,
                    change_percent=-NEW_PRODUCT_CHANGE,
                    trend="decelerating",
                    classification="loser",
                )
            )
        else:
            change_absolute = now.daily_velocity - before.daily_velocity
            # A zero baseline reports no change rather than an infinite one.
            if before.daily_velocity > 0:
                change_percent = change_absolute / before.daily_velocity * 100
            else:
                change_percent = 0.0
            changes.append(
                VelocityChange(
                    product_name=name,
                    company=now.company,
                    current_velocity=now.daily_velocity,
                    previous_velocity=before.daily_velocity,
                    change_absolute=change_absolute,
                    change_percent=change_percent,
                    trend=_trend(change_percent),
                    classification=_change_class(change_percent),
                )
            )
    return changes


def top_gainers(changes: Iterable[VelocityChange], limit: int = 10) -> list[VelocityChange]:
    gainers = [c for c in changes if c.classification == "gainer"]
    gainers.sort(key=lambda c: c.change_percent, reverse=True)
    return gainers[:limit]


def top_losers(changes: Iterable[VelocityChange], limit: int = 10) -> list[VelocityChange]:
    losers = [c for c in changes if c.classification == "loser"]
    losers.sort(key=lambda c: c.change_percent)
    return losers[:limit]
