"""Dashboard snapshot computation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from salesboard.ingest.models import DailyBatch
from salesboard.logic.aggregation import (
    CategoryTotal,
    CompanyAggregate,
    DateAggregate,
    Insights,
    ProductAggregate,
    aggregate_by_company,
    aggregate_by_date,
    aggregate_by_product,
    category_comparison,
    compute_insights,
    get_total_quantity,
    get_total_sales,
    top_products,
    unknown_products,
)
from salesboard.logic.forecast import (
    FORECAST_TOP_N,
    BacktestMetrics,
    ForecastSummary,
    ForecastValidation,
    backtest_all,
    generate_forecast_summary,
    summarize_accuracy,
)
from salesboard.logic.velocity import (
    VelocityChange,
    VelocityMetric,
    average_velocity,
    calculate_velocity,
    compare_velocity,
    split_by_period,
    top_gainers,
    top_losers,
    velocity_distribution,
)


@dataclass(slots=True)
class VelocityView:
    period: str
    metrics: list[VelocityMetric]
    distribution: dict[str, int]
    average: float
    gainers: list[VelocityChange]
    losers: list[VelocityChange]


@dataclass(slots=True)
class DashboardSnapshot:
    total_sales: float
    total_quantity: float
    product_count: int
    top_products: list[ProductAggregate]
    companies: list[CompanyAggregate]
    daily_trend: list[DateAggregate]
    categories: list[CategoryTotal]
    unknown_products: list[ProductAggregate]
    insights: Insights
    velocity: VelocityView
    forecast: ForecastSummary
    validations: list[ForecastValidation]
    accuracy: BacktestMetrics


def build_velocity_view(batches: Sequence[DailyBatch], period: str = "week", limit: int = 10) -> VelocityView:
    metrics = calculate_velocity(batches)
    split = split_by_period(batches, period)
    changes = compare_velocity(split.current, split.previous)
    return VelocityView(
        period=period,
        metrics=metrics,
        distribution=velocity_distribution(metrics),
        average=average_velocity(metrics),
        gainers=top_gainers(changes, limit),
        losers=top_losers(changes, limit),
    )


def build_snapshot(
    batches: Sequence[DailyBatch],
    *,
    period: str = "week",
    top_n: int = FORECAST_TOP_N,
) -> DashboardSnapshot:
    """Compute every dashboard view from already enriched batches."""
    validations = backtest_all(batches, top_n)
    return DashboardSnapshot(
        total_sales=get_total_sales(batches),
        total_quantity=get_total_quantity(batches),
        product_count=len(aggregate_by_product(batches)),
        top_products=top_products(batches, 10),
        companies=aggregate_by_company(batches),
        daily_trend=aggregate_by_date(batches),
        categories=category_comparison(batches),
        unknown_products=unknown_products(batches),
        insights=compute_insights(batches),
        velocity=build_velocity_view(batches, period),
        forecast=generate_forecast_summary(batches, top_n),
        validations=validations,
        accuracy=summarize_accuracy(validations),
    )
