"""Short-horizon sales forecasting.

Forecasts are weighted moving averages over dense daily series: every date present
anywhere in the input appears in every product's series, zero-filled where the
product did not sell, so averages and deviations see the quiet days too.

The one-day forecast is the 7-day weighted moving average. The seven-day forecast
blends 7, 14 and 30 day windows by their confidence and multiplies the blended
daily rate by seven. Accuracy is estimated by holding out the last days of
history and scoring a single training-set prediction against each of them.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Iterable, Literal, Sequence

import numpy as np

from salesboard.ingest.models import DailyBatch
from salesboard.utils.dates import date_span, now_in_tz, shift_date

FORECAST_TOP_N = int(os.environ.get("FORECAST_TOP_N", 10))
ONE_DAY_WINDOW = 7
ENSEMBLE_WINDOWS = (7, 14, 30)
BACKTEST_DAYS = 7
MIN_HISTORY_DAYS = 30

DataQuality = Literal["excellent", "good", "fair", "poor"]
QUALITY_BANDS: tuple[tuple[float, DataQuality], ...] = (
    (5.0, "excellent"),
    (15.0, "good"),
    (30.0, "fair"),
)


@dataclass(slots=True)
class DailyPoint:
    date: str
    quantity: float
    revenue: float


@dataclass(slots=True)
class ProductTimeSeries:
    product_name: str
    company: str | None
    daily: list[DailyPoint]


@dataclass(slots=True)
class Estimate:
    value: float
    confidence: int


@dataclass(slots=True)
class ForecastPoint:
    revenue: float
    quantity: float
    confidence: int
    target_date: str


@dataclass(slots=True)
class HistoricalMetrics:
    avg_daily_revenue: float
    avg_daily_quantity: float
    revenue_std: float
    quantity_std: float
    days_of_data: int


@dataclass(slots=True)
class ProductForecast:
    product_name: str
    company: str | None
    one_day: ForecastPoint
    seven_day: ForecastPoint
    historical: HistoricalMetrics


@dataclass(slots=True)
class ForecastTotal:
    revenue: float
    quantity: float
    avg_confidence: int


@dataclass(slots=True)
class ForecastMetadata:
    data_quality: DataQuality
    total_historical_days: int
    missing_dates: list[str]
    warnings: list[str]


@dataclass(slots=True)
class ForecastSummary:
    generated_at: str
    one_day_target: str | None
    seven_day_target: str | None
    one_day: ForecastTotal
    seven_day: ForecastTotal
    product_forecasts: list[ProductForecast]
    metadata: ForecastMetadata


@dataclass(slots=True)
class BacktestMetrics:
    mae: float
    mape: float
    rmse: float


@dataclass(slots=True)
class ForecastValidation:
    product_name: str
    metrics: BacktestMetrics
    test_period_days: int


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def _round2(value: float) -> float:
    return round_half_up(value, 2)


def prepare_time_series(batches: Sequence[DailyBatch], top_n: int = FORECAST_TOP_N) -> list[ProductTimeSeries]:
    """Dense daily series for the ``top_n`` products by revenue, largest first."""
    by_product: dict[str, dict[str, DailyPoint]] = {}
    companies: dict[str, str | None] = {}
    revenue: dict[str, float] = {}
    for batch in batches:
        for record in batch.records:
            days = by_product.setdefault(record.item_name, {})
            if record.company or record.item_name not in companies:
                companies[record.item_name] = record.company
            point = days.setdefault(batch.date, DailyPoint(batch.date, 0.0, 0.0))
            point.quantity += record.quantity
            point.revenue += record.taxable_amount
            revenue[record.item_name] = revenue.get(record.item_name, 0.0) + record.taxable_amount

    ranked = sorted(revenue, key=lambda name: revenue[name], reverse=True)[:top_n]
    all_dates = sorted({batch.date for batch in batches})
    series: list[ProductTimeSeries] = []
    for name in ranked:
        days = by_product[name]
        daily = [
            DailyPoint(date, days[date].quantity, days[date].revenue) if date in days else DailyPoint(date, 0.0, 0.0)
            for date in all_dates
        ]
        series.append(ProductTimeSeries(product_name=name, company=companies[name], daily=daily))
    return series


def find_missing_dates(dates: Sequence[str]) -> list[str]:
    """Calendar days between the first and last date that have no data."""
    if len(dates) < 2:
        return []
    ordered = sorted(dates)
    present = set(ordered)
    return [day for day in date_span(ordered[0], ordered[-1]) if day not in present]


def moving_average(values: Sequence[float], window: int = ONE_DAY_WINDOW) -> Estimate:
    """Recency-weighted mean of the last ``window`` values with a 0-100 confidence."""
    effective = min(window, len(values))
    if effective == 0:
        return Estimate(value=0.0, confidence=0)
    recent = np.asarray(values[-effective:], dtype=float)
    weights = np.arange(1, effective + 1, dtype=float)
    value = float(np.dot(recent, weights) / weights.sum())

    data_quality = min(effective / window, 1.0) * 100
    mean = float(recent.mean())
    cv = float(recent.std()) / mean if mean > 0 else 1.0
    variability = max(0.0, (1 - cv) * 100)
    confidence = min((data_quality + variability) / 2, 100.0)
    return Estimate(value=value, confidence=int(round_half_up(confidence)))


def ensemble(values: Sequence[float]) -> Estimate:
    estimates = [moving_average(values, window) for window in ENSEMBLE_WINDOWS]
    total_confidence = sum(e.confidence for e in estimates)
    if total_confidence == 0:
        return Estimate(value=0.0, confidence=0)
    value = sum(e.value * e.confidence for e in estimates) / total_confidence
    return Estimate(value=value, confidence=int(round_half_up(total_confidence / len(estimates))))


def forecast_product(series: ProductTimeSeries) -> ProductForecast:
    revenues = np.array([p.revenue for p in series.daily], dtype=float)
    quantities = np.array([p.quantity for p in series.daily], dtype=float)
    last_date = series.daily[-1].date

    one_day_revenue = moving_average(revenues, ONE_DAY_WINDOW)
    one_day_quantity = moving_average(quantities, ONE_DAY_WINDOW)
    week_revenue = ensemble(revenues)
    week_quantity = ensemble(quantities)

    return ProductForecast(
        product_name=series.product_name,
        company=series.company,
        one_day=ForecastPoint(
            revenue=_round2(one_day_revenue.value),
            quantity=_round2(one_day_quantity.value),
            confidence=min(one_day_revenue.confidence, one_day_quantity.confidence),
            target_date=shift_date(last_date, 1),
        ),
        seven_day=ForecastPoint(
            revenue=_round2(week_revenue.value * 7),
            quantity=_round2(week_quantity.value * 7),
            confidence=min(week_revenue.confidence, week_quantity.confidence),
            target_date=shift_date(last_date, 7),
        ),
        historical=HistoricalMetrics(
            avg_daily_revenue=_round2(float(revenues.mean())),
            avg_daily_quantity=_round2(float(quantities.mean())),
            revenue_std=_round2(float(revenues.std())),
            quantity_std=_round2(float(quantities.std())),
            days_of_data=len(series.daily),
        ),
    )


def assess_data_quality(dates: Sequence[str], missing: Sequence[str]) -> DataQuality:
    if not dates:
        return "poor"
    span_days = len(set(dates)) + len(missing)
    missing_percent = len(missing) / span_days * 100
    for limit, label in QUALITY_BANDS:
        if missing_percent < limit:
            return label
    return "poor"


def _total(points: Sequence[ForecastPoint]) -> ForecastTotal:
    if not points:
        return ForecastTotal(revenue=0.0, quantity=0.0, avg_confidence=0)
    return ForecastTotal(
        revenue=_round2(sum(p.revenue for p in points)),
        quantity=_round2(sum(p.quantity for p in points)),
        avg_confidence=int(round_half_up(sum(p.confidence for p in points) / len(points))),
    )


def generate_forecast_summary(batches: Sequence[DailyBatch], top_n: int = FORECAST_TOP_N) -> ForecastSummary:
    forecasts = [forecast_product(series) for series in prepare_time_series(batches, top_n)]
    dates = sorted({batch.date for batch in batches})
    missing = find_missing_dates(dates)

    warnings: list[str] = []
    if len(dates) < MIN_HISTORY_DAYS:
        warnings.append("Limited historical data (< 30 days). Forecasts may be less accurate.")
    if missing:
        warnings.append(f"{len(missing)} dates missing from historical data.")

    first = forecasts[0] if forecasts else None
    return ForecastSummary(
        generated_at=now_in_tz().isoformat(),
        one_day_target=first.one_day.target_date if first else None,
        seven_day_target=first.seven_day.target_date if first else None,
        one_day=_total([f.one_day for f in forecasts]),
        seven_day=_total([f.seven_day for f in forecasts]),
        product_forecasts=forecasts,
        metadata=ForecastMetadata(
            data_quality=assess_data_quality(dates, missing),
            total_historical_days=len(dates),
            missing_dates=missing,
            warnings=warnings,
        ),
    )


def backtest(series: ProductTimeSeries, test_days: int = BACKTEST_DAYS) -> ForecastValidation:
    """Score the training set's 7-day weighted average against the held-out days."""
    if test_days <= 0 or len(series.daily) < test_days + ONE_DAY_WINDOW:
        return ForecastValidation(
            product_name=series.product_name,
            metrics=BacktestMetrics(mae=0.0, mape=0.0, rmse=0.0),
            test_period_days=0,
        )
    train = [p.revenue for p in series.daily[:-test_days]]
    actual = np.array([p.revenue for p in series.daily[-test_days:]], dtype=float)
    prediction = moving_average(train, ONE_DAY_WINDOW).value

    errors = np.abs(actual - prediction)
    sold = actual > 0
    mape = float((errors[sold] / actual[sold] * 100).mean()) if sold.any() else 0.0
    return ForecastValidation(
        product_name=series.product_name,
        metrics=BacktestMetrics(
            mae=_round2(float(errors.mean())),
            mape=_round2(mape),
            rmse=_round2(math.sqrt(float((errors**2).mean()))),
        ),
        test_period_days=test_days,
    )


def backtest_all(batches: Sequence[DailyBatch], top_n: int = FORECAST_TOP_N) -> list[ForecastValidation]:
    return [backtest(series, BACKTEST_DAYS) for series in prepare_time_series(batches, top_n)]


def summarize_accuracy(validations: Iterable[ForecastValidation]) -> BacktestMetrics:
    """Mean metrics over the products that had enough history to test."""
    tested = [v.metrics for v in validations if v.test_period_days > 0]
    if not tested:
        return BacktestMetrics(mae=0.0, mape=0.0, rmse=0.0)
    return BacktestMetrics(
        mae=_round2(sum(m.mae for m in tested) / len(tested)),
        mape=_round2(sum(m.mape for m in tested) / len(tested)),
        rmse=_round2(sum(m.rmse for m in tested) / len(tested)),
    )
