"""FastAPI application serving dashboard views over the loaded sales data."""

from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from typing import Any

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from pydantic import BaseModel

from salesboard.ingest.companies import CompanyMapper
from salesboard.ingest.models import CATEGORIES, DailyBatch
from salesboard.jobs.refresh import load_dataset
from salesboard.logic.aggregation import (
    DATE_PRESETS,
    aggregate_by_date,
    available_dates,
    category_comparison,
    compute_insights,
    date_range_preset,
    filter_batches,
    get_total_quantity,
    get_total_sales,
    top_companies,
    top_products,
    unknown_products,
)
from salesboard.logic.dashboard import build_velocity_view
from salesboard.logic.export_csv import unknown_product_occurrences
from salesboard.logic.forecast import FORECAST_TOP_N, backtest_all, generate_forecast_summary, summarize_accuracy
from salesboard.logic.velocity import PERIOD_DAYS

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Dataset:
    batches: list[DailyBatch]
    mapper: CompanyMapper


@asynccontextmanager
async def lifespan(app: FastAPI):
    load_dotenv()
    batches, mapper = await load_dataset()
    app.state.dataset = Dataset(batches=batches, mapper=mapper)
    logger.info("Serving %s batches", len(batches))
    yield


app = FastAPI(title="Salesboard API", lifespan=lifespan)


class SummaryResponse(BaseModel):
    start: str | None
    end: str | None
    total_sales: float
    total_quantity: float
    dates: list[str]
    top_products: list[dict[str, Any]]
    top_companies: list[dict[str, Any]]
    daily_trend: list[dict[str, Any]]
    categories: list[dict[str, Any]]
    insights: dict[str, Any]


class VelocityResponse(BaseModel):
    period: str
    distribution: dict[str, int]
    average: float
    metrics: list[dict[str, Any]]
    gainers: list[dict[str, Any]]
    losers: list[dict[str, Any]]


class ForecastResponse(BaseModel):
    summary: dict[str, Any]
    validations: list[dict[str, Any]]
    accuracy: dict[str, float]


class CompaniesResponse(BaseModel):
    companies: list[str]
    total_products: int


class UnknownProductsResponse(BaseModel):
    rows: list[dict[str, Any]]


def get_dataset(request: Request) -> Dataset:
    dataset = getattr(request.app.state, "dataset", None)
    if dataset is None:
        raise HTTPException(status_code=503, detail="Data not loaded")
    return dataset


def _clean(value: Any) -> Any:
    """Replace nan with None so responses stay valid JSON."""
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, dict):
        return {k: _clean(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_clean(v) for v in value]
    return value


def _rows(items) -> list[dict[str, Any]]:
    return [_clean(asdict(item)) for item in items]


def _filtered(
    dataset: Dataset,
    category: str | None,
    start: str | None,
    end: str | None,
    company: str | None,
    preset: str,
) -> tuple[list[DailyBatch], str | None, str | None]:
    if category and category not in CATEGORIES:
        raise HTTPException(status_code=400, detail="Invalid category")
    if preset not in DATE_PRESETS:
        raise HTTPException(status_code=400, detail="Invalid preset")
    if preset != "ALL":
        start, end = date_range_preset(available_dates(dataset.batches), preset)
    batches = filter_batches(dataset.batches, category=category, start=start, end=end, company=company)
    return batches, start, end


@app.get("/summary", response_model=SummaryResponse)
async def summary(
    category: str | None = None,
    start: str | None = None,
    end: str | None = None,
    company: str | None = None,
    preset: str = "ALL",
    dataset: Dataset = Depends(get_dataset),
) -> SummaryResponse:
    batches, start, end = _filtered(dataset, category, start, end, company, preset)
    return SummaryResponse(
        start=start,
        end=end,
        total_sales=get_total_sales(batches),
        total_quantity=get_total_quantity(batches),
        dates=available_dates(batches),
        top_products=_rows(top_products(batches, 10)),
        top_companies=_rows(top_companies(batches, 10)),
        daily_trend=_rows(aggregate_by_date(batches)),
        categories=_rows(category_comparison(batches)),
        insights=_clean(asdict(compute_insights(batches))),
    )


@app.get("/velocity", response_model=VelocityResponse)
async def velocity(
    period: str = "week",
    category: str | None = None,
    company: str | None = None,
    limit: int = Query(20, ge=1, le=500),
    dataset: Dataset = Depends(get_dataset),
) -> VelocityResponse:
    if period not in PERIOD_DAYS:
        raise HTTPException(status_code=400, detail="Invalid period")
    batches, _, _ = _filtered(dataset, category, None, None, company, "ALL")
    view = build_velocity_view(batches, period)
    return VelocityResponse(
        period=view.period,
        distribution=view.distribution,
        average=view.average,
        metrics=_rows(view.metrics[:limit]),
        gainers=_rows(view.gainers),
        losers=_rows(view.losers),
    )


@app.get("/forecast", response_model=ForecastResponse)
async def forecast(
    top_n: int = Query(FORECAST_TOP_N, ge=1, le=100),
    category: str | None = None,
    company: str | None = None,
    dataset: Dataset = Depends(get_dataset),
) -> ForecastResponse:
    batches, _, _ = _filtered(dataset, category, None, None, company, "ALL")
    validations = backtest_all(batches, top_n)
    return ForecastResponse(
        summary=_clean(asdict(generate_forecast_summary(batches, top_n))),
        validations=_rows(validations),
        accuracy=asdict(summarize_accuracy(validations)),
    )


@app.get("/companies", response_model=CompaniesResponse)
async def companies(dataset: Dataset = Depends(get_dataset)) -> CompaniesResponse:
    return CompaniesResponse(
        companies=dataset.mapper.list_companies(),
        total_products=dataset.mapper.stats()["total_products"],
    )


@app.get("/unknown-products", response_model=UnknownProductsResponse)
async def unknown(dataset: Dataset = Depends(get_dataset)) -> UnknownProductsResponse:
    occurrences = unknown_product_occurrences(dataset.batches)
    rows = []
    for product in unknown_products(dataset.batches):
        row = _clean(asdict(product))
        row["occurrences"] = occurrences.get(product.product_name, 0)
        rows.append(row)
    return UnknownProductsResponse(rows=rows)
