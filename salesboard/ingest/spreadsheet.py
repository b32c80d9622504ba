"""Daily sales extract loading."""

from __future__ import annotations

import asyncio
import logging
import math
import os
import pathlib
from collections import Counter
from typing import Any, Iterable, Sequence

import pandas as pd

from salesboard.errors import SpreadsheetError
from salesboard.ingest.models import Category, DailyBatch, FileDescriptor, SalesRecord

logger = logging.getLogger(__name__)

LOAD_CONCURRENCY = int(os.environ.get("LOAD_CONCURRENCY", 8))
NUMERIC_COLUMNS = ("QTY", "TAXBLEAMT", "GST")


def read_extract(path: pathlib.Path | str, category: Category, date: str) -> DailyBatch:
    """Read the first sheet of an extract into a batch with precomputed totals."""
    try:
        frame = pd.read_excel(path, sheet_name=0)
    except Exception as exc:
        raise SpreadsheetError(f"Could not read {path}: {exc}") from exc
    return DailyBatch.from_records(date, category, records_from_frame(frame))


def records_from_frame(frame: pd.DataFrame) -> list[SalesRecord]:
    frame = frame.copy()
    for column in NUMERIC_COLUMNS:
        if column in frame:
            frame[column] = pd.to_numeric(frame[column], errors="coerce").fillna(0.0)
        else:
            frame[column] = 0.0
    for column in ("HSNCODE", "ITNAME"):
        if column not in frame:
            frame[column] = None
    return [
        SalesRecord(
            hsn_code=_as_text(row.HSNCODE),
            item_name=_as_text(row.ITNAME),
            quantity=float(row.QTY),
            taxable_amount=float(row.TAXBLEAMT),
            gst=float(row.GST),
        )
        for row in frame.itertuples(index=False)
    ]


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value)


async def load_batches(
    descriptors: Sequence[FileDescriptor],
    *,
    base_dir: pathlib.Path | None = None,
    concurrency: int = LOAD_CONCURRENCY,
) -> list[DailyBatch]:
    """Load every extract concurrently, skipping the ones that fail."""
    semaphore = asyncio.Semaphore(concurrency)
    loop = asyncio.get_running_loop()
    logger.info("Loading %s data files from manifest", len(descriptors))

    async def _load(descriptor: FileDescriptor) -> DailyBatch | None:
        path = pathlib.Path(descriptor.path)
        if base_dir is not None and not path.is_absolute():
            path = base_dir / path
        async with semaphore:
            try:
                return await loop.run_in_executor(
                    None, read_extract, path, descriptor.category, descriptor.date
                )
            except SpreadsheetError as exc:
                logger.warning("Failed to load %s: %s", descriptor.filename, exc)
                return None

    results = await asyncio.gather(*(_load(d) for d in descriptors))
    batches = [batch for batch in results if batch is not None]
    _warn_duplicates(batches)
    logger.info("Loaded %s of %s files", len(batches), len(descriptors))
    return batches


def _warn_duplicates(batches: Iterable[DailyBatch]) -> None:
    counts = Counter((b.date, b.category) for b in batches)
    for (date, category), count in sorted(counts.items()):
        if count > 1:
            logger.warning("%s %s loaded %s times; totals will double count", date, category, count)
