"""Dashboard refresh job orchestration."""

from __future__ import annotations

import asyncio
import logging
import pathlib

from dotenv import load_dotenv

from salesboard.errors import ManifestError
from salesboard.ingest import load_companies
from salesboard.ingest.companies import COMPANY_DATA_DIR, CompanyMapper
from salesboard.ingest.manifest import MANIFEST_PATH, SALES_DATA_DIR, load_manifest, scan_data_dir, write_manifest
from salesboard.ingest.models import DailyBatch, FileDescriptor
from salesboard.ingest.spreadsheet import load_batches
from salesboard.logic.dashboard import DashboardSnapshot, build_snapshot
from salesboard.logic.enrichment import enrich_with_companies
from salesboard.logic.export_csv import export_product_summary, export_unknown_products
from salesboard.utils.dates import format_date, today_in_tz

logger = logging.getLogger(__name__)


def resolve_descriptors(
    manifest_path: pathlib.Path = MANIFEST_PATH,
    data_dir: pathlib.Path = SALES_DATA_DIR,
) -> list[FileDescriptor]:
    """Read the manifest, regenerating it from the data directory when missing."""
    if manifest_path.exists():
        return load_manifest(manifest_path)
    logger.info("Manifest %s not found, scanning %s", manifest_path, data_dir)
    descriptors = scan_data_dir(data_dir)
    write_manifest(descriptors, manifest_path)
    return descriptors


async def load_dataset(
    *,
    manifest_path: pathlib.Path = MANIFEST_PATH,
    data_dir: pathlib.Path = SALES_DATA_DIR,
    company_dir: pathlib.Path = COMPANY_DATA_DIR,
) -> tuple[list[DailyBatch], CompanyMapper]:
    """Load batches and the company mapping, then tag every record."""
    try:
        descriptors = resolve_descriptors(manifest_path, data_dir)
    except ManifestError as exc:
        logger.error("No data files available: %s", exc)
        descriptors = []

    mapper = CompanyMapper()
    _, batches = await asyncio.gather(
        mapper.load(load_companies(), company_dir),
        load_batches(descriptors, base_dir=data_dir),
    )
    # Aggregations read record.company, so enrichment runs before them.
    enrich_with_companies(batches, mapper)
    return batches, mapper


async def run_refresh(*, export: bool = True) -> DashboardSnapshot:
    load_dotenv()
    batches, mapper = await load_dataset()
    snapshot = build_snapshot(batches)
    logger.info(
        "Snapshot: %s batches, %s products, %s companies, sales %.2f",
        len(batches),
        snapshot.product_count,
        mapper.stats()["total_companies"],
        snapshot.total_sales,
    )
    for warning in snapshot.forecast.metadata.warnings:
        logger.warning(warning)
    if export:
        as_of = format_date(today_in_tz())
        export_product_summary(batches, snapshot.velocity.metrics, as_of)
        path = export_unknown_products(batches, as_of)
        logger.info("Unknown products report saved to %s", path)
    return snapshot


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    asyncio.run(run_refresh())
