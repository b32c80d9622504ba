"""Data manifest discovery and persistence.

Daily extracts live under ``<data dir>/<Month>/<PS|FS>/<Mon><DD>.XLS``. The month
folder and the file name carry no year, so the year is inferred from the fiscal
year: October to December belong to the starting year, January onwards to the next.
"""

from __future__ import annotations

import json
import logging
import os
import pathlib
import re
from dataclasses import asdict
from datetime import date
from typing import Iterable

from salesboard.errors import ManifestError
from salesboard.ingest.models import CATEGORIES, FileDescriptor
from salesboard.utils.dates import now_in_tz

logger = logging.getLogger(__name__)

SALES_DATA_DIR = pathlib.Path(os.environ.get("SALES_DATA_DIR", "data/2025-26"))
MANIFEST_PATH = pathlib.Path(os.environ.get("SALES_MANIFEST_PATH", "data/data-manifest.json"))
FISCAL_YEAR_START = int(os.environ.get("FISCAL_YEAR_START", 2025))

FILENAME_RE = re.compile(r"([A-Za-z]+)(\d+)")
EXTENSIONS = {".xls", ".xlsx"}
MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
START_YEAR_MONTHS = {10, 11, 12}


def year_for_month(month: int, fiscal_year_start: int = FISCAL_YEAR_START) -> int:
    if month in START_YEAR_MONTHS:
        return fiscal_year_start
    return fiscal_year_start + 1


def parse_extract_name(filename: str, fiscal_year_start: int = FISCAL_YEAR_START) -> str | None:
    """Turn ``Dec01.XLS`` into ``2025-12-01``; None when the name does not match."""
    match = FILENAME_RE.search(pathlib.Path(filename).stem)
    if not match:
        return None
    month = MONTHS.get(match.group(1).lower())
    if month is None:
        return None
    try:
        day = date(year_for_month(month, fiscal_year_start), month, int(match.group(2)))
    except ValueError:
        logger.warning("Skipping %s: not a calendar date", filename)
        return None
    return day.isoformat()


def scan_data_dir(
    data_dir: pathlib.Path = SALES_DATA_DIR,
    fiscal_year_start: int = FISCAL_YEAR_START,
) -> list[FileDescriptor]:
    if not data_dir.is_dir():
        raise ManifestError(f"Data directory not found: {data_dir}")
    descriptors: list[FileDescriptor] = []
    month_dirs = sorted(p for p in data_dir.iterdir() if p.is_dir() and not p.name.startswith("."))
    for month_dir in month_dirs:
        for category in CATEGORIES:
            category_dir = month_dir / category
            if not category_dir.is_dir():
                continue
            found = 0
            for path in sorted(category_dir.iterdir()):
                if path.suffix.lower() not in EXTENSIONS:
                    continue
                extract_date = parse_extract_name(path.name, fiscal_year_start)
                if extract_date is None:
                    continue
                descriptors.append(
                    FileDescriptor(
                        path=path.relative_to(data_dir).as_posix(),
                        category=category,
                        date=extract_date,
                        filename=path.name,
                    )
                )
                found += 1
            logger.info("%s: %s %s files", month_dir.name, found, category)
    descriptors.sort(key=lambda d: d.date)
    return descriptors


def write_manifest(descriptors: Iterable[FileDescriptor], path: pathlib.Path = MANIFEST_PATH) -> pathlib.Path:
    files = [asdict(d) for d in descriptors]
    payload = {"generated": now_in_tz().isoformat(), "files": files}
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2))
    logger.info("Manifest with %s files saved to %s", len(files), path)
    return path


def load_manifest(path: pathlib.Path = MANIFEST_PATH) -> list[FileDescriptor]:
    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as exc:
        raise ManifestError(f"Could not read manifest {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestError(f"Manifest {path} is not an object")
    descriptors: list[FileDescriptor] = []
    for item in data.get("files", []):
        descriptor = _descriptor_from_entry(item)
        if descriptor is None:
            logger.warning("Skipping manifest entry %r in %s", item, path)
            continue
        descriptors.append(descriptor)
    return descriptors


def _descriptor_from_entry(item: object) -> FileDescriptor | None:
    if not isinstance(item, dict):
        return None
    category = item.get("type", item.get("category"))
    file_path = item.get("path")
    if category not in CATEGORIES or not isinstance(file_path, str) or not file_path:
        return None
    try:
        day = date.fromisoformat(item["date"])
    except (KeyError, TypeError, ValueError):
        return None
    return FileDescriptor(
        path=file_path,
        category=category,
        date=day.isoformat(),
        filename=item.get("filename") or pathlib.Path(file_path).name,
    )
