"""Ingestion helpers."""

from __future__ import annotations

import os
import pathlib

import yaml

COMPANIES_PATH = pathlib.Path(
    os.environ.get("COMPANIES_PATH", pathlib.Path(__file__).with_name("companies.yml"))
)


def load_companies(path: pathlib.Path | None = None, limit: int | None = None) -> list[str]:
    data = yaml.safe_load((path or COMPANIES_PATH).read_text()) or []
    companies = [str(item) for item in data]
    if limit:
        return companies[:limit]
    return companies
