"""Product to company mapping built from per-company name lists."""

from __future__ import annotations

import asyncio
import logging
import os
import pathlib
from collections import defaultdict
from typing import Iterable

from salesboard.ingest.models import ProductKey, normalize_product_name

logger = logging.getLogger(__name__)

COMPANY_DATA_DIR = pathlib.Path(os.environ.get("COMPANY_DATA_DIR", "data/company-products"))
FILENAME_PATTERNS = ("{company}_Products.csv", "{company}Product_Names.csv")


class CompanyMapper:
    """Resolves normalized product names to the company that sells them."""

    def __init__(self) -> None:
        self._product_to_company: dict[ProductKey, str] = {}
        self._company_products: dict[str, set[ProductKey]] = defaultdict(set)

    async def load(
        self,
        companies: Iterable[str],
        company_dir: pathlib.Path = COMPANY_DATA_DIR,
    ) -> None:
        names = list(companies)
        loop = asyncio.get_running_loop()
        results = await asyncio.gather(
            *(loop.run_in_executor(None, _read_company_file, company_dir, name) for name in names),
            return_exceptions=True,
        )
        # Merge after every read completes so file order never matters mid-load.
        for name, products in zip(names, results):
            if isinstance(products, (OSError, UnicodeDecodeError)):
                logger.warning("Could not load products for %s: %s", name, products)
                continue
            if isinstance(products, BaseException):
                raise products
            if products is None:
                logger.warning("Could not load products for %s: no product file in %s", name, company_dir)
                continue
            self.add_products(name, products)
        logger.info(
            "Loaded %s product-company mappings from %s companies",
            len(self._product_to_company),
            len(names),
        )

    def add_products(self, company: str, products: Iterable[str]) -> None:
        for product in products:
            key = normalize_product_name(product)
            if not key:
                continue
            self._product_to_company[key] = company
            self._company_products[company].add(key)

    def resolve(self, key: ProductKey) -> str | None:
        return self._product_to_company.get(key)

    def company_for_product(self, product_name: str) -> str | None:
        return self.resolve(normalize_product_name(product_name))

    def products_for_company(self, company: str) -> list[ProductKey]:
        return sorted(self._company_products.get(company, ()))

    def list_companies(self) -> list[str]:
        return sorted(self._company_products)

    def stats(self) -> dict[str, int]:
        return {
            "total_products": len(self._product_to_company),
            "total_companies": len(self._company_products),
        }


def _read_company_file(company_dir: pathlib.Path, company: str) -> list[str] | None:
    for pattern in FILENAME_PATTERNS:
        path = company_dir / pattern.format(company=company)
        if not path.exists():
            continue
        lines = path.read_text(encoding="utf-8-sig").splitlines()
        # First line is the header.
        return [line.strip() for line in lines[1:] if line.strip()]
    return None
