"""Company tagging of sales records."""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

from salesboard.ingest.models import DailyBatch, ProductKey, normalize_product_name

logger = logging.getLogger(__name__)


class CompanyResolver(Protocol):
    def resolve(self, key: ProductKey) -> str | None: ...


def enrich_with_companies(batches: Iterable[DailyBatch], resolver: CompanyResolver) -> int:
    """Tag records in place with their company and return how many matched.

    Unmatched records keep whatever company they already had, so running twice
    with the same resolver changes nothing.
    """
    matched = 0
    total = 0
    for batch in batches:
        for record in batch.records:
            total += 1
            company = resolver.resolve(normalize_product_name(record.item_name))
            if company:
                record.company = company
                matched += 1
    logger.info("Matched %s of %s records to a company", matched, total)
    return matched
