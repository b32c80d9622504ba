"""List products that no company mapping claims."""

from __future__ import annotations

import asyncio

from dotenv import load_dotenv

from salesboard.jobs.refresh import load_dataset
from salesboard.logic.export_csv import export_unknown_products, unknown_product_occurrences
from salesboard.utils.dates import format_date, today_in_tz


async def main() -> None:
    load_dotenv()
    batches, _ = await load_dataset()
    all_products = {record.item_name for batch in batches for record in batch.records}
    occurrences = unknown_product_occurrences(batches)
    print(f"Total unique products in sales data: {len(all_products)}")
    print(f"Products with UNKNOWN company: {len(occurrences)}")
    for name, count in occurrences.most_common():
        print(f"{count:>4} | {name}")
    path = export_unknown_products(batches, format_date(today_in_tz()))
    print("Report saved to", path)


if __name__ == "__main__":
    asyncio.run(main())
