from datetime import date, timedelta

import pytest

from salesboard.ingest.models import DailyBatch, SalesRecord


def record(name, qty, amount, company=None, hsn="3808", gst=18.0):
    return SalesRecord(
        hsn_code=hsn,
        item_name=name,
        quantity=qty,
        taxable_amount=amount,
        gst=gst,
        company=company,
    )


def batch(day, records, category="PS"):
    return DailyBatch.from_records(day, category, records)


def iso_days(start, count):
    first = date.fromisoformat(start)
    return [(first + timedelta(days=offset)).isoformat() for offset in range(count)]


@pytest.fixture()
def scenario_batches():
    return [
        batch("2025-12-01", [record("A", 10, 1000), record("B", 5, 500)]),
        batch("2025-12-02", [record("A", 20, 2000)]),
    ]


@pytest.fixture()
def mixed_batches():
    return [
        batch(
            "2025-12-01",
            [
                record("Amistar", 4, 4000, company="Syngenta"),
                record("Urea", 50, 13000),
                record("Karate", 2, 900, company="Syngenta"),
            ],
        ),
        batch("2025-12-01", [record("DAP", 20, 27000, company="Fact")], category="FS"),
        batch(
            "2025-12-03",
            [
                record("Amistar", 1, 1000, company="Syngenta"),
                record("Coragen", 3, 5400, company="FMC"),
                record("Urea", 10, 2600),
            ],
        ),
        batch("2025-12-03", [record("DAP", 5, 6750, company="Fact")], category="FS"),
    ]


@pytest.fixture()
def month_batches():
    """Forty contiguous days; Alpha sells every day, Beta every other day."""
    batches = []
    for index, day in enumerate(iso_days("2025-11-01", 40)):
        rows = [record("Alpha", 10 + index % 3, 1000 + 100 * (index % 3), company="Syngenta")]
        if index % 2 == 0:
            rows.append(record("Beta", 4, 200, company="Adama"))
        batches.append(batch(day, rows))
    return batches
