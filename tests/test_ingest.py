import json
import logging

import pandas as pd
import pytest

from salesboard.errors import ManifestError, SpreadsheetError
from salesboard.ingest import load_companies
from salesboard.ingest.manifest import (
    load_manifest,
    parse_extract_name,
    scan_data_dir,
    write_manifest,
)
from salesboard.ingest.models import FileDescriptor
from salesboard.ingest.spreadsheet import load_batches, read_extract, records_from_frame


def _write_extract(path, rows):
    path.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(rows).to_excel(path, index=False)


def test_parse_extract_name():
    assert parse_extract_name("Dec01.XLS", 2025) == "2025-12-01"
    assert parse_extract_name("Jan15.xls", 2025) == "2026-01-15"
    assert parse_extract_name("Oct9.XLS", 2025) == "2025-10-09"
    assert parse_extract_name("Summary.XLS", 2025) is None
    assert parse_extract_name("notes.txt", 2025) is None


def test_scan_and_manifest_round_trip(tmp_path):
    data_dir = tmp_path / "2025-26"
    for relative in ["Jan/PS/Jan02.XLS", "Dec/PS/Dec31.XLS", "Dec/FS/Dec30.XLS", "Dec/FS/readme.txt"]:
        path = data_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"")
    descriptors = scan_data_dir(data_dir, 2025)
    assert [(d.date, d.category) for d in descriptors] == [
        ("2025-12-30", "FS"),
        ("2025-12-31", "PS"),
        ("2026-01-02", "PS"),
    ]
    assert descriptors[0].path == "Dec/FS/Dec30.XLS"

    manifest = write_manifest(descriptors, tmp_path / "manifest.json")
    assert "generated" in json.loads(manifest.read_text())
    assert load_manifest(manifest) == descriptors


def test_scan_missing_dir(tmp_path):
    with pytest.raises(ManifestError):
        scan_data_dir(tmp_path / "missing")


def test_load_manifest_errors(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    with pytest.raises(ManifestError):
        load_manifest(broken)
    not_object = tmp_path / "list.json"
    not_object.write_text("[]")
    with pytest.raises(ManifestError):
        load_manifest(not_object)


def test_load_manifest_skips_bad_entries(tmp_path, caplog):
    manifest = tmp_path / "manifest.json"
    files = [
        {"path": "Dec/PS/Dec01.XLS", "type": "PS", "date": "2025-12-01"},
        {"path": "Dec/XX/Dec01.XLS", "type": "XX", "date": "2025-12-01"},
        {"path": "Feb/PS/Feb30.XLS", "type": "PS", "date": "2026-02-30"},
        {"type": "FS", "date": "2025-12-02"},
        {"path": "Dec/FS/Dec02.XLS", "category": "FS"},
        "Dec/FS/Dec03.XLS",
        {"path": "Dec/FS/Dec02.XLS", "category": "FS", "date": "2025-12-02"},
    ]
    manifest.write_text(json.dumps({"files": files}))
    with caplog.at_level(logging.WARNING):
        descriptors = load_manifest(manifest)
    assert [(d.path, d.category, d.date) for d in descriptors] == [
        ("Dec/PS/Dec01.XLS", "PS", "2025-12-01"),
        ("Dec/FS/Dec02.XLS", "FS", "2025-12-02"),
    ]
    assert caplog.text.count("Skipping manifest entry") == 5


def test_impossible_extract_dates_are_skipped(tmp_path, caplog):
    assert parse_extract_name("Feb30.XLS", 2025) is None
    assert parse_extract_name("Dec32.XLS", 2025) is None
    assert parse_extract_name("Dec2025.XLS", 2025) is None
    assert parse_extract_name("Feb29.XLS", 2027) == "2028-02-29"

    data_dir = tmp_path / "2025-26"
    for relative in ["Feb/PS/Feb28.XLS", "Feb/PS/Feb30.XLS"]:
        path = data_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"")
    with caplog.at_level(logging.WARNING):
        descriptors = scan_data_dir(data_dir, 2025)
    assert [d.date for d in descriptors] == ["2026-02-28"]
    assert "Skipping Feb30.XLS" in caplog.text


def test_load_manifest_accepts_type_key(tmp_path):
    manifest = tmp_path / "manifest.json"
    manifest.write_text(json.dumps({"files": [{"path": "Dec/PS/Dec01.XLS", "type": "PS", "date": "2025-12-01"}]}))
    assert load_manifest(manifest) == [
        FileDescriptor(path="Dec/PS/Dec01.XLS", category="PS", date="2025-12-01", filename="Dec01.XLS")
    ]


def test_records_from_frame_coerces_missing_values():
    frame = pd.DataFrame(
        {
            "HSNCODE": [3808.0, None],
            "ITNAME": ["Amistar", None],
            "QTY": ["4", "bad"],
            "TAXBLEAMT": [4000, None],
        }
    )
    first, second = records_from_frame(frame)
    assert (first.hsn_code, first.item_name, first.quantity, first.taxable_amount, first.gst) == (
        "3808",
        "Amistar",
        4.0,
        4000.0,
        0.0,
    )
    assert (second.hsn_code, second.item_name, second.quantity, second.taxable_amount) == ("", "", 0.0, 0.0)


def test_read_extract_totals(tmp_path):
    path = tmp_path / "Dec01.xlsx"
    _write_extract(
        path,
        {"HSNCODE": [3808, 3102], "ITNAME": ["Amistar", "Urea"], "QTY": [4, 50], "TAXBLEAMT": [4000, 13000], "GST": [18, 5]},
    )
    result = read_extract(path, "PS", "2025-12-01")
    assert result.total_amount == 17000
    assert result.total_quantity == 54
    assert [r.item_name for r in result.records] == ["Amistar", "Urea"]


def test_read_extract_failure(tmp_path):
    path = tmp_path / "Dec01.xlsx"
    path.write_text("not a workbook")
    with pytest.raises(SpreadsheetError):
        read_extract(path, "PS", "2025-12-01")


@pytest.mark.asyncio
async def test_load_batches_skips_failures(tmp_path, caplog):
    _write_extract(tmp_path / "Dec/PS/Dec01.xlsx", {"ITNAME": ["A"], "QTY": [1], "TAXBLEAMT": [10]})
    _write_extract(tmp_path / "Dec/FS/Dec01.xlsx", {"ITNAME": ["B"], "QTY": [2], "TAXBLEAMT": [20]})
    descriptors = [
        FileDescriptor("Dec/PS/Dec01.xlsx", "PS", "2025-12-01", "Dec01.xlsx"),
        FileDescriptor("Dec/PS/Dec02.xlsx", "PS", "2025-12-02", "Dec02.xlsx"),
        FileDescriptor("Dec/FS/Dec01.xlsx", "FS", "2025-12-01", "Dec01.xlsx"),
        FileDescriptor("Dec/FS/Dec01.xlsx", "FS", "2025-12-01", "Dec01.xlsx"),
    ]
    with caplog.at_level(logging.WARNING):
        batches = await load_batches(descriptors, base_dir=tmp_path, concurrency=2)
    assert [(b.date, b.category) for b in batches] == [
        ("2025-12-01", "PS"),
        ("2025-12-01", "FS"),
        ("2025-12-01", "FS"),
    ]
    assert "Failed to load Dec02.xlsx" in caplog.text
    assert "loaded 2 times" in caplog.text


@pytest.mark.asyncio
async def test_load_batches_empty():
    assert await load_batches([]) == []


def test_load_companies():
    companies = load_companies()
    assert "Syngenta" in companies
    assert len(load_companies(limit=3)) == 3
