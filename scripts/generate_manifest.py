"""Scan the data directory and write the data manifest."""

from __future__ import annotations

import sys

from dotenv import load_dotenv

from salesboard.errors import ManifestError
from salesboard.ingest.manifest import MANIFEST_PATH, SALES_DATA_DIR, scan_data_dir, write_manifest


def main() -> None:
    load_dotenv()
    try:
        descriptors = scan_data_dir(SALES_DATA_DIR)
    except ManifestError as exc:
        print(exc, file=sys.stderr)
        sys.exit(1)
    write_manifest(descriptors, MANIFEST_PATH)
    counts = {"PS": 0, "FS": 0}
    for descriptor in descriptors:
        counts[descriptor.category] += 1
    print(f"Total: {counts['PS']} PS files and {counts['FS']} FS files")
    for descriptor in descriptors[:5]:
        print(f"  - {descriptor.path} ({descriptor.date})")


if __name__ == "__main__":
    main()
