"""Project exceptions."""

from __future__ import annotations


class SalesboardError(RuntimeError):
    pass


class ManifestError(SalesboardError):
    pass


class SpreadsheetError(SalesboardError):
    pass
