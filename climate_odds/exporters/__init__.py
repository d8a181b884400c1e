"""Tabular exporters."""

from .table import COLUMNS, TableExporter, export_table, records_to_frame

__all__ = [
    "COLUMNS",
    "TableExporter",
    "export_table",
    "records_to_frame",
]
