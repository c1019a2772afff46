"""Ordering and tabular rendering of count results."""

from kcount.report.ranking import sort_results, total_count
from kcount.report.table import human_duration, render_table

__all__ = [
    "human_duration",
    "render_table",
    "sort_results",
    "total_count",
]
