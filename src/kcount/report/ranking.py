"""Deterministic ordering of count results."""

from __future__ import annotations

from collections.abc import Iterable

from kcount.models import CountResult


def _rank_key(result: CountResult) -> tuple[int, str, str, str]:
    return (-result.count, result.kind, result.cluster, result.namespace)


def sort_results(results: Iterable[CountResult]) -> list[CountResult]:
    """Return results sorted by count (descending), then kind, cluster and
    namespace (ascending). The sort is stable for remaining ties."""
    return sorted(results, key=_rank_key)


def total_count(results: Iterable[CountResult]) -> int:
    return sum(r.count for r in results)
