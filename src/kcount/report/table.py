"""Plain-text table rendering of count results.

Columns are left-aligned and padded to the widest cell plus two spaces;
the last column is not padded. Age columns show the time elapsed since
an object's creation, approximated the way ``kubectl get`` does.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from kcount.models import CountResult
from kcount.report.ranking import total_count

HEADERS = ["Cluster", "Namespace", "Label selector", "Kind", "Count"]
AGE_HEADERS = ["Newest", "Oldest"]
UNKNOWN_AGE = "<unknown>"
COLUMN_PADDING = 2


def human_duration(delta: timedelta) -> str:
    """Approximate a duration for humans (e.g. ``90s``, ``3m20s``, ``2d4h``)."""
    seconds = round(delta.total_seconds())
    # Tolerate up to one second of clock skew as "now"
    if seconds < -1:
        return "<invalid>"
    if seconds < 0:
        return "0s"
    if seconds < 60 * 2:
        return f"{seconds}s"

    minutes = seconds // 60
    if minutes < 10:
        s = seconds % 60
        return f"{minutes}m" if s == 0 else f"{minutes}m{s}s"
    if minutes < 60 * 3:
        return f"{minutes}m"

    hours = minutes // 60
    if hours < 8:
        m = minutes % 60
        return f"{hours}h" if m == 0 else f"{hours}h{m}m"
    if hours < 48:
        return f"{hours}h"
    if hours < 24 * 8:
        h = hours % 24
        return f"{hours // 24}d" if h == 0 else f"{hours // 24}d{h}h"
    if hours < 24 * 365 * 2:
        return f"{hours // 24}d"
    if hours < 24 * 365 * 8:
        dy = (hours // 24) % 365
        years = hours // 24 // 365
        return f"{years}y" if dy == 0 else f"{years}y{dy}d"
    return f"{hours // 24 // 365}y"


def format_age(ts: datetime | None, now: datetime) -> str:
    if ts is None:
        return UNKNOWN_AGE
    return human_duration(now - ts)


def _format_rows(rows: Sequence[Sequence[str]]) -> str:
    widths = [max(len(row[i]) for row in rows) for i in range(len(rows[0]))]
    lines = []
    for row in rows:
        cells = [
            f"{cell:<{widths[i] + COLUMN_PADDING}}" for i, cell in enumerate(row[:-1])
        ]
        cells.append(row[-1])
        lines.append("".join(cells))
    return "\n".join(lines) + "\n"


def render_table(
    results: Sequence[CountResult],
    show_age: bool = False,
    now: datetime | None = None,
) -> str:
    """Render results as an aligned table with a trailing total row.

    Rows appear in the order given. Returns an empty string for no results.
    """
    if not results:
        return ""
    now = now or datetime.now(tz=UTC)

    headers = HEADERS + (AGE_HEADERS if show_age else [])
    rows: list[list[str]] = [headers, ["-" * len(h) for h in headers]]
    for r in results:
        row = [r.cluster, r.namespace, r.label_selector, r.kind, str(r.count)]
        if show_age:
            row += [format_age(r.newest, now), format_age(r.oldest, now)]
        rows.append(row)

    total = ["", "", "", "Total", str(total_count(results))]
    if show_age:
        total += ["", ""]
    rows.append(total)

    return _format_rows(rows)
