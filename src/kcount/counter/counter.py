"""Resource counter — reduce one list call to a count and age bounds.

``count_objects()`` issues exactly one bounded list call for one kind in
one cluster and folds the returned metadata into a CountResult.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from kcount.counter.errors import ClusterConnectionError, UnsupportedKindError
from kcount.counter.lister import K8sObjectLister, ObjectLister
from kcount.models import ClusterContext, CountResult, Kind

DEFAULT_TIMEOUT = 5.0  # seconds, per list call


def summarize(items: Iterable[Any]) -> tuple[int, datetime | None, datetime | None]:
    """Return ``(count, newest, oldest)`` for a set of object metadata.

    The first timestamp seen seeds both bounds. Later timestamps replace
    ``newest`` only when strictly after it and ``oldest`` only when
    strictly before it, so on ties the first-seen object wins. Items
    without a creation timestamp are counted but not aged.
    """
    count = 0
    newest: datetime | None = None
    oldest: datetime | None = None
    for item in items:
        count += 1
        ts = getattr(item, "creation_timestamp", None)
        if ts is None:
            continue
        if newest is None or ts > newest:
            newest = ts
        if oldest is None or ts < oldest:
            oldest = ts
    return count, newest, oldest


def _to_kind(kind: Kind | str) -> Kind:
    try:
        return Kind(kind)
    except ValueError:
        raise UnsupportedKindError(f"unsupported kind: {kind}") from None


def count_objects(
    cluster: ClusterContext,
    kind: Kind | str,
    label_selector: str = "",
    timeout: float = DEFAULT_TIMEOUT,
    lister: ObjectLister | None = None,
) -> CountResult:
    """Count objects of *kind* in *cluster* matching *label_selector*.

    Raises:
        ValueError: If *timeout* is not positive.
        UnsupportedKindError: If *kind* is unknown. No call is made.
        ClusterConnectionError: If the list call fails.
    """
    if timeout <= 0:
        raise ValueError(f"timeout must be positive, got {timeout}")

    kind = _to_kind(kind)
    lister = lister or K8sObjectLister()
    supports = getattr(lister, "supports", None)
    if supports is not None and not supports(kind):
        raise UnsupportedKindError(f"unsupported kind: {kind}")

    try:
        items = lister.list_objects(cluster, kind, label_selector, timeout)
    except UnsupportedKindError:
        raise
    except Exception as exc:
        # Detect kubernetes ApiException by class name to keep the message short
        if type(exc).__name__ == "ApiException":
            msg = f"listing {kind} objects: API error ({exc.status}): {exc.reason}"
        else:
            msg = f"listing {kind} objects: {exc}"
        raise ClusterConnectionError(msg) from exc

    n, newest, oldest = summarize(items)
    return CountResult(
        cluster=cluster.name,
        namespace=cluster.namespace,
        kind=str(kind),
        label_selector=label_selector,
        count=n,
        newest=newest,
        oldest=oldest,
    )
