"""Aggregation dispatcher — count every (cluster, kind) pair concurrently.

One worker per pair runs on a thread pool sized to the number of pairs.
Workers never raise: each puts exactly one CountResult on a shared queue,
marked ``ok=False`` when counting failed. The coordinator drains exactly
one message per pair before returning, then drops and logs the failures.
"""

from __future__ import annotations

import logging
import queue
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor

from kcount.counter.counter import DEFAULT_TIMEOUT, count_objects
from kcount.counter.errors import CountError
from kcount.counter.lister import ObjectLister
from kcount.models import ClusterContext, CountRequest, CountResult, Kind

logger = logging.getLogger(__name__)

Counter = Callable[..., CountResult]


def build_requests(
    clusters: Sequence[ClusterContext],
    kinds: Sequence[Kind | str],
    label_selector: str = "",
) -> list[CountRequest]:
    """Return one request per (cluster, kind) pair, clusters outermost."""
    return [
        CountRequest(cluster=cluster, kind=kind, label_selector=label_selector)
        for cluster in clusters
        for kind in kinds
    ]


def _work(
    request: CountRequest,
    results: queue.Queue[CountResult],
    counter: Counter,
    timeout: float,
    lister: ObjectLister | None,
) -> None:
    try:
        result = counter(
            request.cluster,
            request.kind,
            request.label_selector,
            timeout=timeout,
            lister=lister,
        )
    except CountError as exc:
        result = CountResult.failed(request, str(exc))
    except Exception as exc:
        result = CountResult.failed(request, f"unexpected error: {exc}")
    results.put(result)


def count_across_clusters(
    clusters: Sequence[ClusterContext],
    kinds: Sequence[Kind | str],
    label_selector: str = "",
    timeout: float = DEFAULT_TIMEOUT,
    counter: Counter | None = None,
    lister: ObjectLister | None = None,
) -> list[CountResult]:
    """Count objects of every kind in every cluster.

    Returns the successful results in completion order. Failed pairs are
    logged as warnings and left out; they never abort sibling workers and
    are never raised to the caller.
    """
    requests = build_requests(clusters, kinds, label_selector)
    if not requests:
        return []

    counter = counter or count_objects
    results: queue.Queue[CountResult] = queue.Queue()

    with ThreadPoolExecutor(
        max_workers=len(requests), thread_name_prefix="kcount",
    ) as executor:
        for request in requests:
            executor.submit(_work, request, results, counter, timeout, lister)

        collected = [results.get() for _ in requests]

    aggregate: list[CountResult] = []
    for result in collected:
        if result.ok:
            aggregate.append(result)
        else:
            logger.warning(
                "counting %s objects in cluster %s: %s",
                result.kind, result.cluster, result.error,
            )

    logger.debug(
        "counted %d of %d (cluster, kind) pairs", len(aggregate), len(requests),
    )
    return aggregate
