"""Refresh loop — keep the gauges current in daemon mode.

Each cycle runs a full fan-out/fan-in count across all clusters, then
updates the exporter, then sleeps. Cycles never overlap.

Usage::

    exporter = MetricsExporter()
    exporter.serve()
    RefreshLoop(clusters, [Kind.POD], exporter).run()  # runs forever
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence

from kcount.counter.counter import DEFAULT_TIMEOUT
from kcount.counter.dispatcher import count_across_clusters
from kcount.counter.lister import ObjectLister
from kcount.metrics.exporter import MetricsExporter
from kcount.models import ClusterContext, CountResult, Kind

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 2.0  # seconds between cycles


class RefreshLoop:
    """Periodically recount objects and overwrite the exported gauges."""

    def __init__(
        self,
        clusters: Sequence[ClusterContext],
        kinds: Sequence[Kind | str],
        exporter: MetricsExporter,
        label_selector: str = "",
        track_age: bool = False,
        interval: float = DEFAULT_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
        lister: ObjectLister | None = None,
        _sleep: Callable[[float], None] | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._clusters = list(clusters)
        self._kinds = list(kinds)
        self._exporter = exporter
        self._label_selector = label_selector
        self._track_age = track_age
        self._interval = interval
        self._timeout = timeout
        self._lister = lister
        self._sleep = _sleep or time.sleep
        self._cycles = 0

    @property
    def cycles(self) -> int:
        """Number of completed cycles."""
        return self._cycles

    def run_once(self) -> list[CountResult]:
        """Run one count across all clusters and update the gauges."""
        results = count_across_clusters(
            self._clusters,
            self._kinds,
            self._label_selector,
            timeout=self._timeout,
            lister=self._lister,
        )
        applied = self._exporter.update(results, track_age=self._track_age)
        self._cycles += 1
        logger.debug("cycle %d: updated %d label sets", self._cycles, applied)
        return results

    def run(self, max_cycles: int | None = None) -> None:
        """Loop forever, or for *max_cycles* cycles when given."""
        while max_cycles is None or self._cycles < max_cycles:
            try:
                self.run_once()
            except Exception:
                logger.exception("refresh cycle failed")
                self._cycles += 1
            if max_cycles is not None and self._cycles >= max_cycles:
                break
            self._sleep(self._interval)
