"""Prometheus gauges for object counts and ages.

Each MetricsExporter owns its own CollectorRegistry, so several exporters
(e.g. one per test) never collide on metric names. Gauges are addressed
by the label tuple (cluster, namespace, labelSelector, kind); a tuple that
disappears from later cycles keeps its last value.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from typing import Any
from wsgiref.simple_server import WSGIRequestHandler, make_server

from prometheus_client import CollectorRegistry, Gauge, make_wsgi_app
from prometheus_client.exposition import ThreadingWSGIServer

from kcount.models import CountResult

logger = logging.getLogger(__name__)

DEFAULT_PORT = 2112
DEFAULT_ADDR = "0.0.0.0"  # noqa: S104
METRICS_PATH = "/metrics"

LABELS = ["cluster", "namespace", "labelSelector", "kind"]

COUNT_METRIC = "objects_total"
NEWEST_METRIC = "objects_newest_created_seconds"
OLDEST_METRIC = "objects_oldest_created_seconds"


class _QuietHandler(WSGIRequestHandler):
    """Sends per-request access lines to the debug log instead of stderr."""

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug(format, *args)


def _metrics_only(app: Callable[..., Any]) -> Callable[..., Any]:
    """Wrap a WSGI app so it answers on ``METRICS_PATH`` and 404s elsewhere."""

    def serve_metrics(environ: dict[str, Any], start_response: Callable[..., Any]) -> Any:
        if environ.get("PATH_INFO") != METRICS_PATH:
            start_response("404 Not Found", [("Content-Type", "text/plain; charset=utf-8")])
            return [b"Not Found\n"]
        return app(environ, start_response)

    return serve_metrics


class MetricsExporter:
    """Holds the count/newest/oldest gauges and serves them over HTTP."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.count = Gauge(
            COUNT_METRIC,
            "Number of kubernetes objects",
            LABELS,
            registry=self.registry,
        )
        self.newest = Gauge(
            NEWEST_METRIC,
            "Creation time of the newest kubernetes object, in unix seconds",
            LABELS,
            registry=self.registry,
        )
        self.oldest = Gauge(
            OLDEST_METRIC,
            "Creation time of the oldest kubernetes object, in unix seconds",
            LABELS,
            registry=self.registry,
        )
        self._server: Any = None

    def update(self, results: Iterable[CountResult], track_age: bool = False) -> int:
        """Set gauges from *results*; returns how many results were applied.

        Failed results are skipped. Age gauges are only set when
        *track_age* is on and the timestamp is known.
        """
        applied = 0
        for r in results:
            if not r.ok:
                continue
            labels = r.key
            self.count.labels(*labels).set(r.count)
            if track_age:
                if r.newest is not None:
                    self.newest.labels(*labels).set(r.newest.timestamp())
                if r.oldest is not None:
                    self.oldest.labels(*labels).set(r.oldest.timestamp())
            applied += 1
        return applied

    def value(
        self,
        metric: str,
        cluster: str,
        namespace: str,
        label_selector: str,
        kind: str,
    ) -> float | None:
        """Read one sample back from the registry (None if never set)."""
        return self.registry.get_sample_value(
            metric,
            dict(zip(LABELS, (cluster, namespace, label_selector, kind), strict=True)),
        )

    def serve(self, port: int = DEFAULT_PORT, addr: str = DEFAULT_ADDR) -> int:
        """Serve the gauges at ``METRICS_PATH`` from a daemon thread.

        Returns the bound port, which differs from *port* only when *port*
        is 0. Other paths answer 404.
        """
        app = _metrics_only(make_wsgi_app(self.registry))
        server = make_server(addr, port, app, ThreadingWSGIServer, handler_class=_QuietHandler)
        thread = threading.Thread(
            target=server.serve_forever, name="kcount-metrics", daemon=True,
        )
        thread.start()
        self._server = server
        bound = server.server_port
        logger.info(
            "exposing Prometheus metrics at %s:%d%s", addr, bound, METRICS_PATH,
        )
        return bound

    def shutdown(self) -> None:
        """Stop the HTTP endpoint started by ``serve()``."""
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        self._server = None
