"""kcount CLI — count Kubernetes objects across clusters.

Usage:
    kcount [OPTIONS] [KUBECONFIG]...

Without ``--daemon`` prints a table of counts and exits. With ``--daemon``
serves Prometheus gauges at ``:2112/metrics`` and refreshes them forever.

Kubeconfigs come from the positional arguments, else from ``kubeconfigs``
in ``kcount.yaml``, else from ``$KUBECONFIG``. The in-cluster service
account is always added when running inside a pod.
"""

from __future__ import annotations

import logging
import sys

import click

from kcount import __version__
from kcount.clusters.resolver import (
    ClusterResolutionError,
    kubeconfigs_from_env,
    resolve_clusters,
)
from kcount.config import ConfigError, KcountConfig, load_config
from kcount.counter.dispatcher import count_across_clusters
from kcount.metrics.exporter import MetricsExporter
from kcount.metrics.refresh import RefreshLoop
from kcount.models import ClusterContext, Kind
from kcount.report.ranking import sort_results
from kcount.report.table import render_table

logger = logging.getLogger(__name__)

# --- Defaults ---

DEFAULT_KINDS = [Kind.POD]
CLI_LOG_FORMAT = "kcount: %(message)s"
DAEMON_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _setup_logging(daemon: bool, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=DAEMON_LOG_FORMAT if daemon else CLI_LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )


def _resolve_cfg(path: str | None) -> KcountConfig:
    """Load an explicit config (errors are fatal) or auto-discover one."""
    if path is not None:
        try:
            return load_config(path)
        except (FileNotFoundError, ConfigError) as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
    try:
        return load_config()
    except ConfigError as e:
        logger.warning("ignoring config file: %s", e)
        return KcountConfig()


def _parse_kinds(
    ctx: click.Context, param: click.Parameter, value: tuple[str, ...],
) -> list[Kind]:
    """Accept ``-k pod -k secret`` as well as ``-k pod,secret``."""
    kinds: list[Kind] = []
    for raw in value:
        for name in raw.split(","):
            name = name.strip().lower()
            if not name:
                continue
            try:
                kind = Kind(name)
            except ValueError:
                choices = ", ".join(k.value for k in Kind)
                raise click.BadParameter(
                    f"unsupported kind {name!r} (choose from {choices})"
                ) from None
            if kind not in kinds:
                kinds.append(kind)
    return kinds


@click.command()
@click.argument("kubeconfigs", nargs=-1, type=click.Path(dir_okay=False))
@click.option(
    "-l", "--selector", "label_selector", default=None,
    help="Label selector (e.g. env=prod)",
)
@click.option(
    "-k", "--kind", "kinds", multiple=True, callback=_parse_kinds,
    help="Object kind, repeatable or comma-separated (default pod)",
)
@click.option("-a", "--age", is_flag=True, help="Show age of newest and oldest objects")
@click.option(
    "-A", "--all-namespaces", is_flag=True,
    help="Count objects in all namespaces",
)
@click.option("-n", "--namespace", default=None, help="Namespace to count objects in")
@click.option(
    "-d", "--daemon", is_flag=True,
    help="Run as daemon exposing Prometheus metrics",
)
@click.option(
    "--port", type=click.IntRange(1, 65535), default=None,
    help="Metrics port (daemon mode)",
)
@click.option(
    "--interval", type=float, default=None,
    help="Seconds between refreshes (daemon mode)",
)
@click.option("--timeout", type=float, default=None, help="API call timeout in seconds")
@click.option(
    "-c", "--config", "config_path", default=None,
    help="Path to kcount.yaml (default: auto-discover)",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.version_option(version=__version__)
def cli(
    kubeconfigs: tuple[str, ...],
    label_selector: str | None,
    kinds: list[Kind],
    age: bool,
    all_namespaces: bool,
    namespace: str | None,
    daemon: bool,
    port: int | None,
    interval: float | None,
    timeout: float | None,
    config_path: str | None,
    verbose: bool,
) -> None:
    """Count Kubernetes objects across clusters."""
    _setup_logging(daemon, verbose)
    cfg = _resolve_cfg(config_path)

    label_selector = label_selector if label_selector is not None else (
        cfg.label_selector or ""
    )
    kinds = kinds or list(cfg.kinds) or list(DEFAULT_KINDS)
    age = age or cfg.age
    all_namespaces = all_namespaces or cfg.all_namespaces
    namespace = namespace or cfg.namespace
    timeout = timeout if timeout is not None else cfg.timeout
    if timeout <= 0:
        click.echo("Error: --timeout must be positive", err=True)
        sys.exit(1)

    paths = list(kubeconfigs) or cfg.kubeconfigs or kubeconfigs_from_env()
    try:
        clusters = resolve_clusters(paths, all_namespaces, namespace)
    except ClusterResolutionError as e:
        click.echo(f"Error: getting cluster configs: {e}", err=True)
        sys.exit(1)

    if not clusters:
        click.echo(
            "Error: run in cluster, set KUBECONFIG or supply at least one kubeconfig",
            err=True,
        )
        sys.exit(1)

    if daemon:
        _run_daemon(
            clusters, kinds, label_selector, age, timeout,
            port if port is not None else cfg.port,
            interval if interval is not None else cfg.interval,
            cfg.metrics_addr,
        )
        return

    results = count_across_clusters(clusters, kinds, label_selector, timeout=timeout)
    click.echo(render_table(sort_results(results), show_age=age), nl=False)


def _run_daemon(
    clusters: list[ClusterContext],
    kinds: list[Kind],
    label_selector: str,
    age: bool,
    timeout: float,
    port: int,
    interval: float,
    addr: str,
) -> None:
    if interval <= 0:
        click.echo("Error: --interval must be positive", err=True)
        sys.exit(1)

    exporter = MetricsExporter()
    try:
        exporter.serve(port=port, addr=addr)
    except (OSError, OverflowError) as e:
        click.echo(f"Error: serving metrics on {addr}:{port}: {e}", err=True)
        sys.exit(1)

    loop = RefreshLoop(
        clusters,
        kinds,
        exporter,
        label_selector=label_selector,
        track_age=age,
        interval=interval,
        timeout=timeout,
    )
    loop.run()