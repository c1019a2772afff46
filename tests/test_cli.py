"""Tests for the kcount CLI."""

from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from conftest import BASE_TIME, FakeLister, cluster, make_items
from kcount.cli.main import cli
from kcount.clusters.resolver import ClusterResolutionError
from kcount.counter.dispatcher import count_across_clusters
from kcount.metrics.exporter import COUNT_METRIC, MetricsExporter
from kcount.metrics.refresh import RefreshLoop
from kcount.models import CountResult, Kind


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch):
    """Keep config auto-discovery and $KUBECONFIG away from the real environment."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("KUBECONFIG", raising=False)


def _result(cluster_name: str, count: int, kind: str = "pod", **kw) -> CountResult:
    return CountResult(
        cluster=cluster_name, namespace="default", kind=kind, count=count, **kw,
    )


# --- One-shot mode ---


class TestOneShot:
    @patch("kcount.cli.main.count_across_clusters")
    @patch("kcount.cli.main.resolve_clusters")
    def test_prints_sorted_table(self, mock_resolve, mock_count, runner: CliRunner):
        mock_resolve.return_value = [cluster("a"), cluster("b")]
        mock_count.return_value = [_result("b", 5), _result("a", 5), _result("c", 3)]

        result = runner.invoke(cli, ["a.yaml", "b.yaml"])

        assert result.exit_code == 0, result.output
        lines = result.stdout.splitlines()
        assert lines[0].split()[0] == "Cluster"
        assert [line.split()[0] for line in lines[2:5]] == ["a", "b", "c"]
        assert lines[-1].split() == ["Total", "13"]
        mock_resolve.assert_called_once_with(["a.yaml", "b.yaml"], False, None)

    @patch("kcount.cli.main.count_across_clusters")
    @patch("kcount.cli.main.resolve_clusters")
    def test_default_kind_and_selector(self, mock_resolve, mock_count, runner: CliRunner):
        mock_resolve.return_value = [cluster("a")]
        mock_count.return_value = []

        result = runner.invoke(cli, ["a.yaml"])

        assert result.exit_code == 0
        assert result.stdout == ""
        args, kwargs = mock_count.call_args
        assert args[1] == [Kind.POD]
        assert args[2] == ""
        assert kwargs["timeout"] == 5.0

    @patch("kcount.cli.main.count_across_clusters", return_value=[])
    @patch("kcount.cli.main.resolve_clusters")
    def test_kinds_repeatable_and_comma_separated(
        self, mock_resolve, mock_count, runner: CliRunner,
    ):
        mock_resolve.return_value = [cluster("a")]
        result = runner.invoke(
            cli, ["-k", "pod,deployment", "-k", "Secret", "-k", "pod", "a.yaml"],
        )
        assert result.exit_code == 0
        assert mock_count.call_args.args[1] == [Kind.POD, Kind.DEPLOYMENT, Kind.SECRET]

    def test_unknown_kind_rejected(self, runner: CliRunner):
        result = runner.invoke(cli, ["-k", "widget", "a.yaml"])
        assert result.exit_code == 2
        assert "unsupported kind 'widget'" in result.stderr

    @patch("kcount.cli.main.count_across_clusters", return_value=[])
    @patch("kcount.cli.main.resolve_clusters")
    def test_flags_forwarded(self, mock_resolve, mock_count, runner: CliRunner):
        mock_resolve.return_value = [cluster("a")]
        result = runner.invoke(
            cli, ["-l", "env=prod", "-n", "web", "--timeout", "2", "a.yaml"],
        )
        assert result.exit_code == 0
        mock_resolve.assert_called_once_with(["a.yaml"], False, "web")
        assert mock_count.call_args.args[2] == "env=prod"
        assert mock_count.call_args.kwargs["timeout"] == 2

    @patch("kcount.cli.main.count_across_clusters", return_value=[])
    @patch("kcount.cli.main.resolve_clusters")
    def test_all_namespaces(self, mock_resolve, mock_count, runner: CliRunner):
        mock_resolve.return_value = [cluster("a")]
        runner.invoke(cli, ["-A", "a.yaml"])
        mock_resolve.assert_called_once_with(["a.yaml"], True, None)

    @patch("kcount.cli.main.count_across_clusters")
    @patch("kcount.cli.main.resolve_clusters")
    def test_age_columns(self, mock_resolve, mock_count, runner: CliRunner):
        mock_resolve.return_value = [cluster("a")]
        mock_count.return_value = [_result("a", 2, newest=BASE_TIME, oldest=BASE_TIME)]

        result = runner.invoke(cli, ["-a", "a.yaml"])

        assert result.exit_code == 0
        assert result.stdout.splitlines()[0].split()[-2:] == ["Newest", "Oldest"]

    @patch("kcount.cli.main.resolve_clusters")
    def test_kubeconfig_env_fallback(self, mock_resolve, runner: CliRunner, monkeypatch):
        mock_resolve.return_value = []
        monkeypatch.setenv("KUBECONFIG", os.pathsep.join(["/k/one", "/k/two"]))
        runner.invoke(cli, [])
        assert mock_resolve.call_args.args[0] == ["/k/one", "/k/two"]

    @patch("kcount.cli.main.resolve_clusters")
    def test_positional_beats_env(self, mock_resolve, runner: CliRunner, monkeypatch):
        mock_resolve.return_value = []
        monkeypatch.setenv("KUBECONFIG", "/k/env")
        runner.invoke(cli, ["/k/arg"])
        assert mock_resolve.call_args.args[0] == ["/k/arg"]

    def test_partial_failure_prints_successes(self, runner: CliRunner):
        lister = FakeLister({
            ("prod", "pod"): make_items(10, step=timedelta(hours=8)),
            ("staging", "pod"): OSError("connection refused"),
        })

        def counting(clusters, kinds, label_selector, timeout):
            return count_across_clusters(
                clusters, kinds, label_selector, timeout=timeout, lister=lister,
            )

        with patch("kcount.cli.main.resolve_clusters",
                   return_value=[cluster("prod"), cluster("staging")]), \
                patch("kcount.cli.main.count_across_clusters", side_effect=counting):
            result = runner.invoke(cli, ["prod.yaml", "staging.yaml"])

        assert result.exit_code == 0
        rows = result.stdout.splitlines()
        assert rows[2].split() == ["prod", "default", "pod", "10"]
        assert rows[-1].split() == ["Total", "10"]
        assert "staging" not in result.stdout
        assert "kcount: counting pod objects in cluster staging" in result.stderr


# --- Fatal errors ---


class TestFatal:
    @patch("kcount.cli.main.count_across_clusters")
    @patch("kcount.cli.main.resolve_clusters", return_value=[])
    def test_no_clusters(self, mock_resolve, mock_count, runner: CliRunner):
        result = runner.invoke(cli, [])
        assert result.exit_code == 1
        assert "supply at least one kubeconfig" in result.stderr
        mock_count.assert_not_called()

    @patch("kcount.cli.main.count_across_clusters")
    @patch("kcount.cli.main.resolve_clusters")
    def test_resolution_error(self, mock_resolve, mock_count, runner: CliRunner):
        mock_resolve.side_effect = ClusterResolutionError("loading kubeconfig x.yaml: boom")
        result = runner.invoke(cli, ["x.yaml"])
        assert result.exit_code == 1
        assert "getting cluster configs" in result.stderr
        assert "x.yaml" in result.stderr
        mock_count.assert_not_called()

    def test_missing_explicit_config(self, runner: CliRunner, tmp_path: Path):
        result = runner.invoke(cli, ["-c", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1
        assert "not found" in result.stderr

    def test_invalid_explicit_config(self, runner: CliRunner, tmp_path: Path):
        cfg = tmp_path / "custom.yaml"
        cfg.write_text("port: nope\n", encoding="utf-8")
        result = runner.invoke(cli, ["-c", str(cfg)])
        assert result.exit_code == 1
        assert "Invalid config" in result.stderr

    @patch("kcount.cli.main.resolve_clusters", return_value=[])
    def test_non_positive_timeout(self, mock_resolve, runner: CliRunner):
        result = runner.invoke(cli, ["--timeout", "0", "a.yaml"])
        assert result.exit_code == 1
        assert "timeout" in result.stderr
        mock_resolve.assert_not_called()


# --- Config file ---


class TestConfigFile:
    @patch("kcount.cli.main.count_across_clusters", return_value=[])
    @patch("kcount.cli.main.resolve_clusters")
    def test_config_supplies_defaults(
        self, mock_resolve, mock_count, runner: CliRunner, tmp_path: Path,
    ):
        mock_resolve.return_value = [cluster("a")]
        (tmp_path / "kcount.yaml").write_text(
            "kubeconfigs: [./prod.yaml]\nkinds: [secret]\nlabel_selector: team=x\n"
            "all_namespaces: true\ntimeout: 4\n",
            encoding="utf-8",
        )
        result = runner.invoke(cli, [])
        assert result.exit_code == 0, result.output
        mock_resolve.assert_called_once_with(
            [str((tmp_path / "prod.yaml").resolve())], True, None,
        )
        args, kwargs = mock_count.call_args
        assert args[1] == [Kind.SECRET]
        assert args[2] == "team=x"
        assert kwargs["timeout"] == 4

    @patch("kcount.cli.main.count_across_clusters", return_value=[])
    @patch("kcount.cli.main.resolve_clusters")
    def test_flags_beat_config(
        self, mock_resolve, mock_count, runner: CliRunner, tmp_path: Path,
    ):
        mock_resolve.return_value = [cluster("a")]
        (tmp_path / "kcount.yaml").write_text(
            "kinds: [secret]\nlabel_selector: team=x\n", encoding="utf-8",
        )
        runner.invoke(cli, ["-k", "pod", "-l", "", "a.yaml"])
        args, _ = mock_count.call_args
        assert args[1] == [Kind.POD]
        assert args[2] == ""

    @patch("kcount.cli.main.count_across_clusters", return_value=[])
    @patch("kcount.cli.main.resolve_clusters")
    def test_broken_discovered_config_ignored(
        self, mock_resolve, mock_count, runner: CliRunner, tmp_path: Path,
    ):
        mock_resolve.return_value = [cluster("a")]
        (tmp_path / "kcount.yaml").write_text("- not a mapping\n", encoding="utf-8")
        result = runner.invoke(cli, ["a.yaml"])
        assert result.exit_code == 0
        assert "ignoring config file" in result.stderr


# --- Daemon mode ---


class TestDaemon:
    @patch("kcount.cli.main.RefreshLoop")
    @patch("kcount.cli.main.MetricsExporter")
    @patch("kcount.cli.main.resolve_clusters")
    def test_starts_endpoint_and_loop(
        self, mock_resolve, mock_exporter_cls, mock_loop_cls, runner: CliRunner,
    ):
        clusters = [cluster("prod")]
        mock_resolve.return_value = clusters

        result = runner.invoke(cli, ["-d", "-a", "-k", "pod,secret", "-l", "app=x", "a.yaml"])

        assert result.exit_code == 0, result.output
        exporter = mock_exporter_cls.return_value
        exporter.serve.assert_called_once_with(port=2112, addr="0.0.0.0")
        mock_loop_cls.assert_called_once_with(
            clusters,
            [Kind.POD, Kind.SECRET],
            exporter,
            label_selector="app=x",
            track_age=True,
            interval=2.0,
            timeout=5.0,
        )
        mock_loop_cls.return_value.run.assert_called_once_with()

    @patch("kcount.cli.main.RefreshLoop")
    @patch("kcount.cli.main.MetricsExporter")
    @patch("kcount.cli.main.resolve_clusters")
    def test_port_and_interval(
        self, mock_resolve, mock_exporter_cls, mock_loop_cls, runner: CliRunner,
    ):
        mock_resolve.return_value = [cluster("prod")]
        result = runner.invoke(cli, ["-d", "--port", "9100", "--interval", "30", "a.yaml"])
        assert result.exit_code == 0, result.output
        mock_exporter_cls.return_value.serve.assert_called_once_with(port=9100, addr="0.0.0.0")
        assert mock_loop_cls.call_args.kwargs["interval"] == 30

    @patch("kcount.cli.main.RefreshLoop")
    @patch("kcount.cli.main.MetricsExporter")
    @patch("kcount.cli.main.resolve_clusters")
    def test_port_in_use(
        self, mock_resolve, mock_exporter_cls, mock_loop_cls, runner: CliRunner,
    ):
        mock_resolve.return_value = [cluster("prod")]
        mock_exporter_cls.return_value.serve.side_effect = OSError("Address already in use")
        result = runner.invoke(cli, ["-d", "a.yaml"])
        assert result.exit_code == 1
        assert "Address already in use" in result.stderr
        mock_loop_cls.return_value.run.assert_not_called()

    @pytest.mark.parametrize("port", ["0", "70000"])
    @patch("kcount.cli.main.RefreshLoop")
    @patch("kcount.cli.main.MetricsExporter")
    @patch("kcount.cli.main.resolve_clusters")
    def test_port_out_of_range(
        self, mock_resolve, mock_exporter_cls, mock_loop_cls, runner: CliRunner, port: str,
    ):
        result = runner.invoke(cli, ["-d", "--port", port, "a.yaml"])
        assert result.exit_code == 2
        assert "--port" in result.stderr
        mock_resolve.assert_not_called()
        mock_exporter_cls.return_value.serve.assert_not_called()

    @patch("kcount.cli.main.RefreshLoop")
    @patch("kcount.cli.main.MetricsExporter")
    @patch("kcount.cli.main.resolve_clusters")
    def test_bind_overflow_reported(
        self, mock_resolve, mock_exporter_cls, mock_loop_cls, runner: CliRunner,
    ):
        mock_resolve.return_value = [cluster("prod")]
        mock_exporter_cls.return_value.serve.side_effect = OverflowError(
            "bind(): port must be 0-65535.",
        )
        result = runner.invoke(cli, ["-d", "a.yaml"])
        assert result.exit_code == 1
        assert "Error: serving metrics" in result.stderr
        mock_loop_cls.return_value.run.assert_not_called()

    @patch("kcount.cli.main.MetricsExporter")
    @patch("kcount.cli.main.resolve_clusters")
    def test_daemon_refreshes_real_gauges(
        self, mock_resolve, mock_exporter_cls, runner: CliRunner,
    ):
        exporter = MetricsExporter()
        exporter.serve = MagicMock()
        mock_exporter_cls.return_value = exporter
        mock_resolve.return_value = [cluster("prod")]
        lister = FakeLister({("prod", "pod"): make_items(3)})

        def bounded_run(self, max_cycles=None):
            self._lister = lister
            self._sleep = lambda _: None
            return real_run(self, max_cycles=2)

        real_run = RefreshLoop.run
        with patch.object(RefreshLoop, "run", bounded_run):
            result = runner.invoke(cli, ["-d", "a.yaml"])

        assert result.exit_code == 0, result.output
        assert exporter.value(COUNT_METRIC, "prod", "default", "", "pod") == 3
