"""Shared fixtures: fake clusters, object metadata, and an in-memory lister."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from kcount.models import ClusterContext, Kind

BASE_TIME = datetime(2024, 3, 1, 12, 0, 0, tzinfo=UTC)


@dataclass
class FakeMeta:
    name: str
    creation_timestamp: datetime | None


def make_items(n: int, start: datetime = BASE_TIME, step: timedelta = timedelta(hours=1)):
    """Return *n* metadata objects created *step* apart, oldest first."""
    return [FakeMeta(name=f"obj-{i}", creation_timestamp=start + i * step) for i in range(n)]


class FakeLister:
    """In-memory ObjectLister keyed by (cluster name, kind).

    A value may be a list of metadata or an exception instance to raise.
    Missing keys return no objects. Thread-safe call recording.
    """

    def __init__(self, data: dict[tuple[str, str], Any] | None = None) -> None:
        self.data = dict(data or {})
        self.calls: list[tuple[str, str, str, str, float]] = []
        self._lock = threading.Lock()

    def list_objects(
        self,
        cluster: ClusterContext,
        kind: Kind,
        label_selector: str,
        timeout: float,
    ) -> list[Any]:
        with self._lock:
            self.calls.append(
                (cluster.name, cluster.namespace, str(kind), label_selector, timeout)
            )
        value = self.data.get((cluster.name, str(kind)), [])
        if isinstance(value, Exception):
            raise value
        return list(value)


def cluster(name: str, namespace: str = "default") -> ClusterContext:
    return ClusterContext(name=name, namespace=namespace, source=f"/tmp/{name}.yaml")


@pytest.fixture
def fake_lister() -> FakeLister:
    return FakeLister()


@pytest.fixture
def prod_and_staging() -> tuple[list[ClusterContext], FakeLister]:
    """prod has 10 pods spread over 3 days, staging has none."""
    lister = FakeLister({
        ("prod", "pod"): make_items(10, step=timedelta(hours=8)),
        ("staging", "pod"): [],
    })
    return [cluster("prod"), cluster("staging")], lister
