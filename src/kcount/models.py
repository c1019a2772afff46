"""Core data models for kcount.

Defines the schemas for:
- Object kinds (what can be counted)
- Cluster contexts (where to count)
- Count requests (one unit of dispatched work)
- Count results (what a request produced)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

ALL_NAMESPACES = ""
"""Namespace scope meaning "every namespace in the cluster"."""


# --- Enums ---


class Kind(enum.StrEnum):
    DEPLOYMENT = "deployment"
    POD = "pod"
    CONFIGMAP = "configmap"
    SECRET = "secret"
    INGRESS = "ingress"
    SERVICE = "service"
    STATEFULSET = "statefulset"
    DAEMONSET = "daemonset"
    JOB = "job"
    CRONJOB = "cronjob"


# --- Clusters ---


@dataclass(frozen=True)
class ClusterContext:
    """A reachable cluster bound to a namespace scope.

    ``configuration`` is an opaque ``kubernetes.client.Configuration``
    holding endpoint and credentials. Contexts are built once by the
    resolver and shared read-only by all counting workers.
    """

    name: str
    namespace: str = ALL_NAMESPACES
    configuration: Any = field(default=None, compare=False, repr=False)
    source: str = ""

    @property
    def all_namespaces(self) -> bool:
        return self.namespace == ALL_NAMESPACES

    def with_namespace(self, namespace: str) -> ClusterContext:
        """Return a copy of this context scoped to *namespace*."""
        return replace(self, namespace=namespace)


@dataclass(frozen=True)
class CountRequest:
    """One (cluster, kind, label selector) unit of counting work."""

    cluster: ClusterContext
    kind: Kind | str
    label_selector: str = ""


# --- Results ---


class CountResult(BaseModel):
    """Count and age bounds of the objects matched by one CountRequest.

    ``ok`` is False when the underlying list call failed; such results
    carry the error message and must never reach a report.
    """

    model_config = ConfigDict(frozen=True)

    cluster: str
    namespace: str
    kind: str
    label_selector: str = ""
    count: int = Field(0, ge=0)
    newest: datetime | None = None
    oldest: datetime | None = None
    ok: bool = True
    error: str | None = None

    @model_validator(mode="after")
    def _check_age_bounds(self) -> CountResult:
        if self.newest is not None and self.oldest is not None:
            if self.newest < self.oldest:
                raise ValueError("newest must not be earlier than oldest")
        if self.count == 0 and (self.newest is not None or self.oldest is not None):
            raise ValueError("an empty result cannot carry timestamps")
        return self

    @property
    def key(self) -> tuple[str, str, str, str]:
        """Metric label tuple: (cluster, namespace, label selector, kind)."""
        return (self.cluster, self.namespace, self.label_selector, str(self.kind))

    @classmethod
    def failed(cls, request: CountRequest, error: str) -> CountResult:
        """Build the result recorded for a request whose count failed."""
        return cls(
            cluster=request.cluster.name,
            namespace=request.cluster.namespace,
            kind=str(request.kind),
            label_selector=request.label_selector,
            ok=False,
            error=error,
        )
