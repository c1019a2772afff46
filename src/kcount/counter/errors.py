"""Errors raised while counting objects in a single cluster."""

from __future__ import annotations


class CountError(Exception):
    """Base class for per-cluster, per-kind counting failures."""


class ClusterConnectionError(CountError):
    """Raised when the list call fails (network, auth, or API error)."""


class UnsupportedKindError(CountError):
    """Raised when no list call is known for an object kind."""
