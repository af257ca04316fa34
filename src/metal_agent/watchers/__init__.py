"""Watcher implementations used by the MetalLB sync agent."""

from .kube import ClusterWatcher  # noqa: F401

__all__ = ["ClusterWatcher"]
