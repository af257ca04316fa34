"""Reconciler adapters exposed to the registry."""

from .base import ClusterReconciler  # noqa: F401
from .loadbalancer_adapter import LoadBalancerAdapter, build_loadbalancer_adapter  # noqa: F401

__all__ = [
    "ClusterReconciler",
    "LoadBalancerAdapter",
    "build_loadbalancer_adapter",
]
