"""Error types raised by the reconciliation engine."""

from __future__ import annotations


class LoadBalancerSyncError(Exception):
    """Base class for every error raised by :mod:`metallb_sync`."""


class ConfigParseError(LoadBalancerSyncError, ValueError):
    """The stored MetalLB document could not be parsed."""


class MissingProviderIDError(LoadBalancerSyncError, ValueError):
    """A node has no provider ID and cannot be resolved to BGP peers."""

    def __init__(self, node_name: str) -> None:
        super().__init__(f"no provider ID given for node {node_name}")
        self.node_name = node_name


class SelectorParseError(LoadBalancerSyncError, ValueError):
    """A label selector expression is malformed."""


class RegistryError(LoadBalancerSyncError):
    """The IP reservation registry rejected or failed a call."""


class PeerLookupError(LoadBalancerSyncError):
    """BGP peer addresses could not be resolved for a node."""


class DocumentStoreError(LoadBalancerSyncError):
    """Reading or patching the stored document failed."""


class ServiceUpdateError(LoadBalancerSyncError):
    """Writing the assigned address back onto a Service failed."""
