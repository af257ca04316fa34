"""Abstract interface for reconcilers managed by :class:`ReconcilerRegistry`."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from metallb_sync.modes import UpdateMode


class ClusterReconciler(ABC):
    """Base class for adapters reacting to node and service batches."""

    @abstractmethod
    def on_nodes_changed(self, nodes: Sequence, mode: UpdateMode) -> None:
        """Reconcile state derived from ``nodes``."""

    @abstractmethod
    def on_services_changed(self, services: Sequence, mode: UpdateMode) -> None:
        """Reconcile state derived from ``services``."""
