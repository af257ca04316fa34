"""Registry dispatching batch events to reconciler adapters."""

from __future__ import annotations

import logging
from typing import Dict, Sequence

from metallb_sync.modes import UpdateMode

from .events import NodesChanged, ServicesChanged
from .reconcilers import ClusterReconciler

LOG = logging.getLogger(__name__)


class ReconcilerRegistry:
    """Dispatch node and service batches to registered reconcilers.

    Empty ``ADD`` and ``REMOVE`` batches are dropped.  An empty ``SYNC`` batch
    is still delivered: it means the cluster has no objects of that kind left.
    """

    def __init__(self) -> None:
        self._reconcilers: Dict[str, ClusterReconciler] = {}

    def register(self, name: str, reconciler: ClusterReconciler) -> None:
        if name in self._reconcilers:
            raise ValueError(f"reconciler '{name}' already registered")
        self._reconcilers[name] = reconciler

    def unregister(self, name: str) -> None:
        self._reconcilers.pop(name, None)

    @property
    def names(self) -> Sequence[str]:
        return list(self._reconcilers)

    def handle(self, event: NodesChanged | ServicesChanged) -> None:
        if isinstance(event, NodesChanged):
            self._dispatch("nodes", event.nodes, event.mode)
        elif isinstance(event, ServicesChanged):
            self._dispatch("services", event.services, event.mode)
        else:
            raise TypeError(f"Unsupported event type: {type(event)!r}")

    def _dispatch(self, kind: str, batch: Sequence, mode: UpdateMode) -> None:
        if not batch and mode is not UpdateMode.SYNC:
            LOG.debug("skipping empty %s %s batch", mode.value, kind)
            return
        for name, reconciler in self._reconcilers.items():
            LOG.debug("dispatching %d %s (%s) to %s", len(batch), kind, mode.value, name)
            if kind == "nodes":
                reconciler.on_nodes_changed(batch, mode)
            else:
                reconciler.on_services_changed(batch, mode)
