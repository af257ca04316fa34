"""Polling watcher publishing node and service batches."""

from __future__ import annotations

import logging
from threading import Event, Thread
from typing import Dict

from kubernetes import client

from metal_ccm import NodesChanged, ReconcilerRegistry, ServicesChanged
from metallb_sync.exceptions import LoadBalancerSyncError
from metallb_sync.modes import UpdateMode

from .utils import (
    diff,
    index,
    node_changed,
    node_key,
    node_labels,
    service_changed,
    service_key,
)

LOG = logging.getLogger(__name__)


class ClusterWatcher(Thread):
    """Poll the Kubernetes API and publish reconciliation batches.

    The first poll, every ``resync_every``-th poll after it, and any poll
    following a failed pass publish full ``SYNC`` batches.  So does a label
    change on a known node.  Other polls publish only what changed since the
    last successful pass: removals first, then additions.
    """

    def __init__(
        self,
        registry: ReconcilerRegistry,
        core: client.CoreV1Api,
        interval: float,
        stop_event: Event,
        *,
        resync_every: int = 10,
    ) -> None:
        super().__init__(daemon=True)
        self._registry = registry
        self._core = core
        self._interval = interval
        self._stop_event = stop_event
        self._resync_every = max(1, resync_every)
        self._polls = 0
        self._nodes: Dict[str, object] = {}
        self._services: Dict[str, object] = {}
        self._full_nodes = True
        self._full_services = True

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll()
            except Exception:  # pragma: no cover - logged below
                LOG.exception("cluster watcher encountered an error")
            self._stop_event.wait(self._interval)

    def poll(self) -> None:
        if self._polls % self._resync_every == 0:
            self._full_nodes = self._full_services = True
        self._polls += 1

        nodes = index(self._core.list_node().items, node_key)
        services = index(self._core.list_service_for_all_namespaces().items, service_key)

        try:
            self._publish_nodes(nodes)
        except LoadBalancerSyncError:
            LOG.exception("node reconciliation failed, forcing full sync next poll")
            self._full_nodes = True

        try:
            self._publish_services(services)
        except LoadBalancerSyncError:
            LOG.exception("service reconciliation failed, forcing full sync next poll")
            self._full_services = True

    def _publish_nodes(self, nodes: Dict[str, object]) -> None:
        relabeled = [
            key
            for key, node in nodes.items()
            if key in self._nodes and node_labels(self._nodes[key]) != node_labels(node)
        ]
        if relabeled:
            # the node selector may have stopped matching, which only a sync prunes
            LOG.debug("node labels changed on %s", relabeled)
            self._full_nodes = True

        if self._full_nodes:
            LOG.debug("publishing full node sync (%d nodes)", len(nodes))
            self._registry.handle(NodesChanged(list(nodes.values()), UpdateMode.SYNC))
        else:
            added, removed = diff(self._nodes, nodes, node_changed)
            if removed:
                LOG.debug("nodes removed: %s", [node_key(n) for n in removed])
                self._registry.handle(NodesChanged(removed, UpdateMode.REMOVE))
            if added:
                LOG.debug("nodes added: %s", [node_key(n) for n in added])
                self._registry.handle(NodesChanged(added, UpdateMode.ADD))
        self._nodes = nodes
        self._full_nodes = False

    def _publish_services(self, services: Dict[str, object]) -> None:
        if self._full_services:
            LOG.debug("publishing full service sync (%d services)", len(services))
            self._registry.handle(ServicesChanged(list(services.values()), UpdateMode.SYNC))
        else:
            added, removed = diff(self._services, services, service_changed)
            if removed:
                LOG.debug("services removed: %s", [service_key(s) for s in removed])
                self._registry.handle(ServicesChanged(removed, UpdateMode.REMOVE))
            if added:
                LOG.debug("services added: %s", [service_key(s) for s in added])
                self._registry.handle(ServicesChanged(added, UpdateMode.ADD))
        self._services = services
        self._full_services = False
