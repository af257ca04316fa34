"""Load balancer driver.

Ties the node and service reconcilers to their collaborators and decides which
of them are active for a given configuration:

* node reconciliation needs a MetalLB ConfigMap to write peers into;
* service reconciliation runs without a document when ConfigMap management is
  disabled, but is switched off when management is enabled and no ConfigMap
  has been named.

Passes are serialized with a lock; the document is always re-read at the start
of a pass, so holding the lock for the whole pass is what keeps two writers
from overwriting each other within one process.
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Optional, Sequence

from .base import DocumentStore, PeerResolver, ReservationRegistry, ServiceStore
from .modes import UpdateMode
from .nodes import NodeReconciler
from .selectors import LabelSelector
from .services import ServiceReconciler

LOG = logging.getLogger(__name__)


class LoadBalancerDriver:
    """Entry point for node and service reconciliation passes."""

    def __init__(
        self,
        registry: ReservationRegistry,
        services: ServiceStore,
        resolver: PeerResolver,
        *,
        local_asn: int,
        peer_asn: int,
        store: Optional[DocumentStore] = None,
        configmap_enable: bool = True,
        bgp_pass: Optional[str] = None,
        node_selector: Optional[LabelSelector] = None,
    ) -> None:
        self._node_selector = node_selector or LabelSelector()
        self._lock = Lock()

        self._nodes: Optional[NodeReconciler] = None
        if store is None:
            LOG.info("no MetalLB ConfigMap configured, node reconciliation disabled")
        else:
            self._nodes = NodeReconciler(
                store, resolver, local_asn, peer_asn, password=bgp_pass
            )

        self._services: Optional[ServiceReconciler] = None
        if configmap_enable and store is None:
            LOG.info("MetalLB ConfigMap enabled but not set, service reconciliation disabled")
        else:
            self._services = ServiceReconciler(
                registry, services, store if configmap_enable else None
            )

    @property
    def node_reconciler(self) -> Optional[NodeReconciler]:
        return self._nodes

    @property
    def service_reconciler(self) -> Optional[ServiceReconciler]:
        return self._services

    def reconcile_nodes(self, nodes: Sequence, mode: UpdateMode) -> bool:
        if self._nodes is None:
            LOG.debug("node reconciliation disabled, ignoring %d nodes", len(nodes))
            return False

        if mode is not UpdateMode.REMOVE and not self._node_selector.empty:
            selected = [n for n in nodes if self._node_selector.matches(n.metadata.labels)]
            LOG.debug(
                "BGP node selector matched %d of %d nodes", len(selected), len(nodes)
            )
            nodes = selected

        with self._lock:
            return self._nodes.reconcile(nodes, mode)

    def reconcile_services(self, services: Sequence, mode: UpdateMode) -> bool:
        if self._services is None:
            LOG.debug("service reconciliation disabled, ignoring %d services", len(services))
            return False

        with self._lock:
            return self._services.reconcile(services, mode)
