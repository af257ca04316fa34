"""Adapter between the load balancer driver and the registry contract."""

from __future__ import annotations

from typing import Sequence

from metallb_sync.driver import LoadBalancerDriver
from metallb_sync.modes import UpdateMode

from .base import ClusterReconciler


class LoadBalancerAdapter(ClusterReconciler):
    """Wrap :class:`~metallb_sync.driver.LoadBalancerDriver` for registry use."""

    def __init__(self, driver: LoadBalancerDriver) -> None:
        self._driver = driver

    @property
    def driver(self) -> LoadBalancerDriver:
        return self._driver

    def on_nodes_changed(self, nodes: Sequence, mode: UpdateMode) -> None:
        self._driver.reconcile_nodes(nodes, mode)

    def on_services_changed(self, services: Sequence, mode: UpdateMode) -> None:
        self._driver.reconcile_services(services, mode)


def build_loadbalancer_adapter(driver: LoadBalancerDriver) -> LoadBalancerAdapter:
    """Build the adapter the agent registers as ``loadbalancer``."""

    return LoadBalancerAdapter(driver)
