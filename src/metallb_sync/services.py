"""Assign elastic IPs to LoadBalancer Services and map them into MetalLB.

When a Service needs an address we first look for a reservation carrying both
the provider tag and the Service's correlation tag, and only request a new one
if none exists.  Requests ask the registry to fail immediately rather than
wait for manual approval; a Service left without an address is simply picked
up again on the next pass.
"""

from __future__ import annotations

import copy
import logging
from typing import List, Optional, Sequence

from .base import DocumentStore, IPReservation, ReservationRegistry, ServiceStore
from .config import AddressPool, ConfigFile
from .exceptions import RegistryError
from .modes import UpdateMode
from .tagging import (
    PROVIDER_TAG,
    reservation_by_all_tags,
    reservations_by_any_tags,
    service_rep,
    service_tag,
)

LOG = logging.getLogger(__name__)

LOAD_BALANCER_TYPE = "LoadBalancer"
DEFAULT_CIDR = 32


def is_load_balancer(svc) -> bool:
    return svc.spec is not None and svc.spec.type == LOAD_BALANCER_TYPE


class ServiceReconciler:
    """Reconcile Service addresses against the reservation registry.

    Parameters
    ----------
    registry:
        Source of IP reservations for the project.
    services:
        Store used to write assigned addresses back onto Services.
    store:
        MetalLB document store.  When None the reconciler only manages
        reservations and Service addresses.
    """

    def __init__(
        self,
        registry: ReservationRegistry,
        services: ServiceStore,
        store: Optional[DocumentStore] = None,
    ) -> None:
        self._registry = registry
        self._services = services
        self._store = store

    def reconcile(self, services: Sequence, mode: UpdateMode) -> bool:
        """Apply ``mode`` for ``services``; return True if the document was written."""

        LOG.debug("reconciling services, mode=%s", mode.value)
        reservations = self._list_reservations()
        config = self._store.load() if self._store is not None else None
        original = copy.deepcopy(config)

        valid = [svc for svc in services if is_load_balancer(svc)]
        LOG.debug("%d of %d services are of type %s", len(valid), len(services), LOAD_BALANCER_TYPE)

        if mode is UpdateMode.ADD:
            for svc in valid:
                self.add_service(svc, reservations, config)
            return self._save_if_changed(config, original)
        if mode is UpdateMode.REMOVE:
            for svc in valid:
                self._remove_service(svc, reservations, config)
            return self._save_if_changed(config, original)
        if mode is UpdateMode.SYNC:
            return self._sync(valid, reservations, config, original)
        raise ValueError(f"unsupported update mode {mode!r}")

    # ------------------------------------------------------------------
    # Per-service operations
    # ------------------------------------------------------------------
    def add_service(
        self,
        svc,
        reservations: Sequence[IPReservation],
        config: Optional[ConfigFile],
    ) -> Optional[str]:
        """Make sure ``svc`` has an address and that it is mapped in ``config``.

        Returns the ``address/prefix`` string for the Service, or None when no
        address could be obtained during this pass.
        """

        name = service_rep(svc)
        tag = service_tag(svc)
        svc_ip = svc.spec.load_balancer_ip
        reservation = reservation_by_all_tags([tag, PROVIDER_TAG], reservations)

        LOG.debug("processing %s with existing IP assignment %s", name, svc_ip)
        if not svc_ip:
            if reservation is None:
                LOG.debug("no IP reservation found for %s, requesting", name)
                try:
                    reservation = self._registry.request([PROVIDER_TAG, tag])
                except RegistryError as exc:
                    LOG.error("failed to request an IP for service %s: %s", name, exc)
                    return None

            if reservation is None:
                LOG.info("no IP to assign to service %s, waiting for allocation", name)
                return None

            svc_ip = reservation.address
            self._assign(svc, svc_ip)

        cidr = DEFAULT_CIDR
        if reservation is not None and reservation.address == svc_ip:
            cidr = reservation.cidr
        addr = f"{svc_ip}/{cidr}"

        if config is not None:
            pool = AddressPool(
                name=name,
                protocol="bgp",
                addresses=[addr],
                auto_assign=False,
            )
            if config.add_address_pool(pool):
                LOG.debug("mapped %s to address pool %s", addr, name)
            else:
                LOG.debug("address %s already mapped, unchanged", addr)
        return addr

    def _assign(self, svc, svc_ip: str) -> None:
        namespace, name = svc.metadata.namespace, svc.metadata.name
        LOG.info("assigning IP %s to %s/%s", svc_ip, namespace, name)
        latest = self._services.get(namespace, name)
        latest.spec.load_balancer_ip = svc_ip
        self._services.update(latest)
        svc.spec.load_balancer_ip = svc_ip

    def _remove_service(
        self,
        svc,
        reservations: Sequence[IPReservation],
        config: Optional[ConfigFile],
    ) -> None:
        name = service_rep(svc)
        reservation = reservation_by_all_tags([service_tag(svc), PROVIDER_TAG], reservations)
        if reservation is None:
            LOG.debug("no IP reservation found for %s, nothing to delete", name)
            return

        LOG.info("removing IP reservation %s for %s", reservation.id, name)
        try:
            self._registry.remove(reservation.id)
        except RegistryError as exc:
            LOG.error("failed to remove IP reservation %s: %s", reservation.id, exc)
            return

        if config is not None and config.remove_address_pool_by_address(reservation.cidr_string):
            LOG.debug("unmapped %s for %s", reservation.cidr_string, name)

    # ------------------------------------------------------------------
    # Full sync
    # ------------------------------------------------------------------
    def _sync(
        self,
        valid: Sequence,
        reservations: Sequence[IPReservation],
        config: Optional[ConfigFile],
        original: Optional[ConfigFile],
    ) -> bool:
        assigned: List[str] = []
        for svc in valid:
            addr = self.add_service(svc, reservations, config)
            if addr is not None:
                assigned.append(addr)

        # assignments above may have created reservations
        reservations = self._list_reservations()
        scoped = reservations_by_any_tags([PROVIDER_TAG], reservations)

        valid_tags = {service_tag(svc) for svc in valid}
        valid_addrs = set(assigned)
        LOG.debug("sync: valid tags %s", sorted(valid_tags))
        LOG.debug("sync: valid service addresses %s", sorted(valid_addrs))

        if config is not None:
            for addr in config.service_addresses():
                if addr not in valid_addrs:
                    LOG.info("unmapping %s, no longer assigned to a service", addr)
                    config.remove_address_pool_by_address(addr)
        written = self._save_if_changed(config, original)

        for reservation in scoped:
            if valid_tags.intersection(reservation.tags):
                continue
            LOG.info("removing orphaned IP reservation %s (%s)", reservation.id, reservation.cidr_string)
            try:
                self._registry.remove(reservation.id)
            except RegistryError as exc:
                LOG.error("failed to remove IP reservation %s: %s", reservation.id, exc)
        return written

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _list_reservations(self) -> Sequence[IPReservation]:
        reservations = self._registry.list()
        LOG.debug("found %d IP reservations", len(reservations))
        return reservations

    def _save_if_changed(
        self, config: Optional[ConfigFile], original: Optional[ConfigFile]
    ) -> bool:
        if config is None or config == original:
            LOG.debug("MetalLB config unchanged, not updating")
            return False
        LOG.info("MetalLB address pools changed, updating config")
        self._store.save(config)
        return True
