"""In-memory collaborators shared by the unit tests."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from kubernetes.client import V1Node, V1NodeSpec, V1ObjectMeta, V1Service, V1ServiceSpec

from metallb_sync.base import (
    DocumentStore,
    IPReservation,
    PeerResolver,
    ReservationRegistry,
    ServiceStore,
)
from metallb_sync.exceptions import PeerLookupError, RegistryError, ServiceUpdateError


def make_node(name: str, provider_id: Optional[str] = None, labels=None) -> V1Node:
    if provider_id is None:
        provider_id = f"equinixmetal://{name}-device"
    return V1Node(
        metadata=V1ObjectMeta(name=name, labels=labels),
        spec=V1NodeSpec(provider_id=provider_id or None),
    )


def make_service(
    namespace: str,
    name: str,
    type: str = "LoadBalancer",
    ip: Optional[str] = None,
) -> V1Service:
    return V1Service(
        metadata=V1ObjectMeta(namespace=namespace, name=name),
        spec=V1ServiceSpec(type=type, load_balancer_ip=ip),
    )


class MemoryDocumentStore(DocumentStore):
    def __init__(self, text: str = "") -> None:
        self.text = text
        self.patches: List[str] = []

    def get(self) -> str:
        return self.text

    def patch(self, text: str) -> None:
        self.patches.append(text)
        self.text = text


class StaticResolver(PeerResolver):
    """Resolve provider IDs from a mapping; missing IDs raise."""

    def __init__(self, peers: Dict[str, Sequence[str]]) -> None:
        self._peers = peers
        self.calls: List[str] = []

    def resolve(self, provider_id: str) -> Sequence[str]:
        self.calls.append(provider_id)
        if provider_id not in self._peers:
            raise PeerLookupError(f"unknown device {provider_id}")
        return self._peers[provider_id]


class FakeRegistry(ReservationRegistry):
    def __init__(self, reservations: Sequence[IPReservation] = (), fail_requests: int = 0) -> None:
        self.reservations: List[IPReservation] = list(reservations)
        self.fail_requests = fail_requests
        self.fail_removals: set = set()
        self.requested: List[List[str]] = []
        self.removed: List[str] = []
        self._counter = 100

    def list(self) -> List[IPReservation]:
        return list(self.reservations)

    def request(self, tags: Sequence[str]) -> Optional[IPReservation]:
        self.requested.append(list(tags))
        if self.fail_requests:
            self.fail_requests -= 1
            raise RegistryError("no capacity in facility")
        self._counter += 1
        reservation = IPReservation(
            id=f"ip-{self._counter}",
            address=f"147.75.1.{self._counter}",
            cidr=32,
            tags=tuple(tags),
        )
        self.reservations.append(reservation)
        return reservation

    def remove(self, reservation_id: str) -> None:
        if reservation_id in self.fail_removals:
            raise RegistryError(f"cannot remove {reservation_id}")
        self.removed.append(reservation_id)
        self.reservations = [r for r in self.reservations if r.id != reservation_id]


class FakeServiceStore(ServiceStore):
    def __init__(self, services: Sequence[V1Service] = (), fail_updates: bool = False) -> None:
        self._services = {
            (s.metadata.namespace, s.metadata.name): s for s in services
        }
        self.fail_updates = fail_updates
        self.updates: List[V1Service] = []

    def add(self, svc: V1Service) -> None:
        self._services[(svc.metadata.namespace, svc.metadata.name)] = svc

    def get(self, namespace: str, name: str) -> V1Service:
        stored = self._services[(namespace, name)]
        return make_service(namespace, name, stored.spec.type, stored.spec.load_balancer_ip)

    def update(self, service: V1Service) -> None:
        if self.fail_updates:
            raise ServiceUpdateError("conflict: the object has been modified")
        self.updates.append(service)
        self.add(service)

    def ip_of(self, namespace: str, name: str) -> Optional[str]:
        return self._services[(namespace, name)].spec.load_balancer_ip
